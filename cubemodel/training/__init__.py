"""
Asynchronous training jobs.
"""

from cubemodel.training.job import JobState, TrainingJob, prepare_samples, validate_request
from cubemodel.training.messages import MessageQueue
from cubemodel.training.model import TrainedModel

__all__ = [
    "JobState",
    "TrainingJob",
    "prepare_samples",
    "validate_request",
    "MessageQueue",
    "TrainedModel",
]
