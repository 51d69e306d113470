"""
Command-line interface for cubemodel.

This module provides CLI tools for:
- Training models from CSV preset tables
- Restoring presets from saved models
- Running the synthetic end-to-end demo
"""

__all__ = []
