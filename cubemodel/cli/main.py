"""
Main CLI entry point for cubemodel.
"""

import argparse
import sys
import time
from pathlib import Path

from cubemodel import __version__
from cubemodel.core.logging_config import setup_logging, get_logger

logger = get_logger("cli.main")


def _load_cube_config(path):
    from cubemodel.core.config import CubeConfig

    if path is None:
        return CubeConfig()
    logger.info(f"Loading cube configuration from {path}")
    return CubeConfig.from_file(Path(path))


def demo_cmd(args):
    """Train on synthetic clusters and check that export/import reproduces restores."""
    from cubemodel.core.constants import ReductionMethod
    from cubemodel.validation.round_trip import RoundTripValidator, generate_cluster_presets

    config = _load_cube_config(args.config)
    data = generate_cluster_presets(
        n_samples=args.samples, dim=args.dim, clusters=args.clusters, seed=args.seed
    )
    print(
        f"Generated {data.presets.shape[0]} presets of dimension {data.presets.shape[1]} "
        f"in {data.n_clusters} clusters"
    )

    validator = RoundTripValidator(config=config, poll_interval_s=args.poll)
    result = validator.validate(
        data.presets,
        method=ReductionMethod.parse(args.method),
        latent_dim=args.dims,
        seed=args.seed,
        on_message=print,
    )

    print(result.summary())
    if not result.passed:
        print("WARN: Parameter restoration mismatch.")
        sys.exit(1)

    print("RESTORED PARAMETER = " + " ".join(f"{v:f}" for v in result.restored))
    print("EVERYTHING OK")


def train_cmd(args):
    """Train a cube from a CSV preset table and save the model."""
    from cubemodel.core.constants import ReductionMethod
    from cubemodel.cube.instance import CubeInstance
    from cubemodel.io.presets import load_presets

    config = _load_cube_config(args.config)
    presets = load_presets(args.presets)

    cube = CubeInstance(0, config)
    try:
        cube.start_training(presets, ReductionMethod.parse(args.method), args.dims)
        while cube.is_training:
            for message in cube.poll_messages():
                print(message)
            time.sleep(args.poll)
        for message in cube.poll_messages():
            print(message)

        if not cube.has_model:
            print(f"ERROR: training ended in state '{cube.state.value}' without a model")
            sys.exit(1)

        path = cube.save_model(args.output)
        print(f"Model saved to {path}")
    finally:
        cube.close()


def restore_cmd(args):
    """Load a saved model and restore a preset from latent coordinates."""
    from cubemodel.cube.instance import CubeInstance

    cube = CubeInstance(0)
    try:
        cube.load_model(args.model)
        restored = cube.restore(args.latent)
    finally:
        cube.close()

    print(",".join(f"{v:.6f}" for v in restored))


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="cubemodel: reversible dimensionality reduction of presets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Demo command
    demo_parser = subparsers.add_parser(
        "demo", help="Train on synthetic clustered presets and verify export/import"
    )
    demo_parser.add_argument("--samples", type=int, default=1000, help="Number of presets")
    demo_parser.add_argument("--dim", type=int, default=50, help="Preset dimension")
    demo_parser.add_argument("--clusters", type=int, default=10, help="Number of clusters")
    demo_parser.add_argument(
        "--method", choices=["ica", "tsne"], default="tsne", help="Reduction method"
    )
    demo_parser.add_argument("--dims", type=int, choices=[2, 3], default=3, help="Latent dims")
    demo_parser.add_argument("--seed", type=int, default=42, help="Random seed")
    demo_parser.add_argument("--config", type=str, default=None, help="Cube config (YAML/JSON)")
    demo_parser.add_argument("--poll", type=float, default=1.0, help="Poll interval in seconds")
    demo_parser.set_defaults(func=demo_cmd)

    # Training command
    train_parser = subparsers.add_parser("train", help="Train a model from a CSV preset table")
    train_parser.add_argument("presets", type=str, help="CSV file with one preset per row")
    train_parser.add_argument("--output", type=str, required=True, help="Model output file")
    train_parser.add_argument(
        "--method", choices=["ica", "tsne"], default="tsne", help="Reduction method"
    )
    train_parser.add_argument("--dims", type=int, choices=[2, 3], default=3, help="Latent dims")
    train_parser.add_argument("--config", type=str, default=None, help="Cube config (YAML/JSON)")
    train_parser.add_argument("--poll", type=float, default=1.0, help="Poll interval in seconds")
    train_parser.set_defaults(func=train_cmd)

    # Restore command
    restore_parser = subparsers.add_parser(
        "restore", help="Restore a preset from latent coordinates"
    )
    restore_parser.add_argument("model", type=str, help="Saved model file")
    restore_parser.add_argument(
        "latent", type=float, nargs="+", help="Latent coordinates (about [-2, 2] each)"
    )
    restore_parser.set_defaults(func=restore_cmd)

    args = parser.parse_args()

    # Setup logging
    setup_logging(level=args.log_level)

    # Execute command
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except Exception as e:
        logger.error(f"Error executing command: {e}", exc_info=True)
        print(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
