"""
Command-line interface for trackmpc.

Usage:
    trackmpc run --track oval --max-steps 300
    trackmpc validate config.yml
    trackmpc info
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from trackmpc import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="trackmpc",
        description="trackmpc - receding-horizon path tracking controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  trackmpc run                          Drive the oval track with defaults
  trackmpc run --track s-curve --target-speed 15
  trackmpc run -f controller.yml -o run.json --plot run.png
  trackmpc validate controller.yml      Validate a configuration file
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -vv for debug)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser(
        "run",
        help="Run the controller against a simulated vehicle",
        description="Closed-loop run on a synthetic track",
    )
    _add_run_arguments(run_parser)

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a configuration file",
        description="Validate a YAML configuration file",
    )
    validate_parser.add_argument(
        "config_file",
        type=Path,
        help="Path to configuration file",
    )

    subparsers.add_parser(
        "info",
        help="Show system information",
        description="Display system and dependency information",
    )

    return parser


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    """Add arguments specific to the run command."""
    from trackmpc.runner import TRACK_TYPES

    parser.add_argument(
        "--config", "-f",
        type=Path,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--track", "-t",
        choices=TRACK_TYPES,
        default="oval",
        help="Synthetic track to drive (default: oval)",
    )

    parser.add_argument(
        "--horizon", "-H",
        type=int,
        help="Prediction horizon in steps (default: from config)",
    )

    parser.add_argument(
        "--timestep",
        type=float,
        help="Horizon step length in seconds (default: from config)",
    )

    parser.add_argument(
        "--target-speed",
        type=float,
        help="Target cruise speed (default: from config)",
    )

    parser.add_argument(
        "--latency",
        type=float,
        help="Actuation latency in seconds (default: from config)",
    )

    parser.add_argument(
        "--fallback",
        choices=["iterate", "hold", "brake", "raise"],
        help="Behavior when a solve does not converge (default: from config)",
    )

    parser.add_argument(
        "--max-steps",
        type=int,
        default=200,
        help="Maximum control cycles (default: 200)",
    )

    parser.add_argument(
        "--initial-speed",
        type=float,
        default=5.0,
        help="Initial vehicle speed (default: 5.0)",
    )

    parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file for the run record (JSON format)",
    )

    parser.add_argument(
        "--plot",
        type=Path,
        help="Save a plot of the run to this image file",
    )


def setup_logging(verbose: int, quiet: bool) -> None:
    """Map -q/-v/-vv to ERROR/INFO/DEBUG; otherwise TRACKMPC_LOG_LEVEL decides."""
    import logging
    from trackmpc.logging import setup_logging as _setup_logging

    level = None
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG if verbose >= 2 else logging.INFO

    _setup_logging(level=level, force=True)


def _run_config(args: argparse.Namespace):
    from trackmpc.config import ControllerConfig, load_config

    config = load_config(args.config) if args.config else ControllerConfig()

    overrides = {}
    if args.horizon is not None:
        overrides.setdefault("horizon", {})["horizon"] = args.horizon
    if args.timestep is not None:
        overrides.setdefault("horizon", {})["timestep"] = args.timestep
    if args.target_speed is not None:
        overrides.setdefault("cost", {})["target_speed"] = args.target_speed
    if args.latency is not None:
        overrides.setdefault("latency", {})["interval"] = args.latency
    if args.fallback is not None:
        overrides.setdefault("controller", {})["fallback"] = args.fallback

    config = config.replace(**overrides)
    config.validate()
    return config


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the run command."""
    from trackmpc.controller import MPCController
    from trackmpc.exceptions import TrackMPCError
    from trackmpc.logging import LOG_ERROR, LOG_INFO
    from trackmpc.runner import make_track, run_closed_loop

    try:
        config = _run_config(args)
        LOG_INFO(
            f"Horizon: {config.horizon.horizon} x {config.horizon.timestep}s, "
            f"target speed: {config.cost.target_speed}, latency: {config.latency.interval}s"
        )

        track = make_track(args.track)
        controller = MPCController(config)
        result = run_closed_loop(
            controller,
            track,
            max_steps=args.max_steps,
            initial_speed=args.initial_speed,
        )

        print(f"Steps: {result.steps}")
        print(f"Converged: {result.converged_ratio:.0%}")
        print(f"Max cross-track error: {result.max_cross_track_error:.2f} m")

        if args.output:
            with open(args.output, "w") as f:
                json.dump(result.to_dict(), f, indent=2)
            LOG_INFO(f"Results saved to {args.output}")

        if args.plot:
            from trackmpc.plotting import plot_run
            plot_run(result, track, args.plot)
            LOG_INFO(f"Plot saved to {args.plot}")

        return 0 if result.converged_ratio > 0 else 1

    except TrackMPCError as e:
        LOG_ERROR(f"Error: {e}")
        if args.verbose >= 2:
            import traceback
            traceback.print_exc()
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute the validate command."""
    import yaml
    from trackmpc.config import ConfigManager
    from trackmpc.exceptions import ConfigurationError

    try:
        manager = ConfigManager(args.config_file)
        config = manager.load(validate=True)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error reading configuration: {e}", file=sys.stderr)
        return 1

    print(f"Configuration file '{args.config_file}' is valid.")
    print(f"  Horizon: {config.horizon.horizon}")
    print(f"  Timestep: {config.horizon.timestep}")
    print(f"  Target speed: {config.cost.target_speed}")
    print(f"  Fallback: {config.controller.fallback}")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    """Execute the info command."""
    import importlib
    import platform

    print("trackmpc System Information")
    print("=" * 40)
    print(f"trackmpc version: {__version__}")
    print(f"Python version: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")
    print()

    print("Dependencies:")
    for name, module in [("numpy", "numpy"), ("casadi", "casadi"), ("matplotlib", "matplotlib"), ("pyyaml", "yaml")]:
        try:
            mod = importlib.import_module(module)
            version = getattr(mod, "__version__", "unknown")
            print(f"  {name}: {version}")
        except ImportError:
            print(f"  {name}: NOT INSTALLED")

    return 0


COMMANDS = {
    "run": cmd_run,
    "validate": cmd_validate,
    "info": cmd_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
