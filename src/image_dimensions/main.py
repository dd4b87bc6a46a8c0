"""Main module for the image dimensions CLI."""

import sys
import json
import argparse
import threading
from typing import Any, Callable, Dict, Optional

from . import __version__
from .core import ConfigurationError, PipelineConfig, get_logger
from .core.logging_config import set_debug_logging
from .triggers import create_trigger, run_periodically

VERSION = __version__


def _add_pipeline_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command that talks to the store or cache."""
    parser.add_argument("--bucket", default=None, help="Object store (S3) bucket")
    parser.add_argument(
        "--cache-bucket", default=None, help="S3 bucket holding cached dimensions"
    )
    parser.add_argument(
        "--cache-namespace", default=None, help="Key prefix for cache entries"
    )
    parser.add_argument("--prefix", default=None, help="Path prefix to scan")
    parser.add_argument(
        "--read-cap", type=int, default=None, help="Maximum bytes read per object"
    )
    parser.add_argument(
        "--processor",
        type=str,
        default=None,
        choices=["serial", "multithread"],
        help="Processing strategy to use (default: multithread)",
    )
    parser.add_argument(
        "--max-workers", type=int, default=None, help="Worker threads for multithread"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        dest="object_timeout",
        help="Per-object read timeout in seconds",
    )
    parser.add_argument("--debug", action="store_true", default=None, help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="image-dimensions",
        description="Image Dimensions - incremental JPEG/PNG dimension extraction into a key-value cache",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract dimensions for new images under portfolio/
  image-dimensions run --bucket my-images --cache-bucket my-dims

  # Timer-driven runs every hour with the scheduled profile
  image-dimensions schedule --bucket my-images --cache-bucket my-dims --interval 3600

  # Serve the HTTP API
  image-dimensions serve --bucket my-images --cache-bucket my-dims --port 8000
        """,
    )

    subparsers: argparse._SubParsersAction = parser.add_subparsers(
        dest="command", help="Available commands"
    )

    run_parser = subparsers.add_parser("run", help="Run one extraction and print the summary")
    _add_pipeline_arguments(run_parser)
    run_parser.add_argument(
        "--profile",
        choices=["on-demand", "scheduled"],
        default="on-demand",
        help="Configuration profile supplying prefix and read cap defaults",
    )

    dims_parser = subparsers.add_parser("dimensions", help="Print the cached dimensions map")
    _add_pipeline_arguments(dims_parser)

    status_parser = subparsers.add_parser("status", help="Print how many images are cached")
    _add_pipeline_arguments(status_parser)

    schedule_parser = subparsers.add_parser(
        "schedule", help="Run the scheduled profile periodically"
    )
    _add_pipeline_arguments(schedule_parser)
    schedule_parser.add_argument(
        "--interval", type=float, default=3600.0, help="Seconds between runs"
    )
    schedule_parser.add_argument(
        "--max-runs", type=int, default=None, help="Stop after this many runs"
    )

    serve_parser = subparsers.add_parser("serve", help="Serve the HTTP API with uvicorn")
    _add_pipeline_arguments(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    subparsers.add_parser("version", help="Show version information")

    return parser


def build_config(args: argparse.Namespace, profile: str = "on-demand") -> PipelineConfig:
    """Merge CLI arguments over the environment and the chosen profile."""
    overrides: Dict[str, Any] = {
        "bucket": args.bucket,
        "cache_bucket": args.cache_bucket,
        "cache_namespace": args.cache_namespace,
        "prefix": args.prefix,
        "read_cap": args.read_cap,
        "processor": args.processor,
        "max_workers": args.max_workers,
        "object_timeout": args.object_timeout,
        "debug": args.debug,
    }
    if profile == "scheduled":
        return PipelineConfig.scheduled_profile(**overrides)
    return PipelineConfig.on_demand_profile(**overrides)


def run_cancellable(target: Callable[[], Any], cancel_event: threading.Event) -> Optional[Any]:
    """
    Run ``target`` in a worker thread so Ctrl-C can request cancellation.

    The first interrupt sets ``cancel_event``; the worker then finishes its
    in-flight objects and returns a partial result.
    """
    logger = get_logger("cli")
    result: Dict[str, Any] = {}

    def _target() -> None:
        result["value"] = target()

    worker = threading.Thread(target=_target, name="extraction-run", daemon=True)
    worker.start()
    while worker.is_alive():
        try:
            worker.join(timeout=0.5)
        except KeyboardInterrupt:
            logger.warning("Interrupted; finishing in-flight objects before exiting.")
            cancel_event.set()
    return result.get("value")


def _emit(status_code: int, payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2))
    if status_code != 200:
        sys.exit(1)


def main() -> None:
    """
    Entry point for the command-line interface of the image dimensions pipeline.

    Each pipeline command builds a ``PipelineConfig`` from ``DIMS_*``
    environment variables overlaid with its flags, wires an S3-backed
    trigger, and prints the JSON payload the HTTP API would return.
    """
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args()

    if args.command == "version":
        print("Image Dimensions CLI")
        print(f"Version {VERSION}")
        print("Incremental JPEG/PNG dimension extraction")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logger = get_logger("cli")
    try:
        profile = "scheduled" if args.command == "schedule" else getattr(args, "profile", "on-demand")
        config = build_config(args, profile)
        if config.debug:
            set_debug_logging(logger)
        trigger = create_trigger(
            config, scheduled_config=config if profile == "scheduled" else None
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    if args.command == "run":
        cancel_event = threading.Event()
        outcome = run_cancellable(
            lambda: trigger.run(config, cancel_event=cancel_event), cancel_event
        )
        if outcome is None:
            logger.error("Extraction run ended without a result.")
            sys.exit(1)
        status_code, payload, _ = outcome
        _emit(status_code, payload)

    elif args.command == "dimensions":
        _emit(*trigger.dimensions_map())

    elif args.command == "status":
        _emit(*trigger.status())

    elif args.command == "schedule":
        stop_event = threading.Event()
        runs = run_cancellable(
            lambda: run_periodically(trigger, args.interval, stop_event, args.max_runs),
            stop_event,
        )
        logger.info(f"Scheduler stopped after {runs or 0} run(s).")

    elif args.command == "serve":
        import uvicorn

        from .api import create_app

        uvicorn.run(create_app(trigger), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
