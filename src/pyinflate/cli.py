"""Command-line entry point for pyinflate."""

import argparse
import logging
import sys

import uvicorn

from pyinflate.api import create_app
from pyinflate.config import InflatorSettings, get_settings
from pyinflate.engine import InflationEngine
from pyinflate.errors import AllocationError, InvalidParameterError
from pyinflate.logging_setup import configure_logging
from pyinflate.service import InflatorService

logger = logging.getLogger(__name__)


def build_parser(settings: InflatorSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyinflate",
        description="Allocate and touch physical memory to exercise memory-pressure scenarios.",
    )
    sub = parser.add_subparsers(dest="command")

    inflate = sub.add_parser("inflate", help="Allocate memory (runs synchronously)")
    inflate.add_argument("--max-mb", type=int, default=settings.default_max_mb, dest="max_mb",
                         help="Additional MB to allocate on top of the current total")
    inflate.add_argument("--step-mb", type=int, default=settings.default_step_mb, dest="step_mb",
                         help="MB allocated per step")
    inflate.add_argument("--interval", type=float, default=settings.step_interval,
                         help="Seconds between steps")

    sub.add_parser("status", help="Show current allocation")
    sub.add_parser("reset", help="Free allocated memory")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.api_host)
    serve.add_argument("--port", type=int, default=settings.api_port)

    sub.add_parser("dashboard", help="Run the live terminal dashboard")
    sub.add_parser("help", help="Show this message")
    return parser


def cmd_inflate(args: argparse.Namespace) -> int:
    engine = InflationEngine(step_interval=args.interval)
    try:
        engine.inflate_to(args.max_mb, args.step_mb)
    except InvalidParameterError as e:
        logger.error(str(e))
        return 2
    except AllocationError as e:
        logger.error(f"Inflation aborted: {e}")
        return 1
    print(f"Inflation complete: {engine.allocated_mb} MB allocated")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    # A CLI process starts with an empty engine; status is always zero
    status = InflationEngine().status()
    print(f"AllocatedMB: {status.allocated_mb}, Blocks: {status.block_count}")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    InflationEngine().reset()
    print("Reset allocation to 0 MB")
    return 0


def cmd_serve(args: argparse.Namespace, settings: InflatorSettings) -> int:
    service = InflatorService(InflationEngine(step_interval=settings.step_interval))
    server: uvicorn.Server | None = None

    def shutdown() -> None:
        if server is not None:
            server.should_exit = True

    app = create_app(service=service, settings=settings, shutdown=shutdown)
    config = uvicorn.Config(app, host=args.host, port=args.port, log_config=None)
    server = uvicorn.Server(config)
    logger.info(f"Serving pyinflate API on {args.host}:{args.port}")
    server.run()
    return 0


def cmd_dashboard(args: argparse.Namespace, settings: InflatorSettings) -> int:
    from pyinflate.app import InflatorApp

    InflatorApp(settings=settings).run()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the pyinflate command."""
    settings = get_settings()
    configure_logging(settings.log_level)

    parser = build_parser(settings)
    args = parser.parse_args(argv)

    if args.command == "inflate":
        return cmd_inflate(args)
    if args.command == "status":
        return cmd_status(args)
    if args.command == "reset":
        return cmd_reset(args)
    if args.command == "serve":
        return cmd_serve(args, settings)
    if args.command == "dashboard":
        return cmd_dashboard(args, settings)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
