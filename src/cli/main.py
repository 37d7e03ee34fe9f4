"""
HotSwap Command Line.

Watches the current Go project, rebuilds it on change and restarts
the resulting binary.
Requires Python 3.11+.

Usage:
    hotswap -v -e .html .tmpl -p "-tags dev" -r "--port 8080"
"""

import argparse
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from engine.restarter import Restarter
from utils.logger import configure_logging, get_logger
from utils.options import RestartOptions
from watcher.directory_watcher import StartupError

logger = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hotswap",
        description="Rebuild and restart a Go program whenever its sources change",
    )
    parser.add_argument(
        "-e", "--ext",
        nargs="+",
        default=[],
        metavar="EXT",
        help="Additional extensions that trigger a rebuild (e.g. .html .tmpl)",
    )
    parser.add_argument(
        "-p", "--pass",
        dest="compile_tags",
        default="",
        help="Flags passed through to the build command, space separated",
    )
    parser.add_argument(
        "-r", "--run",
        dest="run_tags",
        default="",
        help="Arguments passed to the program, space separated",
    )
    parser.add_argument(
        "-s", "--source",
        type=Path,
        default=None,
        help="Directory to watch and build (default: current directory)",
    )
    parser.add_argument(
        "-n", "--name",
        dest="program_name",
        default="",
        help="Program name (default: base name of the source directory)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose logging",
    )
    return parser


def parse_options(argv: list[str] | None = None) -> RestartOptions:
    """Turn command line arguments into RestartOptions."""
    args = build_parser().parse_args(argv)
    data: dict[str, Any] = {
        "extensions": args.ext,
        "compile_tags": args.compile_tags,
        "run_tags": args.run_tags,
        "program_name": args.program_name,
        "verbose": args.verbose,
    }
    if args.source is not None:
        data["source"] = args.source
    return RestartOptions(**data)


def _handle_exit_signal(signum: int, frame: Any) -> None:
    logger.info("exiting", signal=signal.Signals(signum).name)
    sys.exit(0)


def prepare_signal_handling() -> None:
    signal.signal(signal.SIGINT, _handle_exit_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_exit_signal)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the hotswap command."""
    try:
        options = parse_options(argv)
    except (ValidationError, OSError) as e:
        # OSError: the working directory cannot be resolved
        configure_logging()
        logger.error("invalid_options", error=str(e))
        return 1

    configure_logging(verbose=options.verbose)
    logger.info("started", options=str(options))

    restarter = Restarter(options)
    try:
        restarter.watch()
    except StartupError as e:
        logger.error("startup_failed", error=str(e))
        return 1

    prepare_signal_handling()

    try:
        restarter.run_forever()
    finally:
        restarter.stop(terminate_child=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
