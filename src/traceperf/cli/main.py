"""
Command-line interface for the traceperf correlation engine.

This module provides the main CLI entry point, handling command-line
arguments, configuration loading and validation, and running an analysis of
a recorded trace or a benchmark event log.
"""

import argparse
import dataclasses
import logging
import signal
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, get_config_path, set_config_path, validate_app_config
from ..models.config import AppConfig
from ..validation import (
    EventsLostError,
    ValidationError,
    handle_cli_error,
    validate_path_exists,
    validate_positive_integer,
    validate_run_id,
)
from .orchestrator import AnalysisRunner

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    # Options shared by every subcommand.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, help="Path to config.toml (defaults to conf/config.toml if present).")
    common.add_argument("--output-dir", type=Path, help="Directory for result files (overrides [run] output_dir).")
    common.add_argument("--run-id", type=str, help="Run id used for result file names (overrides [run] run_id).")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    parser = argparse.ArgumentParser(
        prog="traceperf",
        description="Correlate trace events into per-iteration metrics and statistics.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser(
        "analyze",
        parents=[common],
        help="Replay a recorded trace through the correlation engine.",
    )
    analyze.add_argument("trace", type=Path, help="Recorded trace table (.parquet or .json).")
    analyze.add_argument("--target-pid", type=str, help="Process id rooting the tracked process tree.")
    analyze.add_argument(
        "--seed-target",
        action="store_true",
        help="Seed the target process from the live process before replay.",
    )

    summarize = subparsers.add_parser(
        "summarize",
        parents=[common],
        help="Compute iteration durations from a benchmark event log.",
    )
    summarize.add_argument("event_log", type=Path, help="Benchmark event log file.")

    return parser


def load_app_config(config_path: Optional[Path]) -> AppConfig:
    """
    Load the configuration file given on the command line, or the default
    one if it exists, or fall back to built-in defaults.
    """
    if config_path is not None:
        set_config_path(config_path)
        return get_config()
    if get_config_path().exists():
        return get_config()
    logger.info("No configuration file found; using built-in defaults")
    return validate_app_config({})


def apply_cli_overrides(app_config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """
    Return a copy of ``app_config`` with command-line values applied.

    Raises:
        ValidationError: If an override is invalid
    """
    engine = app_config.engine
    run = app_config.run

    target_pid = getattr(args, "target_pid", None)
    if target_pid is not None:
        engine = dataclasses.replace(
            engine,
            target_pid=validate_positive_integer(target_pid, min_value=0, field_name="--target-pid"),
        )
    if getattr(args, "seed_target", False):
        engine = dataclasses.replace(engine, seed_target_process=True)

    if args.run_id is not None:
        run = dataclasses.replace(run, run_id=validate_run_id(args.run_id, field_name="--run-id"))
    if args.output_dir is not None:
        run = dataclasses.replace(run, output_dir=args.output_dir)

    return dataclasses.replace(app_config, engine=engine, run=run)


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface.

    Raises:
        SystemExit: With code 1 on configuration errors, invalid arguments,
            lost events or analysis failures
    """
    args = build_parser().parse_args(argv)

    active_runner: Optional[AnalysisRunner] = None

    def global_signal_handler(signum, frame):
        """Stop feeding events and let the run finish without partial iterations."""
        logger.info(f"Signal {signal.strsignal(signum)} received. Initiating graceful shutdown...")
        if active_runner is not None:
            active_runner.request_shutdown()

    signal.signal(signal.SIGINT, global_signal_handler)
    signal.signal(signal.SIGTERM, global_signal_handler)

    try:
        app_config = apply_cli_overrides(load_app_config(args.config), args)
    except (FileNotFoundError, KeyError, tomllib.TOMLDecodeError, ValidationError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            include_traceback=False,
            logger=logger,
        )

    if args.command == "analyze" and app_config.engine.target_pid == 0:
        handle_cli_error(
            error=ValidationError(
                "No target process: pass --target-pid or set [engine] target_pid",
                field_name="--target-pid",
            ),
            context="argument validation",
            exit_code=1,
            logger=logger,
        )

    level = "DEBUG" if args.verbose else app_config.logging.level
    logging.getLogger().setLevel(getattr(logging, level))

    active_runner = AnalysisRunner(app_config)
    try:
        if args.command == "analyze":
            trace_path = Path(validate_path_exists(args.trace, field_name="trace"))
            result = active_runner.analyze_trace(trace_path)
        else:
            event_log_path = Path(validate_path_exists(args.event_log, field_name="event_log"))
            result = active_runner.summarize_event_log(event_log_path)
    except EventsLostError as e:
        handle_cli_error(error=e, context="trace capture", exit_code=1, logger=logger)
    except ValidationError as e:
        handle_cli_error(error=e, context="argument validation", exit_code=1, logger=logger)
    except (OSError, ValueError) as e:
        handle_cli_error(error=e, context=f"{args.command}", exit_code=1, include_traceback=True, logger=logger)

    if active_runner.shutdown_requested:
        logger.warning("Analysis was stopped early due to a shutdown request; open iterations were discarded.")

    print(result.markdown, end="")
    logger.info(f"Results saved to: {app_config.run.output_dir}")


if __name__ == "__main__":
    main_cli()
