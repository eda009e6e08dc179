"""Command-line interface for the load-test runner."""

from __future__ import annotations

import argparse
import signal
from typing import Optional

from rich.console import Console
from rich.table import Table

from .config import generate_run_id, load_config
from .context import RunContext
from .errors import ActionFailedError, ConfigError
from .local import CommandRunner
from .pipeline import ActionSequencer, LoadTestRun
from .utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loadtest-runner",
        description="Build, deploy and load-test two branches, then compare the reports.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file (default: ./.env if present).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("run", "Run the full comparison pipeline"),
        ("steps", "List the pipeline steps without running them"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--reset-load-test",
            action="store_true",
            help="Stop and reset any leftover load test before seeding the database.",
        )
        sub.add_argument(
            "--keep-deployment",
            action="store_true",
            help="Skip destroying the deployment after the comparison.",
        )
    return parser


def _install_signal_handlers(ctx: RunContext) -> None:
    def handler(signum, frame) -> None:
        logger.warning("Received %s, cancelling run", signal.Signals(signum).name)
        ctx.cancel()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def handle_steps_command(run: LoadTestRun, args: argparse.Namespace, console: Console) -> int:
    actions = run.build_actions(
        reset_load_test=args.reset_load_test, keep_deployment=args.keep_deployment
    )
    table = Table(title=f"Pipeline for run {run.run_id}")
    table.add_column("#", justify="right")
    table.add_column("Step")
    for index, action in enumerate(actions):
        table.add_row(str(index), action.name)
    console.print(table)
    return 0


def handle_run_command(run: LoadTestRun, args: argparse.Namespace, console: Console) -> int:
    actions = run.build_actions(
        reset_load_test=args.reset_load_test, keep_deployment=args.keep_deployment
    )
    ctx = RunContext()
    _install_signal_handlers(ctx)
    logger.info("Starting run %s with %d steps", run.run_id, len(actions))
    try:
        ActionSequencer(actions).run(ctx)
    except ActionFailedError as exc:
        logger.error("%s", exc)
        console.print(f"[bold red]Failed at step {exc.index} ({exc.name})[/bold red]")
        return 1
    console.print("[bold green]Done![/bold green]")
    return 0


def dispatch_command(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    console = console or Console()
    configure_logging(args.verbose)
    try:
        config = load_config(args.env_file)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    run = LoadTestRun(config, generate_run_id(), CommandRunner())
    if args.command == "steps":
        return handle_steps_command(run, args, console)
    if args.command == "run":
        return handle_run_command(run, args, console)
    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return dispatch_command(args)
