"""Thin wrapper around the load-test repository's `ltctl` tool."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..context import RunContext
from ..errors import CommandError
from ..local import CommandRunner
from ..utils.logging import get_logger
from .info import parse_app_ip, parse_db_host

logger = get_logger(__name__)

REPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_COORDINATOR_MISSING = re.compile(r"load-test coordinator with id .+ not found")


def report_file(label: str, run_id: str) -> str:
    return f"{label}-{run_id}.out"


def results_file(run_id: str) -> str:
    return f"results-{run_id}.txt"


class LoadTestCtl:
    """Runs `go run ./cmd/ltctl ...` inside the load-test checkout."""

    def __init__(
        self,
        load_test_dir: Path,
        cluster_name: str,
        runner: CommandRunner,
        *,
        go_binary: str = "go",
    ) -> None:
        self.load_test_dir = load_test_dir
        self.cluster_name = cluster_name
        self.runner = runner
        self.go_binary = go_binary

    def command(self, *args: str) -> list[str]:
        return [self.go_binary, "run", "./cmd/ltctl", *args]

    def run(self, *args: str, ctx: Optional[RunContext] = None) -> None:
        command = self.command(*args)
        logger.info(" ".join(command))
        self.runner.stream(command, cwd=self.load_test_dir, ctx=ctx)

    def output(self, *args: str, ctx: Optional[RunContext] = None) -> str:
        return self.runner.capture(self.command(*args), cwd=self.load_test_dir, ctx=ctx)

    # deployment lifecycle

    def create_deployment(self, ctx: Optional[RunContext] = None) -> None:
        self.run("deployment", "create", ctx=ctx)

    def destroy_deployment(self, ctx: Optional[RunContext] = None) -> None:
        self.run("deployment", "destroy", ctx=ctx)

    def deployment_info(self, ctx: Optional[RunContext] = None) -> str:
        return self.output("deployment", "info", ctx=ctx)

    def app_ip(self, ctx: Optional[RunContext] = None) -> str:
        return parse_app_ip(self.deployment_info(ctx), self.cluster_name)

    def db_host(self, ctx: Optional[RunContext] = None) -> str:
        return parse_db_host(self.deployment_info(ctx))

    # load-test lifecycle

    def start_load_test(self, ctx: Optional[RunContext] = None) -> None:
        self.run("loadtest", "start", ctx=ctx)

    def stop_load_test(self, ctx: Optional[RunContext] = None) -> None:
        """Stop the running load test; a missing coordinator counts as stopped."""
        try:
            self.output("loadtest", "stop", ctx=ctx)
        except CommandError as exc:
            if _COORDINATOR_MISSING.search(str(exc)):
                logger.info("Load test already stopped")
                return
            raise

    def reset_load_test(self, ctx: Optional[RunContext] = None) -> None:
        self.run("loadtest", "reset", "--confirm", ctx=ctx)

    # reports

    def generate_report(
        self,
        label: str,
        run_id: str,
        start: datetime,
        end: datetime,
        ctx: Optional[RunContext] = None,
    ) -> str:
        output = report_file(label, run_id)
        self.run(
            "report", "generate",
            "--output", output,
            "--label", label,
            _utc(start), _utc(end),
            ctx=ctx,
        )
        return output

    def compare_reports(self, run_id: str, ctx: Optional[RunContext] = None) -> str:
        output = results_file(run_id)
        self.run(
            "report", "compare",
            report_file("base", run_id),
            report_file("new", run_id),
            "--output", output,
            "--graph",
            ctx=ctx,
        )
        return output


def _utc(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(REPORT_TIME_FORMAT)
