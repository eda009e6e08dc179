"""The fixed A/B action list: build, deploy, seed, load, report, compare."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..config import RunConfig
from ..context import RunContext
from ..database import DatabaseSeeder
from ..errors import PipelineCancelled
from ..gitops import GitRepositoryManager
from ..local import CommandRunner
from ..ltctl import LoadTestCtl, find_tarball, update_tarball_reference
from ..ssh import SSHSession, SSHTarget, keyscan, trust_host
from ..utils.logging import get_logger
from .sequencer import Action
from .waiter import wait_for

logger = get_logger(__name__)

SessionFactory = Callable[[SSHTarget], SSHSession]
Waiter = Callable[[float, Optional[RunContext]], bool]

SERVER_BUILD_TARGET = "build-linux-amd64"
LOAD_TEST_BUILD_TARGET = "package"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoadTestRun:
    """Collaborators and per-action behaviour for one comparison run."""

    def __init__(
        self,
        config: RunConfig,
        run_id: str,
        runner: CommandRunner,
        *,
        git: Optional[GitRepositoryManager] = None,
        ltctl: Optional[LoadTestCtl] = None,
        session_factory: Optional[SessionFactory] = None,
        waiter: Optional[Waiter] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.run_id = run_id
        self.runner = runner
        self.git = git or GitRepositoryManager(runner)
        self.ltctl = ltctl or LoadTestCtl(config.load_test_dir, config.cluster_name, runner)
        self.session_factory = session_factory or (
            lambda target: SSHSession(target, sink=runner.sink)
        )
        self.waiter = waiter or (lambda seconds, ctx: wait_for(seconds, ctx))
        self.now = now
        self.database = DatabaseSeeder(config, self.ltctl, self.run_remote)

    def run_remote(self, command: str, ctx: Optional[RunContext] = None) -> None:
        """Run `command` on the deployment's app host as the configured user."""
        target = SSHTarget(
            host=self.ltctl.app_ip(ctx),
            username=self.config.remote.ssh_user,
            port=self.config.remote.ssh_port,
        )
        with self.session_factory(target) as session:
            session.run(command, ctx=ctx)

    # individual actions

    def destroy_deployment(self, ctx: RunContext) -> None:
        self.ltctl.destroy_deployment(ctx)

    def create_deployment(self, ctx: RunContext) -> None:
        self.ltctl.create_deployment(ctx)

    def switch_server_branch(self, branch: str) -> Callable[[RunContext], None]:
        def action(ctx: RunContext) -> None:
            self.git.switch_branch(self.config.server_dir, branch, ctx)

        return action

    def switch_load_test_branch(self, branch: str) -> Callable[[RunContext], None]:
        def action(ctx: RunContext) -> None:
            self.git.switch_branch(self.config.load_test_dir, branch, ctx)

        return action

    def build_server(self, ctx: RunContext) -> None:
        self.runner.stream(["make", SERVER_BUILD_TARGET], cwd=self.config.server_dir, ctx=ctx)

    def build_load_test(self, ctx: RunContext) -> None:
        output = self.runner.capture(
            ["make", LOAD_TEST_BUILD_TARGET], cwd=self.config.load_test_dir, ctx=ctx
        )
        tarball = self.config.load_test_dir / find_tarball(output)
        update_tarball_reference(self.config.deployer_config_path, tarball)

    def trust_app_host(self, ctx: RunContext) -> None:
        ip = self.ltctl.app_ip(ctx)
        trust_host(ip, keyscan(self.runner), self.config.known_hosts_file)

    def stop_load_test(self, ctx: RunContext) -> None:
        self.ltctl.stop_load_test(ctx)

    def reset_load_test(self, ctx: RunContext) -> None:
        self.ltctl.reset_load_test(ctx)

    def setup_database(self, ctx: RunContext) -> None:
        self.database.setup(ctx)

    def restart_service(self, ctx: RunContext) -> None:
        self.database.restart_service(ctx)

    def run_load_test(self, label: str) -> Callable[[RunContext], None]:
        def action(ctx: RunContext) -> None:
            self.ltctl.start_load_test(ctx)
            started = self.now()
            total = self.config.duration_total.total_seconds()
            logger.info("Load test %r running for %s", label, self.config.duration_total)
            if not self.waiter(total, ctx):
                raise PipelineCancelled(f"cancelled while load test {label!r} was running")
            self.ltctl.stop_load_test(ctx)
            ended = self.now()
            self.ltctl.generate_report(label, self.run_id, self.report_start(started, ended), ended, ctx)

        return action

    def report_start(self, started: datetime, ended: datetime) -> datetime:
        """Start of the report window: the last DURATION_OFFSET of the run, or all of it."""
        offset = self.config.duration_offset
        if not offset:
            return started
        return max(started, ended - offset)

    def compare_results(self, ctx: RunContext) -> None:
        output = self.ltctl.compare_reports(self.run_id, ctx)
        logger.info("Comparison written to %s", output)

    # assembly

    def phase(self, label: str, server_branch: str, load_test_branch: str, reset_load_test: bool) -> List[Action]:
        actions = [
            Action(f"switch server to {server_branch}", self.switch_server_branch(server_branch)),
            Action("build server", self.build_server),
            Action(f"switch load test to {load_test_branch}", self.switch_load_test_branch(load_test_branch)),
            Action("build load test", self.build_load_test),
            Action("create deployment", self.create_deployment),
            Action("trust app host key", self.trust_app_host),
        ]
        if reset_load_test:
            actions += [
                Action("stop load test", self.stop_load_test),
                Action("reset load test", self.reset_load_test),
            ]
        actions += [
            Action("set up database", self.setup_database),
            # the server must restart after the data import
            Action("restart service", self.restart_service),
            Action(f"run {label} load test", self.run_load_test(label)),
        ]
        return actions

    def build_actions(self, *, reset_load_test: bool = False, keep_deployment: bool = False) -> List[Action]:
        config = self.config
        actions = [Action("destroy deployment", self.destroy_deployment)]
        actions += self.phase("base", config.server_base_branch, config.load_test_base_branch, reset_load_test)
        actions.append(Action("destroy deployment", self.destroy_deployment))
        actions += self.phase("new", config.server_new_branch, config.load_test_new_branch, reset_load_test)
        actions.append(Action("compare results", self.compare_results))
        if not keep_deployment:
            actions.append(Action("destroy deployment", self.destroy_deployment))
        return actions
