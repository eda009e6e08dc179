from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from loadtest_runner.config import RunConfig
from loadtest_runner.context import RunContext
from loadtest_runner.errors import ActionFailedError, CommandError, PipelineCancelled
from loadtest_runner.local import ListSink
from loadtest_runner.pipeline import ActionSequencer, LoadTestRun

INFO = "clusterA-app-0:  10.0.0.5\nDB writer endpoint: db.internal\n"
PACKAGE_OUTPUT = "tar -czf dist/lt-v1.tar.gz -C dist lt\n"


class FakeRunner:
    def __init__(self, fail_on: tuple | None = None) -> None:
        self.sink = ListSink()
        self.calls: list = []
        self.fail_on = fail_on

    def _record(self, args) -> None:
        args = [str(arg) for arg in args]
        self.calls.append(args)
        if self.fail_on and tuple(args[: len(self.fail_on)]) == self.fail_on:
            raise CommandError(args, 2, "make: *** [build] Error 2")

    def stream(self, args, cwd=None, *, ctx=None, env=None) -> None:
        self._record(args)

    def capture(self, args, cwd=None, *, ctx=None, env=None) -> str:
        self._record(args)
        if args[:2] == ["make", "package"]:
            return PACKAGE_OUTPUT
        if args[0] == "ssh-keyscan":
            return f"{args[1]} ssh-ed25519 AAAAkey\n"
        if list(args[3:]) == ["deployment", "info"]:
            return INFO
        return ""


class FakeSession:
    def __init__(self, log: list, target) -> None:
        self.log = log
        self.target = target

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc) -> None:
        pass

    def run(self, command: str, *, ctx=None) -> None:
        self.log.append((self.target.host, self.target.username, command))


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class LoadTestRunTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        (root / "lt" / "config").mkdir(parents=True)
        (root / "server").mkdir()
        self.deployer = root / "lt" / "config" / "deployer.json"
        self.deployer.write_text(json.dumps({"ClusterName": "clusterA", "LoadTestDownloadURL": ""}))
        self.config = RunConfig.from_env(
            {
                "SERVER_DIR": str(root / "server"),
                "LOAD_TEST_DIR": str(root / "lt"),
                "SERVER_BASE_BRANCH": "master",
                "SERVER_NEW_BRANCH": "feature",
                "LOAD_TEST_BASE_BRANCH": "lt-master",
                "LOAD_TEST_NEW_BRANCH": "lt-feature",
                "CLUSTER_NAME": "clusterA",
                "DURATION_TOTAL": "30m",
                "DURATION_OFFSET": "10m",
                "KNOWN_HOSTS_FILE": str(root / "known_hosts"),
            }
        )
        self.clock = FakeClock()
        self.waits: list = []
        self.remote_log: list = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _waiter(self, seconds: float, ctx) -> bool:
        self.waits.append(seconds)
        self.clock.now += timedelta(seconds=seconds)
        return True

    def _run(self, runner: FakeRunner, waiter=None) -> LoadTestRun:
        return LoadTestRun(
            self.config,
            "abcd1234",
            runner,  # type: ignore[arg-type]
            session_factory=lambda target: FakeSession(self.remote_log, target),  # type: ignore[arg-type,return-value]
            waiter=waiter or self._waiter,
            now=self.clock,
        )

    def test_action_list_order(self) -> None:
        names = [action.name for action in self._run(FakeRunner()).build_actions()]
        self.assertEqual(names[0], "destroy deployment")
        self.assertEqual(names[1], "switch server to master")
        self.assertIn("run base load test", names)
        self.assertLess(names.index("run base load test"), names.index("switch server to feature"))
        self.assertEqual(names[-2:], ["compare results", "destroy deployment"])
        self.assertEqual(names.count("destroy deployment"), 3)
        self.assertNotIn("reset load test", names)

    def test_optional_steps(self) -> None:
        names = [
            action.name
            for action in self._run(FakeRunner()).build_actions(reset_load_test=True, keep_deployment=True)
        ]
        self.assertEqual(names.count("reset load test"), 2)
        self.assertEqual(names.count("stop load test"), 2)
        self.assertLess(names.index("reset load test"), names.index("set up database"))
        self.assertEqual(names[-1], "compare results")

    def test_full_pipeline_issues_expected_commands(self) -> None:
        runner = FakeRunner()
        run = self._run(runner)
        ActionSequencer(run.build_actions()).run(RunContext())

        ltctl_calls = [" ".join(call[3:]) for call in runner.calls if call[:2] == ["go", "run"]]
        self.assertEqual(ltctl_calls[0], "deployment destroy")
        self.assertIn("report compare base-abcd1234.out new-abcd1234.out --output results-abcd1234.txt --graph", ltctl_calls)
        self.assertEqual(ltctl_calls[-1], "deployment destroy")
        generated = [call for call in ltctl_calls if call.startswith("report generate")]
        self.assertEqual(len(generated), 2)
        self.assertIn("--output base-abcd1234.out --label base", generated[0])
        self.assertIn("--output new-abcd1234.out --label new", generated[1])

        switches = [call[2] for call in runner.calls if call[:2] == ["git", "switch"]]
        self.assertEqual(switches, ["master", "lt-master", "feature", "lt-feature"])
        self.assertEqual(self.waits, [1800.0, 1800.0])

        deployer = json.loads(self.deployer.read_text())
        self.assertEqual(
            deployer["LoadTestDownloadURL"],
            f"file://{self.config.load_test_dir / 'dist/lt-v1.tar.gz'}",
        )
        self.assertIn("10.0.0.5 ssh-ed25519 AAAAkey", self.config.known_hosts_file.read_text())

        hosts = {entry[0] for entry in self.remote_log}
        self.assertEqual(hosts, {"10.0.0.5"})
        commands = [entry[2] for entry in self.remote_log]
        self.assertIn("/opt/mattermost/bin/mattermost db reset --confirm", commands)
        self.assertIn("sudo systemctl start mattermost", commands)
        self.assertTrue(any("psql -h db.internal -U mmuser clusterAdb -c 'DELETE FROM systems;'" in c for c in commands))

    def test_report_window_uses_offset(self) -> None:
        runner = FakeRunner()
        run = self._run(runner)
        run.run_load_test("base")(RunContext())

        generate = next(call for call in runner.calls if call[3:5] == ["report", "generate"])
        # 30 minute run, report on the last 10 minutes
        self.assertEqual(generate[-2:], ["2024-03-01 12:20:00", "2024-03-01 12:30:00"])

    def test_report_start_without_offset(self) -> None:
        run = self._run(FakeRunner())
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = start + timedelta(minutes=5)
        self.assertEqual(run.report_start(start, end), start)
        object.__setattr__(self.config, "duration_offset", timedelta(0))
        self.assertEqual(run.report_start(start, end), start)

    def test_failure_stops_pipeline_without_teardown(self) -> None:
        runner = FakeRunner(fail_on=("make", "build-linux-amd64"))
        run = self._run(runner)
        with self.assertRaises(ActionFailedError) as ctx:
            ActionSequencer(run.build_actions()).run(RunContext())
        self.assertEqual(ctx.exception.index, 2)
        self.assertEqual(ctx.exception.name, "build server")
        self.assertEqual(runner.calls[-1], ["make", "build-linux-amd64"])

    def test_cancelled_wait_fails_load_test(self) -> None:
        runner = FakeRunner()
        run = self._run(runner, waiter=lambda seconds, ctx: False)
        with self.assertRaises(PipelineCancelled):
            run.run_load_test("base")(RunContext())
        self.assertFalse(any(call[3:5] == ["report", "generate"] for call in runner.calls))


if __name__ == "__main__":
    unittest.main()
