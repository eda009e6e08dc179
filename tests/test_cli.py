"""Tests for the command-line interface."""

import io

import pytest
from rich.console import Console

from loadtest_runner import cli
from loadtest_runner.errors import ActionFailedError

ENV_FILE = """\
SERVER_DIR=/src/server
LOAD_TEST_DIR=/src/lt
SERVER_BASE_BRANCH=master
SERVER_NEW_BRANCH=feature
LOAD_TEST_BASE_BRANCH=master
LOAD_TEST_NEW_BRANCH=master
CLUSTER_NAME=clusterA
DURATION_TOTAL=1h
DURATION_OFFSET=0s
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # values loaded from env files must not leak into other tests
    for line in ENV_FILE.split():
        key = line.split("=")[0]
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / "run.env"
    path.write_text(ENV_FILE, encoding="utf-8")
    return str(path)


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_parser_run_flags():
    args = cli.build_parser().parse_args(["--env-file", "x.env", "run", "--keep-deployment"])
    assert args.command == "run"
    assert args.env_file == "x.env"
    assert args.keep_deployment is True
    assert args.reset_load_test is False


def test_steps_lists_pipeline(env_file, console):
    args = cli.build_parser().parse_args(["--env-file", env_file, "steps", "--reset-load-test"])
    assert cli.dispatch_command(args, console) == 0
    output = console.file.getvalue()
    assert "switch server to feature" in output
    assert "reset load test" in output
    assert "compare results" in output


def test_invalid_config_exits_with_error(tmp_path, console):
    path = tmp_path / "bad.env"
    path.write_text(ENV_FILE.replace("DURATION_TOTAL=1h", "DURATION_TOTAL=forever"), encoding="utf-8")
    args = cli.build_parser().parse_args(["--env-file", str(path), "run"])
    assert cli.dispatch_command(args, console) == 2


class _Sequencer:
    error = None
    ran = False

    def __init__(self, actions):
        self.actions = actions

    def run(self, ctx):
        _Sequencer.ran = True
        if self.error:
            raise self.error


def test_run_prints_done(env_file, console, monkeypatch):
    monkeypatch.setattr(cli, "ActionSequencer", _Sequencer)
    monkeypatch.setattr(cli, "_install_signal_handlers", lambda ctx: None)
    monkeypatch.setattr(_Sequencer, "error", None)
    args = cli.build_parser().parse_args(["--env-file", env_file, "run"])
    assert cli.dispatch_command(args, console) == 0
    assert _Sequencer.ran
    assert "Done!" in console.file.getvalue()


def test_run_failure_reports_step(env_file, console, monkeypatch):
    monkeypatch.setattr(cli, "ActionSequencer", _Sequencer)
    monkeypatch.setattr(cli, "_install_signal_handlers", lambda ctx: None)
    monkeypatch.setattr(
        _Sequencer, "error", ActionFailedError(4, "create deployment", RuntimeError("quota"))
    )
    args = cli.build_parser().parse_args(["--env-file", env_file, "run"])
    assert cli.dispatch_command(args, console) == 1
    assert "Failed at step 4 (create deployment)" in console.file.getvalue()
