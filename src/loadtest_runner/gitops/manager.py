"""Git branch switching for the server and load-test checkouts."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..context import RunContext
from ..errors import CommandError
from ..local import CommandRunner
from ..utils.logging import get_logger

logger = get_logger(__name__)


class GitCommandError(RuntimeError):
    """Raised when a git command fails."""

    def __init__(self, command: list[str], exit_code: int, output: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"Git command {' '.join(command)} failed with code {exit_code}: {output}")


class GitRepositoryManager:
    """Wraps `git` CLI commands for an existing local checkout."""

    def __init__(self, runner: CommandRunner, git_binary: str = "git") -> None:
        self.runner = runner
        self.git_binary = git_binary

    def switch_branch(
        self, repo_dir: Path, branch: str, ctx: Optional[RunContext] = None
    ) -> None:
        try:
            previous = self.current_branch(repo_dir)
        except GitCommandError:
            # e.g. an unborn HEAD
            previous = "unknown"
        logger.info("Switching %s from %s to %s", repo_dir, previous, branch)
        self._run(["switch", branch], cwd=repo_dir, ctx=ctx)

    def current_branch(self, repo_dir: Path) -> str:
        command = [self.git_binary, "rev-parse", "--abbrev-ref", "HEAD"]
        try:
            return self.runner.capture(command, cwd=repo_dir).strip()
        except CommandError as exc:
            raise GitCommandError(exc.command, exc.exit_code, exc.output) from exc

    def _run(self, args: list[str], cwd: Path, ctx: Optional[RunContext]) -> None:
        command = [self.git_binary] + args
        try:
            self.runner.stream(command, cwd=cwd, ctx=ctx)
        except CommandError as exc:
            raise GitCommandError(exc.command, exc.exit_code, exc.output) from exc
