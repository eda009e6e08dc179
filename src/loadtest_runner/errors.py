"""Exception types shared across the runner."""

from __future__ import annotations

from typing import Sequence


class ConfigError(ValueError):
    """Raised when the run configuration is missing or malformed."""


class PipelineCancelled(RuntimeError):
    """Raised when the run context is cancelled while an operation is blocked."""


class CommandError(RuntimeError):
    """Raised when a local command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], exit_code: int, output: str = "") -> None:
        self.command = list(command)
        self.exit_code = exit_code
        self.output = output
        message = f"Command {' '.join(self.command)} failed with code {exit_code}"
        if output:
            message = f"{message}: {output}"
        super().__init__(message)


class BuildOutputError(RuntimeError):
    """Raised when a build's output does not name the expected artifact."""

    def __init__(self, output: str) -> None:
        self.output = output
        super().__init__(f"could not find tarball in output: {output}")


class DeploymentInfoError(RuntimeError):
    """Raised when `deployment info` output lacks an expected field."""

    def __init__(self, field: str, text: str) -> None:
        self.field = field
        self.text = text
        super().__init__(f"could not find {field} in output: {text}")


class ActionFailedError(RuntimeError):
    """Raised by the sequencer for the first action that fails."""

    def __init__(self, index: int, name: str, cause: BaseException) -> None:
        self.index = index
        self.name = name
        self.cause = cause
        super().__init__(f"error running action {index} ({name}): {cause}")
