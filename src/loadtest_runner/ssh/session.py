"""SSH session management built on Paramiko, authenticated via ssh-agent."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import paramiko

from ..context import RunContext
from ..errors import PipelineCancelled
from ..local.sink import ConsoleSink, OutputSink
from ..utils.logging import get_logger

logger = get_logger(__name__)


class SSHConnectionError(RuntimeError):
    """Raised when an SSH connection cannot be established."""

    pass


class RemoteCommandError(RuntimeError):
    """Raised when a remote command exits with a non-zero status."""

    def __init__(self, host: str, command: str, exit_status: int) -> None:
        self.host = host
        self.command = command
        self.exit_status = exit_status
        super().__init__(f"Remote command on {host} failed with code {exit_status}: {command}")


@dataclass
class SSHTarget:
    host: str
    username: str = "ubuntu"
    port: int = 22
    timeout: int = 20


class SSHSession:
    """High-level wrapper around paramiko.SSHClient.

    Keys come only from the caller's running agent; nothing is read from
    disk. Any host key is accepted.
    """

    def __init__(
        self,
        target: SSHTarget,
        *,
        sink: Optional[OutputSink] = None,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self.target = target
        self.sink = sink or ConsoleSink()
        self.poll_interval = poll_interval
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        if not os.environ.get("SSH_AUTH_SOCK"):
            raise SSHConnectionError("SSH_AUTH_SOCK is not set; a running ssh-agent is required")
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.target.host,
                port=self.target.port,
                username=self.target.username,
                timeout=self.target.timeout,
                allow_agent=True,
                look_for_keys=False,
            )
        except Exception as exc:  # pragma: no cover - network errors hard to simulate
            client.close()
            raise SSHConnectionError(f"{self.target.host}: {exc}") from exc
        self._client = client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(self, command: str, *, ctx: Optional[RunContext] = None) -> None:
        """Run `command` remotely, streaming its output; raise on failure."""
        if not self._client:
            self.connect()
        assert self._client is not None
        if ctx is not None:
            ctx.raise_if_cancelled()

        logger.debug("ssh %s@%s: %s", self.target.username, self.target.host, command)
        _, stdout, _ = self._client.exec_command(command)
        channel = stdout.channel
        # paramiko decodes text-mode files strictly; read bytes and decode leniently
        workers = [
            self._start_drain("stdout", channel.makefile("rb")),
            self._start_drain("stderr", channel.makefile_stderr("rb")),
        ]
        try:
            if ctx is not None:
                while not channel.exit_status_ready():
                    if ctx.wait(self.poll_interval):
                        channel.close()
                        raise PipelineCancelled(f"cancelled while running {command!r}")
            exit_status = channel.recv_exit_status()
        finally:
            for worker in workers:
                worker.join()

        if exit_status != 0:
            raise RemoteCommandError(self.target.host, command, exit_status)

    def _start_drain(self, name: str, stream) -> threading.Thread:
        def drain() -> None:
            for raw in stream:
                line = raw.decode("utf-8", errors="replace")
                self.sink.write_line(name, line.rstrip("\r\n"))

        worker = threading.Thread(target=drain, name=f"ssh-{name}", daemon=True)
        worker.start()
        return worker
