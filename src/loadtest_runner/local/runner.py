"""Local command execution with live output streaming."""

from __future__ import annotations

import os
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import IO, MutableSequence, Optional, Sequence, Union

from ..context import RunContext
from ..errors import CommandError, PipelineCancelled
from ..utils.logging import get_logger
from .sink import ConsoleSink, OutputSink

logger = get_logger(__name__)

PathLike = Union[str, Path]

# Lines of streamed output kept for the error message of a failed command
ERROR_TAIL_LINES = 20


class CommandRunner:
    """Runs external commands in a working directory.

    `stream` echoes output as it is produced; `capture` returns it. Both raise
    `CommandError` on a non-zero exit status.
    """

    def __init__(
        self,
        sink: Optional[OutputSink] = None,
        *,
        poll_interval: float = 0.1,
    ) -> None:
        self.sink = sink or ConsoleSink()
        self.poll_interval = poll_interval

    def stream(
        self,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        *,
        ctx: Optional[RunContext] = None,
        env: Optional[dict] = None,
    ) -> None:
        """Run `args`, forwarding stdout and stderr line by line to the sink."""
        self._execute(args, cwd, ctx=ctx, env=env, merge_stderr=False, echo=True)

    def capture(
        self,
        args: Sequence[str],
        cwd: Optional[PathLike] = None,
        *,
        ctx: Optional[RunContext] = None,
        env: Optional[dict] = None,
    ) -> str:
        """Run `args` and return its combined stdout and stderr."""
        lines = self._execute(args, cwd, ctx=ctx, env=env, merge_stderr=True, echo=False)
        return "".join(lines)

    def _execute(
        self,
        args: Sequence[str],
        cwd: Optional[PathLike],
        *,
        ctx: Optional[RunContext],
        env: Optional[dict],
        merge_stderr: bool,
        echo: bool,
    ) -> MutableSequence[str]:
        command = [str(arg) for arg in args]
        if ctx is not None:
            ctx.raise_if_cancelled()
        logger.debug("Running %s in %s", " ".join(command), cwd or os.getcwd())
        try:
            process = subprocess.Popen(
                command,
                cwd=str(cwd) if cwd else None,
                env={**os.environ, **env} if env else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise CommandError(command, -1, str(exc)) from exc

        # echoed output is already on the sink; keep only the tail for errors
        collected: MutableSequence[str] = deque(maxlen=ERROR_TAIL_LINES) if echo else []
        lock = threading.Lock()
        workers = [self._start_drain("stdout", process.stdout, collected, lock, echo)]
        if not merge_stderr:
            workers.append(self._start_drain("stderr", process.stderr, collected, lock, echo))

        try:
            self._wait(process, ctx)
        finally:
            for worker in workers:
                worker.join()

        if process.returncode != 0:
            raise CommandError(command, process.returncode, "".join(collected).strip())
        return collected

    def _start_drain(
        self,
        name: str,
        pipe: Optional[IO[str]],
        collected: MutableSequence[str],
        lock: threading.Lock,
        echo: bool,
    ) -> threading.Thread:
        def drain() -> None:
            assert pipe is not None
            with pipe:
                for line in pipe:
                    with lock:
                        collected.append(line)
                    if echo:
                        self.sink.write_line(name, line.rstrip("\r\n"))

        worker = threading.Thread(target=drain, name=f"drain-{name}", daemon=True)
        worker.start()
        return worker

    def _wait(self, process: subprocess.Popen, ctx: Optional[RunContext]) -> None:
        if ctx is None:
            process.wait()
            return
        while True:
            try:
                process.wait(timeout=self.poll_interval)
                return
            except subprocess.TimeoutExpired:
                if ctx.cancelled:
                    logger.warning("Cancelled, terminating %s", process.args[0])
                    process.terminate()
                    try:
                        process.wait(timeout=10)
                    except subprocess.TimeoutExpired:
                        process.kill()
                        process.wait()
                    raise PipelineCancelled(f"cancelled while running {process.args[0]}")
