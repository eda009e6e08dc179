"""Destinations for streamed command output."""

from __future__ import annotations

import sys
import threading
from typing import List, Optional, TextIO, Tuple


class OutputSink:
    """Receives output lines from concurrently drained streams.

    Implementations must be safe to call from several threads.
    """

    def write_line(self, stream: str, line: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ConsoleSink(OutputSink):
    """Echo every line to the controlling process's stdout."""

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self._out = out
        self._lock = threading.Lock()

    def write_line(self, stream: str, line: str) -> None:
        out = self._out or sys.stdout
        with self._lock:
            out.write(line + "\n")
            out.flush()


class ListSink(OutputSink):
    """Collect lines in memory, tagged with the stream they came from."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.lines: List[Tuple[str, str]] = []

    def write_line(self, stream: str, line: str) -> None:
        with self._lock:
            self.lines.append((stream, line))

    def text(self, stream: Optional[str] = None) -> List[str]:
        with self._lock:
            return [line for name, line in self.lines if stream is None or name == stream]
