"""Cancellation context shared by every action of a run."""

from __future__ import annotations

import threading
from typing import Optional

from .errors import PipelineCancelled


class RunContext:
    """A cancellable context handed to each action.

    Blocking operations either wait on it directly (`wait`) or poll
    `raise_if_cancelled` between chunks of work.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to `timeout` seconds; True if the context was cancelled."""
        return self._cancelled.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise PipelineCancelled("run cancelled")
