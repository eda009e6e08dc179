"""Time-based waiting while a load test runs."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Callable, Optional

from ..context import RunContext
from ..utils.logging import get_logger

logger = get_logger(__name__)

REPORT_INTERVAL = 10.0


def format_remaining(seconds: float) -> str:
    return str(timedelta(seconds=round(max(seconds, 0.0))))


def wait_for(
    duration: float,
    ctx: Optional[RunContext] = None,
    *,
    interval: float = REPORT_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    report: Optional[Callable[[float], None]] = None,
) -> bool:
    """Block for `duration` seconds, reporting the time left every `interval`.

    Returns False if `ctx` was cancelled first. The wait never ends early on
    its own: whatever runs in the background gets the full duration.
    """
    ctx = ctx or RunContext()
    report = report or (lambda left: logger.info("Time left: %s", format_remaining(left)))
    deadline = clock() + duration

    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            return True
        if ctx.wait(min(interval, remaining)):
            logger.warning("Wait cancelled with %s left", format_remaining(deadline - clock()))
            return False
        remaining = deadline - clock()
        if remaining > 0:
            report(remaining)
