"""Strictly ordered execution of pipeline actions."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Sequence

from ..context import RunContext
from ..errors import ActionFailedError
from ..utils.logging import get_logger

logger = get_logger(__name__)

ActionFunc = Callable[[RunContext], None]


@dataclass(frozen=True)
class Action:
    """One step of the pipeline; `func` raises to signal failure."""

    name: str
    func: ActionFunc

    def __call__(self, ctx: RunContext) -> None:
        self.func(ctx)


class ActionSequencer:
    """Runs actions in order and stops at the first failure.

    There are no retries and no rollback: whatever earlier actions created
    (deployments included) is left as is.
    """

    def __init__(self, actions: Sequence[Action]) -> None:
        self.actions: List[Action] = list(actions)

    def run(self, ctx: RunContext) -> None:
        total = len(self.actions)
        for index, action in enumerate(self.actions):
            logger.info("📍 Step %d/%d: %s", index + 1, total, action.name)
            started = time.monotonic()
            try:
                ctx.raise_if_cancelled()
                action(ctx)
            except Exception as exc:
                logger.error("   ❌ %s failed after %.1fs", action.name, time.monotonic() - started)
                raise ActionFailedError(index, action.name, exc) from exc
            logger.info("   ✅ %s done in %.1fs", action.name, time.monotonic() - started)
