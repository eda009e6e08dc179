"""Pipeline sequencing for the A/B load-test comparison."""

from .actions import LoadTestRun
from .sequencer import Action, ActionSequencer
from .waiter import wait_for

__all__ = ["Action", "ActionSequencer", "LoadTestRun", "wait_for"]
