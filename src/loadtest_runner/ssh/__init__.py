"""SSH utilities for the load-test runner."""

from .known_hosts import keyscan, trust_host
from .session import (
    RemoteCommandError,
    SSHConnectionError,
    SSHSession,
    SSHTarget,
)

__all__ = [
    "keyscan",
    "trust_host",
    "RemoteCommandError",
    "SSHConnectionError",
    "SSHSession",
    "SSHTarget",
]
