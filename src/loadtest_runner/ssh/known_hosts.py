"""Trusting a freshly deployed host's key in the user's known_hosts file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional

from ..local import CommandRunner
from ..utils.logging import get_logger

logger = get_logger(__name__)

Scanner = Callable[[str], str]


def default_known_hosts_path() -> Path:
    return Path.home() / ".ssh" / "known_hosts"


def keyscan(runner: CommandRunner) -> Scanner:
    """Return a scanner that runs `ssh-keyscan <ip>` and yields its output."""

    def scan(ip: str) -> str:
        return runner.capture(["ssh-keyscan", ip])

    return scan


def scanned_entries(output: str) -> List[str]:
    entries = []
    for line in output.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        entries.append(line)
    return entries


def trust_host(ip: str, scanner: Scanner, known_hosts: Optional[Path] = None) -> List[str]:
    """Replace every known_hosts entry for `ip` with freshly scanned keys.

    Lines mentioning `ip` are dropped; every other line keeps its position.
    Returns the entries that were appended.
    """
    path = known_hosts or default_known_hosts_path()
    existing: List[str] = []
    if path.exists():
        existing = path.read_text(encoding="utf-8").splitlines()

    kept = [line for line in existing if ip not in line]
    removed = len(existing) - len(kept)
    while kept and not kept[-1].strip():
        kept.pop()

    new_entries = scanned_entries(scanner(ip))
    logger.info(
        "Trusting %s: removed %d stale entries, added %d", ip, removed, len(new_entries)
    )

    path.parent.mkdir(parents=True, exist_ok=True)
    content = "\n".join(kept + new_entries)
    path.write_text(content + "\n" if content else "", encoding="utf-8")
    os.chmod(path, 0o600)
    return new_entries
