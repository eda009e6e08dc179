"""Run configuration loaded from the environment (and an optional .env file)."""

from __future__ import annotations

import os
import re
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

DEFAULT_DB_PASSWORD = "mostest80098bigpass_"
DEFAULT_DUMP_URL = "https://lt-public-data.s3.amazonaws.com/12M_610_psql.sql.gz"

REQUIRED_KEYS = (
    "SERVER_DIR",
    "LOAD_TEST_DIR",
    "SERVER_BASE_BRANCH",
    "SERVER_NEW_BRANCH",
    "LOAD_TEST_BASE_BRANCH",
    "LOAD_TEST_NEW_BRANCH",
    "CLUSTER_NAME",
    "DURATION_TOTAL",
    "DURATION_OFFSET",
)

# Go duration syntax, e.g. "1h30m", "90s", "1.5h", "250ms"
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string into a timedelta."""
    text = value.strip()
    if not text:
        raise ConfigError("empty duration")
    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ConfigError(f"invalid duration {value!r}")
        seconds += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos == 0:
        raise ConfigError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * seconds)


def generate_run_id() -> str:
    """Short random token used to namespace report files for one run."""
    return secrets.token_hex(4)


@dataclass(frozen=True)
class RemoteConfig:
    """How to reach and drive the deployed app host."""

    ssh_user: str = "ubuntu"
    ssh_port: int = 22
    db_user: str = "mmuser"
    db_password: str = DEFAULT_DB_PASSWORD
    dump_url: str = DEFAULT_DUMP_URL
    server_binary: str = "/opt/mattermost/bin/mattermost"
    service_name: str = "mattermost"
    post_import_sql: str = "DELETE FROM systems;"


@dataclass(frozen=True)
class RunConfig:
    """Immutable run parameters, built once and passed to every component."""

    server_dir: Path
    load_test_dir: Path
    server_base_branch: str
    server_new_branch: str
    load_test_base_branch: str
    load_test_new_branch: str
    cluster_name: str
    duration_total: timedelta
    duration_offset: timedelta
    known_hosts_file: Path
    remote: RemoteConfig = field(default_factory=RemoteConfig)

    @property
    def deployer_config_path(self) -> Path:
        return self.load_test_dir / "config" / "deployer.json"

    @property
    def database_name(self) -> str:
        return f"{self.cluster_name}db"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "RunConfig":
        missing = [key for key in REQUIRED_KEYS if not env.get(key)]
        if missing:
            raise ConfigError("Missing configuration values: " + ", ".join(missing))

        duration_total = _duration(env, "DURATION_TOTAL")
        duration_offset = _duration(env, "DURATION_OFFSET")
        if duration_total <= timedelta(0):
            raise ConfigError("DURATION_TOTAL must be positive")
        if duration_offset < timedelta(0):
            raise ConfigError("DURATION_OFFSET must not be negative")

        try:
            ssh_port = int(env.get("SSH_PORT") or 22)
        except ValueError as exc:
            raise ConfigError(f"invalid SSH_PORT: {env.get('SSH_PORT')!r}") from exc

        defaults = RemoteConfig()
        remote = RemoteConfig(
            ssh_user=env.get("SSH_USER") or defaults.ssh_user,
            ssh_port=ssh_port,
            db_user=env.get("DB_USER") or defaults.db_user,
            db_password=env.get("DB_PASSWORD") or defaults.db_password,
            dump_url=env.get("DB_DUMP_URL") or defaults.dump_url,
            server_binary=env.get("SERVER_BINARY") or defaults.server_binary,
            service_name=env.get("SERVICE_NAME") or defaults.service_name,
            post_import_sql=env.get("POST_IMPORT_SQL", defaults.post_import_sql),
        )
        known_hosts = env.get("KNOWN_HOSTS_FILE") or "~/.ssh/known_hosts"

        return cls(
            server_dir=Path(env["SERVER_DIR"]).expanduser(),
            load_test_dir=Path(env["LOAD_TEST_DIR"]).expanduser(),
            server_base_branch=env["SERVER_BASE_BRANCH"],
            server_new_branch=env["SERVER_NEW_BRANCH"],
            load_test_base_branch=env["LOAD_TEST_BASE_BRANCH"],
            load_test_new_branch=env["LOAD_TEST_NEW_BRANCH"],
            cluster_name=env["CLUSTER_NAME"],
            duration_total=duration_total,
            duration_offset=duration_offset,
            known_hosts_file=Path(known_hosts).expanduser(),
            remote=remote,
        )


def _duration(env: Mapping[str, str], key: str) -> timedelta:
    try:
        return parse_duration(env[key])
    except ConfigError as exc:
        raise ConfigError(f"{key}: {exc}") from exc


def load_config(env_file: Optional[str] = None) -> RunConfig:
    """Load the run configuration.

    Values already present in the environment win over the .env file. When
    `env_file` is given it must exist; otherwise a `.env` in the working
    directory is picked up if present.
    """
    if env_file:
        path = Path(env_file)
        if not path.is_file():
            raise ConfigError(f"Could not find env file: {path}")
        load_dotenv(path)
    else:
        load_dotenv(find_dotenv(usecwd=True))
    return RunConfig.from_env(os.environ)
