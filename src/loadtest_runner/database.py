"""Seeding the deployment's database from the app host."""

from __future__ import annotations

import shlex
from typing import Callable, Optional

from .config import RunConfig
from .context import RunContext
from .ltctl import LoadTestCtl
from .utils.logging import get_logger

logger = get_logger(__name__)

RemoteRunner = Callable[[str, Optional[RunContext]], None]


class DatabaseSeeder:
    """Resets the server schema and loads the public test dump.

    psql runs on the app host, since the database is only reachable from
    inside the deployment.
    """

    def __init__(self, config: RunConfig, ltctl: LoadTestCtl, remote: RemoteRunner) -> None:
        self.config = config
        self.ltctl = ltctl
        self.remote = remote

    def psql(self, host: str) -> str:
        settings = self.config.remote
        return (
            f"export PGPASSWORD={shlex.quote(settings.db_password)}; "
            f"psql -h {shlex.quote(host)} -U {shlex.quote(settings.db_user)} "
            f"{shlex.quote(self.config.database_name)}"
        )

    def setup(self, ctx: Optional[RunContext] = None) -> None:
        settings = self.config.remote
        logger.info("Resetting server database")
        self.remote(f"{shlex.quote(settings.server_binary)} db reset --confirm", ctx)

        host = self.ltctl.db_host(ctx)
        logger.info("Importing %s into %s", settings.dump_url, host)
        self.remote(f"curl {shlex.quote(settings.dump_url)} | zcat | {self.psql(host)}", ctx)

        # The public dump carries a stale systems table that must be cleared
        if settings.post_import_sql:
            self.run_query(settings.post_import_sql, ctx)

    def run_query(self, query: str, ctx: Optional[RunContext] = None) -> None:
        host = self.ltctl.db_host(ctx)
        self.remote(f"{self.psql(host)} -c {shlex.quote(query)}", ctx)

    def restart_service(self, ctx: Optional[RunContext] = None) -> None:
        service = self.config.remote.service_name
        logger.info("Starting %s", service)
        self.remote(f"sudo systemctl start {shlex.quote(service)}", ctx)
