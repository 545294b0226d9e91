# ============================================================================
# DATABASE PROBE
# ============================================================================
# EPOCH: 1 - DEPENDENCY PROBING
# STATUS: Probes - PostgreSQL connectivity
# PURPOSE: Open one connection and run SELECT 1
# CREATED: 06 OCT 2026
# ============================================================================
"""
Database Probe

Opens a fresh psycopg AsyncConnection per invocation (no pool, so a
broken pool can never hide a broken server) and runs SELECT 1.

Error types:
    connection_failed   connect raised
    ping_failed         SELECT 1 raised
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from psycopg import AsyncConnection
from psycopg.conninfo import make_conninfo

from core.config.settings import DatabaseTarget
from core.contracts import EntityKey, ProbeOutcome
from metrics.sink import DATABASE_UP
from probes.classifier import DATABASE_CLASSIFIER
from probes.core import CONTROL_FLOW, Probe, ProbeContext

logger = logging.getLogger(__name__)

Connect = Callable[..., Awaitable[Any]]


def database_entity(target: DatabaseTarget) -> EntityKey:
    return EntityKey.of(DATABASE_UP, instance=target.name, host=target.host, port=target.port)


def build_conninfo(target: DatabaseTarget, connect_timeout: float) -> str:
    """libpq connection string; connect_timeout is whole seconds, minimum 1."""
    return make_conninfo(
        host=target.host,
        port=target.port,
        user=target.user,
        password=target.password or None,
        dbname=target.database,
        sslmode=target.sslmode,
        connect_timeout=max(1, int(connect_timeout)),
        application_name="health-console",
    )


class DatabaseProbe(Probe):
    """SELECT 1 against one PostgreSQL instance."""

    name = "database"
    metric = DATABASE_UP
    timeout_seconds = 5.0
    classifier = DATABASE_CLASSIFIER

    def __init__(
        self,
        target: DatabaseTarget,
        timeout_seconds: Optional[float] = None,
        connect: Optional[Connect] = None,
    ):
        super().__init__(database_entity(target), timeout_seconds)
        self.target = target
        self._connect = connect or AsyncConnection.connect

    async def check(self, ctx: ProbeContext) -> ProbeOutcome:
        conninfo = build_conninfo(self.target, self.timeout_seconds)

        try:
            conn = await ctx.call(self._connect(conninfo, autocommit=True))
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "connection_failed", "connect")

        try:
            cursor = await ctx.call(conn.execute("SELECT 1"))
            await ctx.call(cursor.fetchone())
        except CONTROL_FLOW:
            raise
        except Exception as e:
            return self.failure(e, "ping_failed", "SELECT 1")
        finally:
            await self._close(conn)

        logger.info(f"Database {self.target.name} is healthy")
        return ProbeOutcome.ok(f"{self.target.name} reachable")

    async def _close(self, conn) -> None:
        try:
            await conn.close()
        except Exception as e:
            logger.debug(f"Closing connection to {self.target.name} failed: {e}")


__all__ = ["DatabaseProbe", "database_entity", "build_conninfo"]
