"""
Data Store - read-only access to time entries, clients and projects.

The insights engine depends only on the DataStore protocol; the three reads
are independent and the engine issues them concurrently. PostgresDataStore
implements the protocol on an asyncpg pool using the parameterized queries
in profit_insights.sql.

Errors (connection failures, query errors, rows that fail validation) are
not handled here: they propagate to the engine, which degrades to its
fallback insight set.
"""

import logging
from datetime import datetime
from typing import List, Protocol

from asyncpg import Pool

from profit_insights.models import Client, Project, TimeEntry
from profit_insights.sql import (
    ACTIVE_CLIENT_STATUS,
    OPEN_PROJECT_STATUSES,
    get_active_clients_query,
    get_open_projects_query,
    get_time_entries_query,
)


logger = logging.getLogger(__name__)


class DataStore(Protocol):
    """Read-only source of historical time-tracking records."""

    async def fetch_time_entries(self, user_id: str, scope_id: str, since: datetime) -> List[TimeEntry]:
        ...

    async def fetch_active_clients(self, scope_id: str) -> List[Client]:
        ...

    async def fetch_active_or_planning_projects(self, scope_id: str) -> List[Project]:
        ...


class PostgresDataStore:
    """
    asyncpg-backed DataStore.

    Args:
        pool: Connection pool created by profit_insights.core.database.init_db().
    """

    def __init__(self, pool: Pool):
        self._pool = pool

    async def fetch_time_entries(self, user_id: str, scope_id: str, since: datetime) -> List[TimeEntry]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(get_time_entries_query(), user_id, scope_id, since)
        entries = [TimeEntry.model_validate(dict(row)) for row in rows]
        logger.debug(f"Fetched {len(entries)} time entries for user {user_id} since {since.isoformat()}")
        return entries

    async def fetch_active_clients(self, scope_id: str) -> List[Client]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(get_active_clients_query(), scope_id, ACTIVE_CLIENT_STATUS)
        return [Client.model_validate(dict(row)) for row in rows]

    async def fetch_active_or_planning_projects(self, scope_id: str) -> List[Project]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(get_open_projects_query(), scope_id, list(OPEN_PROJECT_STATUSES))
        return [Project.model_validate(dict(row)) for row in rows]
