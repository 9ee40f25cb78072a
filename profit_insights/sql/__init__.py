"""
SQL Query Module for the Profit Insights backend.

Provides the parameterized, read-only queries behind the time-tracking data
store: time entries, active clients, and active or planning projects.

Example usage:
    from profit_insights.sql import get_time_entries_query

    rows = await conn.fetch(get_time_entries_query(), user_id, team_id, since)
"""

from profit_insights.sql.insight_queries import (
    ACTIVE_CLIENT_STATUS,
    OPEN_PROJECT_STATUSES,
    get_time_entries_query,
    get_active_clients_query,
    get_open_projects_query,
)


__all__ = [
    "ACTIVE_CLIENT_STATUS",
    "OPEN_PROJECT_STATUSES",
    "get_time_entries_query",
    "get_active_clients_query",
    "get_open_projects_query",
]
