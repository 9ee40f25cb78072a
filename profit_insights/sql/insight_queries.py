"""
Insight Queries Module for the Profit Insights backend.

Provides the parameterized, read-only PostgreSQL queries used by the data
store adapter (profit_insights.services.data_store.PostgresDataStore):

- Time entries for one user within a team (scope) since a given timestamp
- Active clients of a team
- Active or planning projects of a team

All values are bound as asyncpg positional parameters ($1, $2, ...); nothing
is interpolated into the SQL text. Identifier columns are cast to text so
UUID and text keys both map onto the string ids of the pydantic models.

This module follows the Repository Pattern for clean separation between
business logic and data access.
"""

from typing import Tuple


# =============================================================================
# CONSTANTS
# =============================================================================

ACTIVE_CLIENT_STATUS: str = "active"

# Projects in these states still receive tracked time
OPEN_PROJECT_STATUSES: Tuple[str, ...] = ("active", "planning")


# =============================================================================
# TIME ENTRIES
# =============================================================================

TIME_ENTRIES_QUERY = """
    SELECT
        id::text AS id,
        start_time,
        end_time,
        COALESCE(duration, 0) AS duration,
        COALESCE(billable, FALSE) AS billable,
        COALESCE(amount, 0) AS amount,
        COALESCE(hourly_rate, 0) AS hourly_rate,
        marketing_channel,
        marketing_category,
        client_id::text AS client_id,
        project_id::text AS project_id,
        task_title,
        task_description,
        user_id::text AS user_id
    FROM time_entries
    WHERE user_id::text = $1
      AND team_id::text = $2
      AND start_time >= $3
    ORDER BY start_time DESC
"""


def get_time_entries_query() -> str:
    """
    Query for a user's time entries in a team since a timestamp.

    Parameters:
        $1: user id
        $2: team (scope) id
        $3: inclusive lower bound on start_time (timestamptz)

    Returns:
        Parameterized PostgreSQL query string, newest entries first.
    """
    return TIME_ENTRIES_QUERY


# =============================================================================
# CLIENTS
# =============================================================================

ACTIVE_CLIENTS_QUERY = """
    SELECT
        id::text AS id,
        name,
        email,
        hourly_rate,
        retainer_hours,
        retainer_amount,
        status
    FROM clients
    WHERE team_id::text = $1
      AND status = $2
    ORDER BY name, id
"""


def get_active_clients_query() -> str:
    """Parameters: $1 team id, $2 client status (ACTIVE_CLIENT_STATUS)."""
    return ACTIVE_CLIENTS_QUERY


# =============================================================================
# PROJECTS
# =============================================================================

OPEN_PROJECTS_QUERY = """
    SELECT
        id::text AS id,
        name,
        client_id::text AS client_id,
        budget_amount,
        estimated_hours,
        deadline,
        status
    FROM projects
    WHERE team_id::text = $1
      AND status = ANY($2::text[])
    ORDER BY name, id
"""


def get_open_projects_query() -> str:
    """Parameters: $1 team id, $2 list of statuses (OPEN_PROJECT_STATUSES)."""
    return OPEN_PROJECTS_QUERY
