"""
Core infrastructure package for the Profit Insights backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL database connectivity via asyncpg
- FastAPI dependency injection utilities

This module re-exports configuration and database helpers for convenient
importing throughout the backend:

    from profit_insights.core import get_settings, init_db

The FastAPI dependencies live in profit_insights.core.dependencies and are
imported from there directly, since they depend on the services layer.

Usage Examples:
    # Configuration access
    from profit_insights.core import get_settings
    settings = get_settings()
    print(settings.insights_lookback_days)

    # Database pool lifecycle (in FastAPI lifespan)
    from profit_insights.core import init_db, close_db

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pool = await init_db()
        yield
        await close_db()
"""

# =============================================================================
# Re-exports from profit_insights.core.config
# =============================================================================
from profit_insights.core.config import Settings, get_settings

# =============================================================================
# Re-exports from profit_insights.core.database
# =============================================================================
from profit_insights.core.database import init_db, close_db

# =============================================================================
# Public API Definition
# =============================================================================

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
]
