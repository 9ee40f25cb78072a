"""
FastAPI dependency injection module for the Profit Insights backend.

This module provides the FastAPI dependency for the insights engine, keeping
endpoint handlers decoupled from how the engine, its data store and its
generative service are constructed.

Key Dependencies Provided:
- get_insights_engine: Returns the InsightsEngine built during app startup
- InsightsEngineDep: Type alias for injecting the InsightsEngine into endpoints

Design Pattern:
The engine is constructed once in the application lifespan (main.py) with
its DataStore and GenerativeAnalysisService passed in explicitly, then stored
on `app.state`. Endpoints receive it through InsightsEngineDep, so tests can
swap it out with `app.dependency_overrides[get_insights_engine]`.

Usage Examples:
    @router.get("/insights/ai")
    async def ai_insights(
        engine: InsightsEngineDep,
        user_id: str,
        team_id: str,
    ) -> InsightsResponse:
        insights = await engine.generate_insights(user_id, team_id)
        ...

See Also:
    - profit_insights/core/config.py: Settings management and environment variables
    - profit_insights/main.py: Lifespan wiring of pool, store, generative service, engine
    - profit_insights/api/insights.py: Endpoint handlers using these dependencies
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from profit_insights.services.insights_engine import InsightsEngine


# =============================================================================
# Insights Engine Dependency
# =============================================================================

def get_insights_engine(request: Request) -> InsightsEngine:
    """
    Return the InsightsEngine created during application startup.

    Raises:
        HTTPException: 503 if startup did not complete (for example the
            database pool could not be created).
    """
    engine = getattr(request.app.state, "insights_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Insights engine is not initialized")
    return engine


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(engine: InsightsEngineDep)
InsightsEngineDep = Annotated[InsightsEngine, Depends(get_insights_engine)]
