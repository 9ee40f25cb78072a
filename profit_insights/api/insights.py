"""
FastAPI router module for insight endpoints.

This module implements endpoints for:
- AI insights: the ranked feed produced by the five generative analysis tasks
- Weekly summary: the fixed-section weekly performance report
- Rule-based insights: heuristics over the last 30 days, no generative calls

All handlers delegate to the InsightsEngine injected via InsightsEngineDep.
The engine never raises, so degraded conditions (no data, store failure,
generative failure) surface as the onboarding / fallback insight sets or the
static "unable to generate" summary rather than as HTTP errors.

User and team (scope) identifiers are taken from query parameters;
authentication and team resolution happen upstream of this service.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Query

from profit_insights.core.dependencies import InsightsEngineDep
from profit_insights.models import InsightsResponse, WeeklySummaryResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


PHASE_AI = "ai-powered"
PHASE_RULES = "rule-based"


@router.get("/ai", response_model=InsightsResponse)
async def get_ai_insights(
    engine: InsightsEngineDep,
    user_id: str = Query(..., min_length=1, description="User whose entries are analyzed"),
    team_id: str = Query(..., min_length=1, description="Team (scope) identifier"),
) -> InsightsResponse:
    """
    Generate the prioritized AI insight feed for a user.

    Returns at most `max_insights` insights, ordered by priority then
    confidence. Users without entries receive the onboarding set; pipeline
    failures return the single fallback insight.
    """
    insights = await engine.generate_insights(user_id, team_id)
    logger.info(f"Served {len(insights)} AI insights for user {user_id}")
    return InsightsResponse(
        insights=insights,
        phase=PHASE_AI,
        model=engine.model,
        total_insights=len(insights),
        generated_at=datetime.now(timezone.utc),
    )


@router.post("/ai/weekly-summary", response_model=WeeklySummaryResponse)
async def create_weekly_summary(
    engine: InsightsEngineDep,
    user_id: str = Query(..., min_length=1, description="User whose week is summarized"),
    team_id: str = Query(..., min_length=1, description="Team (scope) identifier"),
) -> WeeklySummaryResponse:
    """Generate the weekly performance summary report (markdown)."""
    summary = await engine.generate_weekly_summary(user_id, team_id)
    return WeeklySummaryResponse(summary=summary, generated_at=datetime.now(timezone.utc))


@router.get("/rules", response_model=InsightsResponse)
async def get_rule_based_insights(
    engine: InsightsEngineDep,
    user_id: str = Query(..., min_length=1, description="User whose entries are analyzed"),
    team_id: str = Query(..., min_length=1, description="Team (scope) identifier"),
) -> InsightsResponse:
    """
    Heuristic insights over the last 30 days.

    An empty list is returned when the data store cannot be read.
    """
    insights = await engine.generate_rule_based_insights(user_id, team_id)
    return InsightsResponse(
        insights=insights,
        phase=PHASE_RULES,
        total_insights=len(insights),
        generated_at=datetime.now(timezone.utc),
    )
