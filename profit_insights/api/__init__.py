"""
Profit Insights API package initialization.

This package contains FastAPI router modules for the Profit Insights service:
- insights: AI insight feed, weekly summary, and rule-based insights
"""

from fastapi import APIRouter

from profit_insights.api.insights import router as insights_router

# Create main API router
api_router = APIRouter()

api_router.include_router(insights_router)  # insights router has its own prefix

__all__ = [
    "api_router",
    "insights_router",
]
