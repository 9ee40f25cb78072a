"""
FastAPI application entry point for the Profit Insights API.

This module wires the insights pipeline together and exposes it over HTTP:
- Configures logging from Settings.log_level
- Creates the asyncpg pool, the PostgresDataStore, the OpenAI-compatible
  generative service and the InsightsEngine in the lifespan handler
- Registers the insights router and health endpoints

Dependency injection for loose coupling: the engine lives on `app.state` and
reaches endpoints through profit_insights.core.dependencies.InsightsEngineDep.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from profit_insights import __version__
from profit_insights.api import api_router
from profit_insights.core.config import get_settings
from profit_insights.core.database import close_db, init_db
from profit_insights.services.data_store import PostgresDataStore
from profit_insights.services.generative import OpenAIGenerativeService
from profit_insights.services.insights_engine import InsightsEngine

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup:
        - Initialize database connection pool
        - Build the data store, generative service and insights engine

    On shutdown:
        - Close the generative service HTTP client
        - Close database connection pool
    """
    # Startup
    logger.info("Profit Insights API starting")
    generative = OpenAIGenerativeService.from_settings(settings)
    app.state.insights_engine = None
    try:
        pool = await init_db()
        logger.info("Database connection pool initialized")
        app.state.insights_engine = InsightsEngine.from_settings(
            settings, PostgresDataStore(pool), generative
        )
    except Exception as e:
        # Endpoints answer 503 until the engine exists
        logger.error(f"Failed to initialize database: {e}", exc_info=True)

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; AI insights will degrade to empty task results")

    yield

    # Shutdown
    logger.info("Profit Insights API shutting down")
    await generative.close()
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


# Create FastAPI application
app = FastAPI(
    title="Profit Insights API",
    version=__version__,
    description=(
        "Insights generation pipeline for time tracking and profitability "
        "analysis: AI insight feed, weekly summaries and rule-based insights."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Next.js dev server
        "http://127.0.0.1:3000",  # Alternative localhost
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status and whether the insights engine is ready
    """
    return {
        "status": "healthy",
        "engine_ready": getattr(app.state, "insights_engine", None) is not None,
    }


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Profit Insights API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "profit_insights.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
