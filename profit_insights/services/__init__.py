"""
Profit Insights Services Module

This module contains the business logic of the insights generation pipeline.
Every stage except the engine is a pure function or a stateless definition.

Services:
- metric_aggregator: Time entries -> MetricBundle (pure, numpy statistics)
- context_builder: MetricBundle -> five task-specific AnalysisContexts
- generative: Generative analysis capability + OpenAI-compatible httpx client
- analysis_tasks: The five analysis tasks and their tolerant record mappers
- insight_ranker: Priority/confidence ordering, optional dedup, cap
- weekly_summary: Weekly summary prompt and fixed-section report rendering
- rule_insights: Heuristic insights computed without the generative service
- data_store: DataStore protocol + asyncpg implementation
- insights_engine: Orchestrator state machine and public entry points

Architecture:
- Repository Pattern: DataStore separates business logic from data access
- Dependency Injection: the engine receives its store and generative service
- Failure boundaries: per task, then per pipeline run

All services are designed to be consumed by the API layer (profit_insights/api/).
"""

# =============================================================================
# Metric Aggregator Exports
# Pure aggregation of time entries into the frozen MetricBundle
# =============================================================================

from profit_insights.services.metric_aggregator import (
    aggregate_metrics,
    aggregate_weekly_metrics,
    analyze_channels,
    calculate_week_over_week,
    find_underutilized,
    pearson,
)

# =============================================================================
# Context Builder Exports
# =============================================================================

from profit_insights.services.context_builder import (
    build_contexts,
    render_context,
)

# =============================================================================
# Generative Service Exports
# Capability interface and the chat-completions client behind it
# =============================================================================

from profit_insights.services.generative import (
    GenerativeAnalysisService,
    GenerativeServiceError,
    OpenAIGenerativeService,
)

# =============================================================================
# Analysis Task Exports
# =============================================================================

from profit_insights.services.analysis_tasks import (
    ANALYSIS_TASKS,
    AnalysisTask,
    run_analysis_task,
)

# =============================================================================
# Insight Ranker Exports
# =============================================================================

from profit_insights.services.insight_ranker import (
    MAX_INSIGHTS,
    rank_insights,
)

# =============================================================================
# Data Store Exports
# =============================================================================

from profit_insights.services.data_store import (
    DataStore,
    PostgresDataStore,
)

# =============================================================================
# Insights Engine Exports
# Orchestrator, state machine and static insight sets
# =============================================================================

from profit_insights.services.insights_engine import (
    InsightsEngine,
    InvalidStateTransition,
    PipelineRun,
    fallback_insights,
    onboarding_insights,
)


__all__ = [
    # ----- Metric Aggregator -----
    'aggregate_metrics',
    'aggregate_weekly_metrics',
    'analyze_channels',
    'calculate_week_over_week',
    'find_underutilized',
    'pearson',
    # ----- Context Builder -----
    'build_contexts',
    'render_context',
    # ----- Generative Service -----
    'GenerativeAnalysisService',
    'GenerativeServiceError',
    'OpenAIGenerativeService',
    # ----- Analysis Tasks -----
    'ANALYSIS_TASKS',
    'AnalysisTask',
    'run_analysis_task',
    # ----- Insight Ranker -----
    'MAX_INSIGHTS',
    'rank_insights',
    # ----- Data Store -----
    'DataStore',
    'PostgresDataStore',
    # ----- Insights Engine -----
    'InsightsEngine',
    'InvalidStateTransition',
    'PipelineRun',
    'fallback_insights',
    'onboarding_insights',
]
