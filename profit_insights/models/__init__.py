"""
Package initialization file for Profit Insights models.

This module exports all Pydantic schemas and enumerations from schemas.py and
enums.py, making them importable from profit_insights.models directly. Other
modules import data models from here without needing to know the internal
module structure.

Usage:
    from profit_insights.models import (
        TimeEntry,
        MetricBundle,
        Insight,
        InsightPriority,
        # ... etc
    )
"""

# =============================================================================
# Enums - Import and re-export all enumerations from enums.py
# =============================================================================

from profit_insights.models.enums import (
    # Insight Classification Enums
    InsightType,
    InsightCategory,
    InsightPriority,
    PRIORITY_RANK,
    VisualizationType,
    # Metric Enums
    TrendDirection,
    ChallengeSeverity,
    # Pipeline Enums
    AnalysisTaskName,
    EngineState,
)


# =============================================================================
# Schemas - Import and re-export all Pydantic models from schemas.py
# =============================================================================

from profit_insights.models.schemas import (
    # -------------------------------------------------------------------------
    # External Records
    # -------------------------------------------------------------------------
    TimeEntry,
    Client,
    Project,

    # -------------------------------------------------------------------------
    # Metric Bundle Components
    # -------------------------------------------------------------------------
    ChannelMetrics,
    ClientMetrics,
    ProjectMetrics,
    TimePatterns,
    WeeklyPatterns,
    DailyAverages,
    WeekBucket,
    WeekOverWeek,
    TimeSeriesPoint,
    Correlations,
    SeasonalPatterns,
    UnderutilizedRetainer,
    Challenge,
    OpportunityCandidate,
    MarketOpportunity,
    Highlight,
    MetricBundle,
    WeeklyMetrics,

    # -------------------------------------------------------------------------
    # Generative Analysis Inputs
    # -------------------------------------------------------------------------
    AnalysisContext,
    CompletionOptions,

    # -------------------------------------------------------------------------
    # Insight Output
    # -------------------------------------------------------------------------
    InsightComparison,
    InsightVisualization,
    Insight,
    InsightRun,

    # -------------------------------------------------------------------------
    # API Response Envelopes
    # -------------------------------------------------------------------------
    InsightsResponse,
    WeeklySummaryResponse,
)


__all__ = [
    # Enums
    "InsightType",
    "InsightCategory",
    "InsightPriority",
    "PRIORITY_RANK",
    "VisualizationType",
    "TrendDirection",
    "ChallengeSeverity",
    "AnalysisTaskName",
    "EngineState",
    # External Records
    "TimeEntry",
    "Client",
    "Project",
    # Metric Bundle Components
    "ChannelMetrics",
    "ClientMetrics",
    "ProjectMetrics",
    "TimePatterns",
    "WeeklyPatterns",
    "DailyAverages",
    "WeekBucket",
    "WeekOverWeek",
    "TimeSeriesPoint",
    "Correlations",
    "SeasonalPatterns",
    "UnderutilizedRetainer",
    "Challenge",
    "OpportunityCandidate",
    "MarketOpportunity",
    "Highlight",
    "MetricBundle",
    "WeeklyMetrics",
    # Generative Analysis Inputs
    "AnalysisContext",
    "CompletionOptions",
    # Insight Output
    "InsightComparison",
    "InsightVisualization",
    "Insight",
    "InsightRun",
    # API Response Envelopes
    "InsightsResponse",
    "WeeklySummaryResponse",
]
