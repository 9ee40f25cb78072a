"""
Enumeration definitions for the Profit Insights backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models, enabling automatic serialization and
deserialization in API responses.
"""

from enum import Enum


class InsightType(str, Enum):
    """
    Kind of insight produced by the pipeline.

    - prediction: Forward-looking estimate (Predictions task)
    - anomaly: Deviation from normal behaviour (Anomalies task)
    - recommendation: Concrete optimization advice (Recommendations task, onboarding)
    - analysis: Discovered pattern or neutral observation (Patterns task, fallback)
    - warning: Rule-based alert raised without the generative service
    - opportunity: Growth or revenue opportunity (Opportunities task)
    """
    PREDICTION = "prediction"
    ANOMALY = "anomaly"
    RECOMMENDATION = "recommendation"
    ANALYSIS = "analysis"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"


class InsightCategory(str, Enum):
    """Business area an insight belongs to."""
    PRODUCTIVITY = "productivity"
    REVENUE = "revenue"
    EFFICIENCY = "efficiency"
    GROWTH = "growth"
    RISK = "risk"


class InsightPriority(str, Enum):
    """
    Priority levels, most urgent first.

    The ranker orders insights by PRIORITY_RANK (critical=0 ... low=3)
    before confidence.
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {
    InsightPriority.CRITICAL: 0,
    InsightPriority.HIGH: 1,
    InsightPriority.MEDIUM: 2,
    InsightPriority.LOW: 3,
}


class VisualizationType(str, Enum):
    """Rendering hint attached to pattern insights."""
    CHART = "chart"
    METRIC = "metric"
    TIMELINE = "timeline"


class TrendDirection(str, Enum):
    """
    Week-over-week revenue trend label.

    - up: revenue delta above +10%
    - down: revenue delta below -10%
    - stable: anything in between (including no prior-week revenue)
    """
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class ChallengeSeverity(str, Enum):
    """Severity attached to aggregator-detected challenges."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnalysisTaskName(str, Enum):
    """
    The five independent analysis tasks fanned out by the engine.

    Declaration order is the merge order used before ranking.
    """
    PREDICTIONS = "predictions"
    ANOMALIES = "anomalies"
    RECOMMENDATIONS = "recommendations"
    PATTERNS = "patterns"
    OPPORTUNITIES = "opportunities"


class EngineState(str, Enum):
    """
    Lifecycle of one insight generation run.

    IDLE -> FETCHING -> AGGREGATING -> ANALYZING -> RANKING -> DONE, with
    DEGRADED as the terminal state reachable from FETCHING or AGGREGATING
    (store failure, no entries in the window).
    """
    IDLE = "idle"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    ANALYZING = "analyzing"
    RANKING = "ranking"
    DONE = "done"
    DEGRADED = "degraded"
