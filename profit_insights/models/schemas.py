"""
Pydantic models for the Profit Insights backend.

This module provides type-safe data validation and serialization for:
- External read-only records (TimeEntry, Client, Project) fetched from the store
- The MetricBundle value object built by the metric aggregator
- Task contexts handed to the generative analysis service
- The Insight output entity and the API response envelopes

All models use Pydantic v2 syntax. Records coming from the data store are
tolerant of NULL numeric columns; derived models are frozen once built.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from profit_insights.models.enums import (
    AnalysisTaskName,
    ChallengeSeverity,
    EngineState,
    InsightCategory,
    InsightPriority,
    InsightType,
    TrendDirection,
    VisualizationType,
)


def _as_utc_datetime(value: Any) -> Any:
    """Coerce dates and naive datetimes to timezone-aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


# =============================================================================
# External Records (read-only, from the time-tracking store)
# =============================================================================


class TimeEntry(BaseModel):
    """
    One tracked work session.

    Duration is in minutes and never negative. Amount is derived from
    duration x rate for billable work and may be zero otherwise.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "id": "te_001",
                "start_time": "2026-01-12T09:00:00Z",
                "end_time": "2026-01-12T10:30:00Z",
                "duration": 90,
                "billable": True,
                "amount": 225.0,
                "hourly_rate": 150.0,
                "marketing_channel": "SEO",
                "marketing_category": "Content",
                "client_id": "cl_001",
                "project_id": "pr_001",
                "task_title": "Keyword research",
                "user_id": "usr_001"
            }
        }
    )

    id: str = Field(..., description="Time entry identifier")
    start_time: datetime = Field(..., description="Session start (naive values are UTC)")
    end_time: Optional[datetime] = Field(default=None, description="Session end")
    duration: float = Field(default=0.0, description="Duration in minutes")
    billable: bool = Field(default=False, description="Whether the session is billable")
    amount: float = Field(default=0.0, description="Monetary amount billed for the session")
    hourly_rate: float = Field(default=0.0, description="Hourly rate applied to the session")
    marketing_channel: Optional[str] = Field(default=None, description="Channel tag")
    marketing_category: Optional[str] = Field(default=None, description="Category tag")
    client_id: Optional[str] = Field(default=None, description="Client foreign key")
    project_id: Optional[str] = Field(default=None, description="Project foreign key")
    task_title: Optional[str] = Field(default=None, description="Free-text title")
    task_description: Optional[str] = Field(default=None, description="Free-text description")
    user_id: Optional[str] = Field(default=None, description="Owner identifier")

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def _normalize_timestamps(cls, value: Any) -> Any:
        return _as_utc_datetime(value)

    @field_validator('duration', 'amount', 'hourly_rate', mode='before')
    @classmethod
    def _null_to_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator('duration')
    @classmethod
    def _non_negative_duration(cls, value: float) -> float:
        return max(0.0, value)

    @field_validator('billable', mode='before')
    @classmethod
    def _null_to_false(cls, value: Any) -> Any:
        return False if value is None else value


class Client(BaseModel):
    """Client record with optional default rate and retainer terms."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., description="Client identifier")
    name: str = Field(default="Unknown", description="Display name")
    email: Optional[str] = Field(default=None, description="Contact email")
    hourly_rate: Optional[float] = Field(default=None, description="Default hourly rate")
    retainer_hours: Optional[float] = Field(default=None, description="Retainer hours per period")
    retainer_amount: Optional[float] = Field(default=None, description="Retainer amount per period")
    status: str = Field(default="active", description="active or inactive")

    @field_validator('name', 'status', mode='before')
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class Project(BaseModel):
    """Project record with optional budget, estimate and deadline."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., description="Project identifier")
    name: str = Field(default="Unknown", description="Display name")
    client_id: Optional[str] = Field(default=None, description="Owning client")
    budget_amount: Optional[float] = Field(default=None, description="Budget amount")
    estimated_hours: Optional[float] = Field(default=None, description="Estimated hours")
    deadline: Optional[datetime] = Field(default=None, description="Deadline")
    status: str = Field(default="active", description="active, planning, ...")

    @field_validator('name', 'status', mode='before')
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator('deadline', mode='before')
    @classmethod
    def _normalize_deadline(cls, value: Any) -> Any:
        return _as_utc_datetime(value)


# =============================================================================
# Metric Bundle Components
# =============================================================================


class ChannelMetrics(BaseModel):
    """Per-channel aggregates. Efficiency is revenue per billable hour."""
    model_config = ConfigDict(frozen=True)

    channel: str
    count: int = 0
    total_minutes: float = 0.0
    billable_minutes: float = 0.0
    total_revenue: float = 0.0
    avg_revenue_per_hour: float = 0.0
    billable_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    efficiency: float = Field(default=0.0, ge=0.0)


class ClientMetrics(BaseModel):
    """Per-client aggregates over the analysis window."""
    model_config = ConfigDict(frozen=True)

    client_id: str
    name: str = "Unknown"
    total_minutes: float = 0.0
    total_revenue: float = 0.0
    entry_count: int = 0
    last_activity: Optional[datetime] = None


class ProjectMetrics(BaseModel):
    """Per-project aggregates and health indicators."""
    model_config = ConfigDict(frozen=True)

    project_id: str
    name: str = "Unknown"
    total_minutes: float = 0.0
    total_revenue: float = 0.0
    deadline: Optional[datetime] = None
    budget: Optional[float] = None
    estimated_hours: Optional[float] = None
    completion_percent: Optional[float] = None
    budget_used: Optional[float] = None
    days_remaining: Optional[int] = None
    on_track: Optional[bool] = None


class TimePatterns(BaseModel):
    """Minutes per hour of day (0-23) and per weekday name."""
    model_config = ConfigDict(frozen=True)

    hourly: Dict[int, float] = Field(default_factory=dict)
    daily: Dict[str, float] = Field(default_factory=dict)
    peak_hours: List[int] = Field(default_factory=list)
    peak_days: List[str] = Field(default_factory=list)


class WeeklyPatterns(BaseModel):
    """Weekday focus figures and a 0-100 consistency score."""
    model_config = ConfigDict(frozen=True)

    monday_focus: float = 0.0
    friday_productivity: float = 0.0
    weekend_work: float = 0.0
    consistency_score: float = 0.0


class DailyAverages(BaseModel):
    model_config = ConfigDict(frozen=True)

    avg_daily_minutes: float = 0.0
    working_days: int = 0
    total_days: int = 0


class WeekBucket(BaseModel):
    """Totals for one ISO calendar week."""
    model_config = ConfigDict(frozen=True)

    total_minutes: float = 0.0
    revenue: float = 0.0
    entries: int = 0


class WeekOverWeek(BaseModel):
    """
    Rolling week-over-week comparison.

    "This week" is the last 7 whole days before now, "last week" the 7 days
    before that. Changes are percentages and are 0 when last week is 0.
    """
    model_config = ConfigDict(frozen=True)

    this_week_hours: float = 0.0
    last_week_hours: float = 0.0
    this_week_revenue: float = 0.0
    last_week_revenue: float = 0.0
    hours_change: float = 0.0
    revenue_change: float = 0.0
    productivity_change: float = 0.0
    trend: TrendDirection = TrendDirection.STABLE


class TimeSeriesPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    revenue: float = 0.0
    hours: float = 0.0


class Correlations(BaseModel):
    """Pearson coefficients in [-1, 1]; 0 when not computable."""
    model_config = ConfigDict(frozen=True)

    channel_revenue: float = 0.0
    time_productivity: float = 0.0
    project_profitability: float = 0.0


class SeasonalPatterns(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly: Dict[str, float] = Field(default_factory=dict)
    trend: str = "flat"
    seasonality: str = "low"


class UnderutilizedRetainer(BaseModel):
    """A client whose logged hours fall short of the retainer."""
    model_config = ConfigDict(frozen=True)

    client_id: str
    client: str
    retainer_hours: float
    hours_used: float
    unused_value: float


class Challenge(BaseModel):
    model_config = ConfigDict(frozen=True)

    issue: str
    impact: str
    severity: ChallengeSeverity


class OpportunityCandidate(BaseModel):
    """Data-derived opportunity (rate_increase or reactivation)."""
    model_config = ConfigDict(frozen=True)

    type: str
    channel: Optional[str] = None
    current_rate: Optional[float] = None
    suggested_rate: Optional[float] = None
    clients: Optional[int] = None
    potential_revenue: float = 0.0


class MarketOpportunity(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: str
    efficiency: float
    current_hours: float
    expansion_potential: str = "high"


class Highlight(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str


class MetricBundle(BaseModel):
    """
    All derived aggregates for one analysis window.

    Constructed fresh per request by aggregate_metrics(), never persisted
    and never mutated after construction.
    """
    model_config = ConfigDict(frozen=True)

    window_start: Optional[datetime] = None
    window_end: datetime
    entry_count: int = 0

    total_minutes: float = 0.0
    billable_minutes: float = 0.0
    total_revenue: float = 0.0
    billable_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    avg_hourly_rate: float = 0.0
    revenue_per_hour: float = 0.0
    avg_session_minutes: float = 0.0
    monthly_revenue: float = 0.0
    client_concentration: float = Field(default=0.0, ge=0.0, le=100.0)
    utilization: float = Field(default=0.0, ge=0.0, le=100.0)
    active_clients: int = 0
    project_count: int = 0
    top_channel: Optional[str] = None

    channel_metrics: Dict[str, ChannelMetrics] = Field(default_factory=dict)
    client_metrics: Dict[str, ClientMetrics] = Field(default_factory=dict)
    project_metrics: Dict[str, ProjectMetrics] = Field(default_factory=dict)

    time_patterns: TimePatterns = Field(default_factory=TimePatterns)
    weekly_patterns: WeeklyPatterns = Field(default_factory=WeeklyPatterns)
    daily_averages: DailyAverages = Field(default_factory=DailyAverages)
    weekly_trends: Dict[str, WeekBucket] = Field(default_factory=dict)
    week_over_week: WeekOverWeek = Field(default_factory=WeekOverWeek)
    time_series: List[TimeSeriesPoint] = Field(default_factory=list)
    correlations: Correlations = Field(default_factory=Correlations)
    seasonal_patterns: SeasonalPatterns = Field(default_factory=SeasonalPatterns)

    underutilized: List[UnderutilizedRetainer] = Field(default_factory=list)
    challenges: List[Challenge] = Field(default_factory=list)
    opportunities: List[OpportunityCandidate] = Field(default_factory=list)
    market_opportunities: List[MarketOpportunity] = Field(default_factory=list)
    highlights: List[Highlight] = Field(default_factory=list)

    @property
    def total_hours(self) -> float:
        return self.total_minutes / 60

    @property
    def billable_hours(self) -> float:
        return self.billable_minutes / 60


class WeeklyMetrics(BaseModel):
    """Reduced metric set feeding the weekly summary."""
    model_config = ConfigDict(frozen=True)

    window_start: datetime
    window_end: datetime
    entry_count: int = 0
    total_hours: float = 0.0
    billable_hours: float = 0.0
    revenue: float = 0.0
    active_clients: int = 0
    project_count: int = 0
    week_over_week: WeekOverWeek = Field(default_factory=WeekOverWeek)
    highlights: List[Highlight] = Field(default_factory=list)
    challenges: List[Challenge] = Field(default_factory=list)


# =============================================================================
# Generative Analysis Inputs
# =============================================================================


class AnalysisContext(BaseModel):
    """
    Task-specific payload handed to one analysis task.

    summary is a narrative, human-readable digest of the numbers; metrics
    holds the relevant metric slices and extras the task-specific derived
    lists (challenges, underutilized retainers, ...).
    """
    model_config = ConfigDict(frozen=True)

    task: AnalysisTaskName
    summary: str
    metrics: Dict[str, Any] = Field(default_factory=dict)
    extras: Dict[str, Any] = Field(default_factory=dict)


class CompletionOptions(BaseModel):
    """Options sent with every generative completion request."""
    model_config = ConfigDict(frozen=True)

    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=800, ge=1)


# =============================================================================
# Insight Output
# =============================================================================


class InsightComparison(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: float
    predicted: float
    change_percent: float


class InsightVisualization(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: VisualizationType = VisualizationType.CHART
    data: Optional[Any] = None


class Insight(BaseModel):
    """
    One prioritized, user-facing insight.

    Created by an analysis task (or the static onboarding/fallback sets),
    consumed by the ranker, never mutated after creation.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "rec-0",
                "type": "recommendation",
                "category": "revenue",
                "title": "Raise SEO rates by 15%",
                "description": "SEO work earns 40% above your average billable rate.",
                "impact": "+$1,800/month",
                "action_items": ["Update rate card", "Notify retainer clients"],
                "confidence": 0.8,
                "priority": "high"
            }
        }
    )

    id: str = Field(..., description="Insight identifier, unique within one response")
    type: InsightType = Field(..., description="Kind of insight")
    category: InsightCategory = Field(..., description="Business area")
    title: str = Field(..., description="Short headline")
    description: str = Field(default="", description="Explanation")
    impact: str = Field(default="", description="Impact statement")
    action_items: List[str] = Field(default_factory=list, description="Ordered next steps")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence in [0, 1]")
    priority: InsightPriority = Field(..., description="critical, high, medium or low")
    data_points: Optional[Dict[str, Any]] = Field(default=None, description="Supporting data")
    predicted_value: Optional[float] = Field(default=None, description="Predicted numeric value")
    predicted_date: Optional[str] = Field(default=None, description="Predicted date")
    comparison: Optional[InsightComparison] = Field(default=None, description="Before/after")
    visualization: Optional[InsightVisualization] = Field(default=None, description="Rendering hint")


class InsightRun(BaseModel):
    """Outcome of one pipeline execution: final state plus the ranked feed."""
    model_config = ConfigDict(frozen=True)

    state: EngineState
    insights: List[Insight] = Field(default_factory=list)
    reason: Optional[str] = None


# =============================================================================
# API Response Envelopes
# =============================================================================


class InsightsResponse(BaseModel):
    insights: List[Insight]
    phase: str = Field(..., description="ai-powered or rule-based")
    model: Optional[str] = Field(default=None, description="Generative model used")
    total_insights: int
    generated_at: datetime


class WeeklySummaryResponse(BaseModel):
    summary: str
    generated_at: datetime
