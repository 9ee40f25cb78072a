"""
Context Builder - task-specific payloads for the five analysis tasks.

build_contexts() slices a MetricBundle into one AnalysisContext per task:

| Task            | Metric slices                                        | Extras                                |
|-----------------|------------------------------------------------------|---------------------------------------|
| predictions     | totals, date range, channels, clients, trends        | -                                     |
| anomalies       | weekly patterns, daily averages, projects            | -                                     |
| recommendations | billable rate, session length, concentration, $/h    | challenges, opportunities             |
| patterns        | time series, correlations                            | seasonal_patterns                     |
| opportunities   | monthly revenue, active clients, utilization, top ch | underutilized, market_opportunities   |

The bundle is only read (it is frozen). Floats are rounded to 2 decimals and
mapping keys are serialized sorted, so identical input always renders to
identical prompt text.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from profit_insights.models import (
    AnalysisContext,
    AnalysisTaskName,
    Client,
    MetricBundle,
    Project,
    TimeEntry,
)


DECIMALS = 2


def _normalize(value: Any) -> Any:
    """Round floats and stringify mapping keys, recursively."""
    if isinstance(value, float):
        return round(value, DECIMALS)
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def _dump(value: Any) -> Any:
    """JSON-compatible, rounded form of a model, a mapping of models or a list of models."""
    if hasattr(value, "model_dump"):
        return _normalize(value.model_dump(mode="json"))
    if isinstance(value, dict):
        return {str(k): _dump(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_dump(v) for v in value]
    return _normalize(value)


def _fmt(value: float) -> str:
    return f"{value:,.{DECIMALS}f}"


def _iso(ts: Optional[datetime]) -> str:
    return ts.isoformat() if ts is not None else "n/a"


# =============================================================================
# Per-task builders
# =============================================================================


def _predictions_context(bundle: MetricBundle, entries: Sequence[TimeEntry]) -> AnalysisContext:
    summary = "\n".join([
        "Time Entries Summary:",
        f"- Total entries: {len(entries)}",
        f"- Date range: {_iso(bundle.window_start)} to {_iso(bundle.window_end)}",
        f"- Total hours: {_fmt(bundle.total_hours)}",
        f"- Billable rate: {_fmt(bundle.billable_rate)}%",
        f"- Average hourly rate: ${_fmt(bundle.avg_hourly_rate)}",
    ])
    return AnalysisContext(
        task=AnalysisTaskName.PREDICTIONS,
        summary=summary,
        metrics={
            "total_entries": len(entries),
            "date_range": {"start": _iso(bundle.window_start), "end": _iso(bundle.window_end)},
            "total_hours": _normalize(bundle.total_hours),
            "billable_rate": _normalize(bundle.billable_rate),
            "avg_hourly_rate": _normalize(bundle.avg_hourly_rate),
            "channel_metrics": _dump(bundle.channel_metrics),
            "client_metrics": _dump(bundle.client_metrics),
            "trends": {
                "weekly": _dump(bundle.weekly_trends),
                "week_over_week": _dump(bundle.week_over_week),
            },
        },
    )


def _anomalies_context(bundle: MetricBundle, projects: Sequence[Project]) -> AnalysisContext:
    daily = bundle.daily_averages
    summary = "\n".join([
        "Work Pattern Summary:",
        f"- Working days tracked: {daily.working_days} of {daily.total_days}",
        f"- Average minutes per working day: {_fmt(daily.avg_daily_minutes)}",
        f"- Consistency score: {_fmt(bundle.weekly_patterns.consistency_score)}",
        f"- Weekend minutes: {_fmt(bundle.weekly_patterns.weekend_work)}",
        f"- Active or planned projects: {len(projects)}",
    ])
    return AnalysisContext(
        task=AnalysisTaskName.ANOMALIES,
        summary=summary,
        metrics={
            "weekly_patterns": _dump(bundle.weekly_patterns),
            "daily_averages": _dump(bundle.daily_averages),
            "project_metrics": _dump(bundle.project_metrics),
        },
    )


def _recommendations_context(bundle: MetricBundle) -> AnalysisContext:
    summary = "\n".join([
        "Current Performance:",
        f"- Billable utilization: {_fmt(bundle.billable_rate)}%",
        f"- Average session: {_fmt(bundle.avg_session_minutes)} minutes",
        f"- Client concentration: {_fmt(bundle.client_concentration)}%",
        f"- Revenue per hour: ${_fmt(bundle.revenue_per_hour)}",
    ])
    return AnalysisContext(
        task=AnalysisTaskName.RECOMMENDATIONS,
        summary=summary,
        metrics={
            "billable_rate": _normalize(bundle.billable_rate),
            "avg_session_minutes": _normalize(bundle.avg_session_minutes),
            "client_concentration": _normalize(bundle.client_concentration),
            "revenue_per_hour": _normalize(bundle.revenue_per_hour),
        },
        extras={
            "challenges": _dump(bundle.challenges),
            "opportunities": _dump(bundle.opportunities),
        },
    )


def _patterns_context(bundle: MetricBundle) -> AnalysisContext:
    corr = bundle.correlations
    summary = "\n".join([
        f"Time series: {len(bundle.time_series)} tracked days",
        "Correlations found:",
        f"- Channel vs Revenue: {corr.channel_revenue}",
        f"- Time of day vs Productivity: {corr.time_productivity}",
        f"- Project time vs Profitability: {corr.project_profitability}",
        f"Seasonal trend: {bundle.seasonal_patterns.trend} "
        f"(seasonality {bundle.seasonal_patterns.seasonality})",
    ])
    return AnalysisContext(
        task=AnalysisTaskName.PATTERNS,
        summary=summary,
        metrics={
            "time_series": _dump(bundle.time_series),
            "correlations": _dump(bundle.correlations),
        },
        extras={"seasonal_patterns": _dump(bundle.seasonal_patterns)},
    )


def _opportunities_context(bundle: MetricBundle, clients: Sequence[Client]) -> AnalysisContext:
    retainers = sum(1 for c in clients if c.retainer_hours)
    summary = "\n".join([
        "Current state:",
        f"- Monthly revenue: ${_fmt(bundle.monthly_revenue)}",
        f"- Active clients: {bundle.active_clients} ({retainers} on retainer)",
        f"- Utilization: {_fmt(bundle.utilization)}%",
        f"- Top channel: {bundle.top_channel or 'n/a'}",
    ])
    return AnalysisContext(
        task=AnalysisTaskName.OPPORTUNITIES,
        summary=summary,
        metrics={
            "monthly_revenue": _normalize(bundle.monthly_revenue),
            "active_clients": bundle.active_clients,
            "utilization": _normalize(bundle.utilization),
            "top_channel": bundle.top_channel,
        },
        extras={
            "underutilized": _dump(bundle.underutilized),
            "market_opportunities": _dump(bundle.market_opportunities),
        },
    )


# =============================================================================
# Public API
# =============================================================================


def build_contexts(
    bundle: MetricBundle,
    entries: Sequence[TimeEntry],
    clients: Sequence[Client],
    projects: Sequence[Project],
) -> Dict[AnalysisTaskName, AnalysisContext]:
    """
    Build the five analysis contexts, keyed and ordered by task.

    Returns:
        Dict with exactly one AnalysisContext per AnalysisTaskName, in task
        declaration order.
    """
    return {
        AnalysisTaskName.PREDICTIONS: _predictions_context(bundle, entries),
        AnalysisTaskName.ANOMALIES: _anomalies_context(bundle, projects),
        AnalysisTaskName.RECOMMENDATIONS: _recommendations_context(bundle),
        AnalysisTaskName.PATTERNS: _patterns_context(bundle),
        AnalysisTaskName.OPPORTUNITIES: _opportunities_context(bundle, clients),
    }


def render_context(context: AnalysisContext) -> str:
    """Render a context as prompt text: the narrative summary, then sorted JSON sections."""
    sections = [context.summary, "Metrics:\n" + json.dumps(context.metrics, indent=2, sort_keys=True)]
    for name in sorted(context.extras):
        title = name.replace("_", " ").capitalize()
        sections.append(f"{title}:\n" + json.dumps(context.extras[name], indent=2, sort_keys=True))
    return "\n\n".join(sections)
