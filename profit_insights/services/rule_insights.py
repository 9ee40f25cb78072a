"""
Rule-based insights computed without the generative service.

A handful of fixed heuristics over recent entries (30 days by default):

1. Most productive hour - hour of day with the most logged minutes
2. Top revenue channel - channel with the highest billed amount
3. Focus day - weekday with the most logged minutes
4. Billable ratio - always reported
5. Average session length - only when sessions have a positive length
6. Billable below target - warning when 0 < billable ratio < 60%

Insights are returned in the order above. Ties are broken by the smallest
hour / weekday and the alphabetically first channel.
"""

from collections import defaultdict
from typing import Dict, List, Sequence

from profit_insights.models import (
    Insight,
    InsightCategory,
    InsightPriority,
    InsightType,
    TimeEntry,
)
from profit_insights.services.metric_aggregator import DAY_NAMES, UNKNOWN_CHANNEL, to_utc


RULES_LOOKBACK_DAYS = 30
BILLABLE_TARGET_PERCENT = 75
BILLABLE_WARNING_PERCENT = 60


def build_rule_based_insights(entries: Sequence[TimeEntry]) -> List[Insight]:
    by_hour: Dict[int, float] = defaultdict(float)
    by_day: Dict[int, float] = defaultdict(float)
    channel_revenue: Dict[str, float] = defaultdict(float)
    total_minutes = 0.0
    billable_minutes = 0.0

    for entry in entries:
        start = to_utc(entry.start_time)
        total_minutes += entry.duration
        if entry.billable:
            billable_minutes += entry.duration
        by_hour[start.hour] += entry.duration
        by_day[start.weekday()] += entry.duration
        channel_revenue[entry.marketing_channel or UNKNOWN_CHANNEL] += entry.amount

    billable_rate = round(billable_minutes / total_minutes * 100) if total_minutes > 0 else 0
    avg_session = round(total_minutes / len(entries)) if entries else 0
    insights: List[Insight] = []

    if by_hour:
        hour = min(by_hour, key=lambda h: (-by_hour[h], h))
        insights.append(Insight(
            id="rule-hour",
            type=InsightType.ANALYSIS,
            category=InsightCategory.PRODUCTIVITY,
            title=f"You're most productive at {hour:02d}:00",
            description=f"You log the most minutes during this hour over the last {RULES_LOOKBACK_DAYS} days",
            confidence=0.8,
            priority=InsightPriority.MEDIUM,
            data_points={"icon": "clock", "hour": hour, "minutes": by_hour[hour]},
        ))

    if channel_revenue:
        channel = min(channel_revenue, key=lambda c: (-channel_revenue[c], c))
        insights.append(Insight(
            id="rule-channel",
            type=InsightType.ANALYSIS,
            category=InsightCategory.REVENUE,
            title=f"{channel} drives the most revenue",
            description=f"Highest total billed amount among channels over the last {RULES_LOOKBACK_DAYS} days",
            confidence=0.75,
            priority=InsightPriority.HIGH,
            data_points={"icon": "bar-chart-3", "channel": channel, "revenue": channel_revenue[channel]},
        ))

    if by_day:
        day = DAY_NAMES[min(by_day, key=lambda d: (-by_day[d], d))]
        insights.append(Insight(
            id="rule-day",
            type=InsightType.ANALYSIS,
            category=InsightCategory.PRODUCTIVITY,
            title=f"{day} is your focus day",
            description=f"You log the most minutes on {day} compared to the rest of the week.",
            confidence=0.7,
            priority=InsightPriority.MEDIUM,
            data_points={"icon": "calendar"},
        ))

    insights.append(Insight(
        id="rule-billable",
        type=InsightType.ANALYSIS,
        category=InsightCategory.REVENUE,
        title=f"Billable ratio: {billable_rate}%",
        description=f"Aim for > {BILLABLE_TARGET_PERCENT}% for strong margin.",
        confidence=0.7,
        priority=InsightPriority.MEDIUM,
        data_points={"icon": "trending-up", "billable_rate": billable_rate},
    ))

    if avg_session > 0:
        insights.append(Insight(
            id="rule-session",
            type=InsightType.ANALYSIS,
            category=InsightCategory.PRODUCTIVITY,
            title=f"Average session length: {avg_session} min",
            description="Short sessions? Batch work into 45+ minute blocks to reduce context switching.",
            confidence=0.6,
            priority=InsightPriority.LOW,
            data_points={"icon": "clock", "avg_session_minutes": avg_session},
        ))

    if 0 < billable_rate < BILLABLE_WARNING_PERCENT:
        insights.append(Insight(
            id="rule-billable-warning",
            type=InsightType.WARNING,
            category=InsightCategory.REVENUE,
            title="Billable time below target",
            description=(
                f"Only {billable_rate}% of the last {RULES_LOOKBACK_DAYS} days were billable. "
                "Review non-billable work or adjust retainers."
            ),
            confidence=0.6,
            priority=InsightPriority.HIGH,
            data_points={"icon": "alert-triangle", "billable_rate": billable_rate},
        ))

    return insights
