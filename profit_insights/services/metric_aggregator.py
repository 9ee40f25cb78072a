"""
Metric Aggregator - derived statistics over a window of time entries.

Turns raw TimeEntry records (plus Client / Project lookups) into a frozen
MetricBundle. This module is pure: no network, no storage, no clock access
other than the injectable `now`.

Computed aggregates:
1. TOTALS & RATES - minutes, revenue, billable rate, hourly rates, session length
2. BREAKDOWNS - per-channel, per-client and per-project metrics
3. TIME PATTERNS - hour-of-day / day-of-week distributions, weekday focus
4. TRENDS - ISO-week buckets, rolling week-over-week deltas, daily time series
5. STATISTICS - Pearson correlations and monthly seasonality (numpy)
6. CANDIDATE LISTS - underutilized retainers, challenges, opportunities, highlights

Conventions:
- Every ratio is defined as 0 when its denominator is 0; empty input yields a
  zeroed bundle instead of an exception.
- Timestamps are normalized to UTC; day and hour buckets are UTC buckets.
- Entries are sorted by (start_time, id) first, so the caller's ordering never
  affects the result.
- "This week" / "last week" are rolling windows counted in whole days back
  from `now`, not calendar weeks.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from profit_insights.models import (
    Challenge,
    ChallengeSeverity,
    ChannelMetrics,
    Client,
    ClientMetrics,
    Correlations,
    DailyAverages,
    Highlight,
    MarketOpportunity,
    MetricBundle,
    OpportunityCandidate,
    Project,
    ProjectMetrics,
    SeasonalPatterns,
    TimeEntry,
    TimePatterns,
    TimeSeriesPoint,
    TrendDirection,
    UnderutilizedRetainer,
    WeekBucket,
    WeeklyMetrics,
    WeeklyPatterns,
    WeekOverWeek,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

UNKNOWN_CHANNEL = "Unknown"
UNKNOWN_NAME = "Unknown"

# Indexed by datetime.weekday()
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

WORKING_DAYS_PER_MONTH = 22
SECONDS_PER_DAY = 86400

WEEK_TREND_THRESHOLD = 10.0
SEASONAL_TREND_THRESHOLD = 10.0

LOW_BILLABLE_RATE = 70.0
HIGH_CLIENT_CONCENTRATION = 40.0
DEADLINE_RISK_DAYS = 7

RATE_INCREASE_EFFICIENCY_FACTOR = 1.2
RATE_INCREASE_MIN_MINUTES = 300
RATE_INCREASE_STEP = 0.15
REACTIVATION_INACTIVE_DAYS = 30
REACTIVATION_HOURS_PER_CLIENT = 20

MARKET_MIN_EFFICIENCY = 150.0
MARKET_MAX_MINUTES = 1000.0

HIGHLIGHT_RECENT_ENTRIES = 20
HIGH_VALUE_SESSION_AMOUNT = 500.0
MANY_CLIENTS_THRESHOLD = 5


# =============================================================================
# Helpers
# =============================================================================


def to_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _ratio(numerator: float, denominator: float) -> float:
    """Division that yields 0 instead of raising on a zero denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _percent_change(current: float, previous: float) -> float:
    """Relative change in percent; 0 unless the previous value is positive."""
    if previous <= 0:
        return 0.0
    return (current - previous) / previous * 100


def days_ago(now: datetime, ts: datetime) -> int:
    """
    Whole days between `ts` and `now`, rounded up.

    An entry started 3 hours ago is 1 day ago; one started exactly 7 days ago
    is 7 days ago. Future timestamps yield 0 or negative values.
    """
    return math.ceil((now - to_utc(ts)).total_seconds() / SECONDS_PER_DAY)


def iso_week_key(ts: datetime) -> str:
    """ISO calendar week key, e.g. '2026-W03'."""
    iso_year, iso_week, _ = to_utc(ts).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """
    Pearson correlation coefficient rounded to 2 decimals.

    Returns 0 when fewer than two points are given or either series has zero
    variance (the coefficient is undefined there).
    """
    if len(xs) < 2 or len(xs) != len(ys):
        return 0.0

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if np.std(x) == 0 or np.std(y) == 0:
        return 0.0

    r = float(np.corrcoef(x, y)[0, 1])
    if not np.isfinite(r):
        return 0.0
    return round(r, 2)


def sort_entries(entries: Iterable[TimeEntry]) -> List[TimeEntry]:
    """Canonical ordering: oldest first, ties broken by id."""
    return sorted(entries, key=lambda e: (to_utc(e.start_time), e.id))


def _billable_minutes(entries: Iterable[TimeEntry]) -> float:
    return sum(e.duration for e in entries if e.billable)


def _average_billable_rate(entries: Sequence[TimeEntry]) -> float:
    """Revenue per hour over billable entries with a positive duration."""
    billable = [e for e in entries if e.billable and e.duration > 0]
    revenue = sum(e.amount for e in billable)
    hours = sum(e.duration for e in billable) / 60
    return _ratio(revenue, hours)


# =============================================================================
# Breakdowns
# =============================================================================


def analyze_channels(entries: Sequence[TimeEntry]) -> Dict[str, ChannelMetrics]:
    """
    Aggregate minutes and revenue per marketing channel.

    Entries without a channel are grouped under 'Unknown'. Efficiency is
    revenue per billable hour and is 0 for channels with no billable time.
    """
    buckets: Dict[str, Dict[str, float]] = defaultdict(
        lambda: {"count": 0, "total_minutes": 0.0, "billable_minutes": 0.0, "total_revenue": 0.0}
    )

    for entry in entries:
        bucket = buckets[entry.marketing_channel or UNKNOWN_CHANNEL]
        bucket["count"] += 1
        bucket["total_minutes"] += entry.duration
        bucket["total_revenue"] += entry.amount
        if entry.billable:
            bucket["billable_minutes"] += entry.duration

    channels: Dict[str, ChannelMetrics] = {}
    for channel in sorted(buckets):
        data = buckets[channel]
        channels[channel] = ChannelMetrics(
            channel=channel,
            count=int(data["count"]),
            total_minutes=data["total_minutes"],
            billable_minutes=data["billable_minutes"],
            total_revenue=data["total_revenue"],
            avg_revenue_per_hour=_ratio(data["total_revenue"], data["total_minutes"] / 60),
            billable_rate=_ratio(data["billable_minutes"], data["total_minutes"]) * 100,
            # Never negative, even with refunded (negative) amounts
            efficiency=max(0.0, _ratio(data["total_revenue"], data["billable_minutes"] / 60)),
        )
    return channels


def analyze_clients(
    entries: Sequence[TimeEntry],
    clients: Sequence[Client],
) -> Dict[str, ClientMetrics]:
    """Aggregate minutes, revenue, entry count and last activity per client."""
    names = {c.id: c.name for c in clients}
    minutes: Dict[str, float] = defaultdict(float)
    revenue: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    last_activity: Dict[str, datetime] = {}

    for entry in entries:
        if not entry.client_id:
            continue
        cid = entry.client_id
        minutes[cid] += entry.duration
        revenue[cid] += entry.amount
        counts[cid] += 1
        start = to_utc(entry.start_time)
        if cid not in last_activity or start > last_activity[cid]:
            last_activity[cid] = start

    return {
        cid: ClientMetrics(
            client_id=cid,
            name=names.get(cid, UNKNOWN_NAME),
            total_minutes=minutes[cid],
            total_revenue=revenue[cid],
            entry_count=counts[cid],
            last_activity=last_activity.get(cid),
        )
        for cid in sorted(counts)
    }


def analyze_projects(
    entries: Sequence[TimeEntry],
    projects: Sequence[Project],
    now: datetime,
) -> Dict[str, ProjectMetrics]:
    """
    Aggregate per-project time and revenue plus health indicators.

    completion_percent needs estimated hours, budget_used needs a budget, and
    days_remaining / on_track need a deadline; each is None otherwise.
    """
    lookup = {p.id: p for p in projects}
    minutes: Dict[str, float] = defaultdict(float)
    revenue: Dict[str, float] = defaultdict(float)

    for entry in entries:
        if not entry.project_id:
            continue
        minutes[entry.project_id] += entry.duration
        revenue[entry.project_id] += entry.amount

    result: Dict[str, ProjectMetrics] = {}
    for pid in sorted(minutes):
        project = lookup.get(pid)
        estimated = project.estimated_hours if project else None
        budget = project.budget_amount if project else None
        deadline = project.deadline if project else None

        completion = (minutes[pid] / 60) / estimated * 100 if estimated else None
        budget_used = revenue[pid] / budget * 100 if budget else None
        days_remaining: Optional[int] = None
        on_track: Optional[bool] = None
        if deadline is not None:
            days_remaining = math.ceil((to_utc(deadline) - now).total_seconds() / SECONDS_PER_DAY)
            on_track = completion is None or completion < 100

        result[pid] = ProjectMetrics(
            project_id=pid,
            name=project.name if project else UNKNOWN_NAME,
            total_minutes=minutes[pid],
            total_revenue=revenue[pid],
            deadline=deadline,
            budget=budget,
            estimated_hours=estimated,
            completion_percent=completion,
            budget_used=budget_used,
            days_remaining=days_remaining,
            on_track=on_track,
        )
    return result


def client_concentration(client_metrics: Dict[str, ClientMetrics], total_revenue: float) -> float:
    """Share of total revenue earned from the single largest client, in percent."""
    if total_revenue <= 0 or not client_metrics:
        return 0.0
    top = max(c.total_revenue for c in client_metrics.values())
    return min(100.0, max(0.0, top / total_revenue * 100))


def _top_channel(channels: Dict[str, ChannelMetrics]) -> Optional[str]:
    if not channels:
        return None
    ranked = sorted(
        channels.values(),
        key=lambda c: (-c.total_revenue, -c.total_minutes, c.channel),
    )
    return ranked[0].channel


# =============================================================================
# Time Patterns
# =============================================================================


def _top_keys(distribution: Dict, order, limit: int = 3) -> List:
    ranked = sorted(distribution.items(), key=lambda kv: (-kv[1], order(kv[0])))
    return [key for key, _ in ranked[:limit]]


def analyze_time_patterns(entries: Sequence[TimeEntry]) -> TimePatterns:
    """Minutes per UTC hour of day and per weekday, with top-3 peaks."""
    hourly: Dict[int, float] = defaultdict(float)
    daily: Dict[int, float] = defaultdict(float)

    for entry in entries:
        start = to_utc(entry.start_time)
        hourly[start.hour] += entry.duration
        daily[start.weekday()] += entry.duration

    return TimePatterns(
        hourly={hour: hourly[hour] for hour in sorted(hourly)},
        daily={DAY_NAMES[day]: daily[day] for day in sorted(daily)},
        peak_hours=_top_keys(hourly, order=lambda hour: hour),
        peak_days=[DAY_NAMES[day] for day in _top_keys(daily, order=lambda day: day)],
    )


def analyze_weekly_patterns(entries: Sequence[TimeEntry]) -> WeeklyPatterns:
    """
    Weekday focus and consistency.

    consistency_score = 100 - min(100, std / mean * 100) over the average
    entry length of each weekday that has entries; 0 when that mean is 0.
    """
    per_day: Dict[int, List[float]] = defaultdict(list)
    for entry in entries:
        per_day[to_utc(entry.start_time).weekday()].append(entry.duration)

    consistency = 0.0
    if per_day:
        day_means = np.array([np.mean(per_day[day]) for day in sorted(per_day)], dtype=float)
        mean = float(day_means.mean())
        if mean > 0:
            consistency = 100 - min(100.0, float(day_means.std()) / mean * 100)

    return WeeklyPatterns(
        monday_focus=sum(per_day.get(0, [])),
        friday_productivity=sum(per_day.get(4, [])),
        weekend_work=sum(per_day.get(5, [])) + sum(per_day.get(6, [])),
        consistency_score=consistency,
    )


def _working_days(entries: Iterable[TimeEntry]) -> int:
    return len({to_utc(e.start_time).date() for e in entries})


def calculate_daily_averages(entries: Sequence[TimeEntry], now: datetime) -> DailyAverages:
    if not entries:
        return DailyAverages()

    working_days = _working_days(entries)
    earliest = min(to_utc(e.start_time) for e in entries)
    return DailyAverages(
        avg_daily_minutes=_ratio(sum(e.duration for e in entries), working_days),
        working_days=working_days,
        total_days=max(0, days_ago(now, earliest)),
    )


# =============================================================================
# Trends
# =============================================================================


def analyze_weekly_trends(entries: Sequence[TimeEntry]) -> Dict[str, WeekBucket]:
    """Minutes, revenue and entry count per ISO calendar week."""
    totals: Dict[str, List[float]] = defaultdict(lambda: [0.0, 0.0, 0])
    for entry in entries:
        bucket = totals[iso_week_key(entry.start_time)]
        bucket[0] += entry.duration
        bucket[1] += entry.amount
        bucket[2] += 1

    return {
        week: WeekBucket(total_minutes=data[0], revenue=data[1], entries=int(data[2]))
        for week, data in sorted(totals.items())
    }


def calculate_week_over_week(
    entries: Sequence[TimeEntry],
    now: datetime,
    window_days: int = 7,
) -> WeekOverWeek:
    """
    Compare the most recent `window_days` against the window before it.

    Windows are rolling: an entry belongs to "this week" when
    ceil((now - start) / 1 day) <= window_days and to "last week" when that
    value is in (window_days, 2 * window_days].
    """
    this_week: List[TimeEntry] = []
    last_week: List[TimeEntry] = []
    for entry in entries:
        age = days_ago(now, entry.start_time)
        if age <= window_days:
            this_week.append(entry)
        elif age <= 2 * window_days:
            last_week.append(entry)

    this_hours = sum(e.duration for e in this_week) / 60
    last_hours = sum(e.duration for e in last_week) / 60
    this_revenue = sum(e.amount for e in this_week)
    last_revenue = sum(e.amount for e in last_week)
    this_billable = _billable_minutes(this_week) / 60
    last_billable = _billable_minutes(last_week) / 60

    revenue_change = _percent_change(this_revenue, last_revenue)
    if revenue_change > WEEK_TREND_THRESHOLD:
        trend = TrendDirection.UP
    elif revenue_change < -WEEK_TREND_THRESHOLD:
        trend = TrendDirection.DOWN
    else:
        trend = TrendDirection.STABLE

    return WeekOverWeek(
        this_week_hours=this_hours,
        last_week_hours=last_hours,
        this_week_revenue=this_revenue,
        last_week_revenue=last_revenue,
        hours_change=_percent_change(this_hours, last_hours),
        revenue_change=revenue_change,
        productivity_change=_percent_change(this_billable, last_billable),
        trend=trend,
    )


def create_time_series(entries: Sequence[TimeEntry]) -> List[TimeSeriesPoint]:
    revenue: Dict[str, float] = defaultdict(float)
    hours: Dict[str, float] = defaultdict(float)
    for entry in entries:
        day = to_utc(entry.start_time).date().isoformat()
        revenue[day] += entry.amount
        hours[day] += entry.duration / 60

    return [
        TimeSeriesPoint(date=day, revenue=revenue[day], hours=hours[day])
        for day in sorted(revenue)
    ]


# =============================================================================
# Statistics
# =============================================================================


def calculate_correlations(
    entries: Sequence[TimeEntry],
    channel_metrics: Dict[str, ChannelMetrics],
    project_metrics: Dict[str, ProjectMetrics],
) -> Correlations:
    """
    Pearson coefficients between:
    - channel minutes and channel revenue
    - entry start hour and entry revenue per hour
    - project minutes and project revenue
    """
    channels = list(channel_metrics.values())
    timed = [e for e in entries if e.duration > 0]
    projects = list(project_metrics.values())

    return Correlations(
        channel_revenue=pearson(
            [c.total_minutes for c in channels],
            [c.total_revenue for c in channels],
        ),
        time_productivity=pearson(
            [to_utc(e.start_time).hour for e in timed],
            [e.amount / (e.duration / 60) for e in timed],
        ),
        project_profitability=pearson(
            [p.total_minutes for p in projects],
            [p.total_revenue for p in projects],
        ),
    )


def detect_seasonal_patterns(entries: Sequence[TimeEntry]) -> SeasonalPatterns:
    """
    Revenue per calendar month with a trend and seasonality label.

    trend compares the first and last month (growing / declining beyond
    +/-10%, else flat). seasonality grades the coefficient of variation of
    monthly revenue: > 0.5 high, > 0.2 medium, else low.
    """
    monthly: Dict[str, float] = defaultdict(float)
    for entry in entries:
        monthly[to_utc(entry.start_time).strftime("%Y-%m")] += entry.amount

    months = sorted(monthly)
    ordered = {month: monthly[month] for month in months}
    if len(months) < 2:
        return SeasonalPatterns(monthly=ordered)

    first, last = ordered[months[0]], ordered[months[-1]]
    if first <= 0:
        trend = "growing" if last > 0 else "flat"
    else:
        change = _percent_change(last, first)
        if change > SEASONAL_TREND_THRESHOLD:
            trend = "growing"
        elif change < -SEASONAL_TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "flat"

    values = np.array(list(ordered.values()), dtype=float)
    mean = float(values.mean())
    cv = float(values.std()) / mean if mean > 0 else 0.0
    if cv > 0.5:
        seasonality = "high"
    elif cv > 0.2:
        seasonality = "medium"
    else:
        seasonality = "low"

    return SeasonalPatterns(monthly=ordered, trend=trend, seasonality=seasonality)


# =============================================================================
# Candidate Lists
# =============================================================================


def find_underutilized(
    entries: Sequence[TimeEntry],
    clients: Sequence[Client],
    default_hourly_rate: float = 100.0,
    usage_threshold: float = 0.8,
) -> List[UnderutilizedRetainer]:
    """
    Clients whose logged hours fall below `usage_threshold` of their retainer.

    unused_value = (retainer_hours - hours_used) x (client rate or default).
    """
    hours_by_client: Dict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.client_id:
            hours_by_client[entry.client_id] += entry.duration / 60

    flagged: List[UnderutilizedRetainer] = []
    for client in sorted(clients, key=lambda c: c.id):
        if not client.retainer_hours:
            continue
        used = hours_by_client.get(client.id, 0.0)
        if used < client.retainer_hours * usage_threshold:
            rate = client.hourly_rate or default_hourly_rate
            flagged.append(UnderutilizedRetainer(
                client_id=client.id,
                client=client.name,
                retainer_hours=client.retainer_hours,
                hours_used=round(used, 2),
                unused_value=round((client.retainer_hours - used) * rate, 2),
            ))
    return flagged


def identify_challenges(
    billable_rate: float,
    concentration: float,
    projects: Sequence[Project],
    now: datetime,
) -> List[Challenge]:
    challenges: List[Challenge] = []

    if billable_rate < LOW_BILLABLE_RATE:
        challenges.append(Challenge(
            issue="Low billable utilization",
            impact=f"Only {round(billable_rate)}% of time is billable",
            severity=ChallengeSeverity.HIGH,
        ))

    if concentration > HIGH_CLIENT_CONCENTRATION:
        challenges.append(Challenge(
            issue="High client concentration risk",
            impact=f"{round(concentration)}% of revenue from one client",
            severity=ChallengeSeverity.MEDIUM,
        ))

    at_risk = [
        p for p in projects
        if p.deadline is not None
        and math.ceil((to_utc(p.deadline) - now).total_seconds() / SECONDS_PER_DAY) < DEADLINE_RISK_DAYS
    ]
    if at_risk:
        challenges.append(Challenge(
            issue="Projects approaching deadline",
            impact=f"{len(at_risk)} projects due within {DEADLINE_RISK_DAYS} days",
            severity=ChallengeSeverity.HIGH,
        ))

    return challenges


def identify_opportunities(
    entries: Sequence[TimeEntry],
    channel_metrics: Dict[str, ChannelMetrics],
    client_metrics: Dict[str, ClientMetrics],
    clients: Sequence[Client],
    now: datetime,
) -> List[OpportunityCandidate]:
    """
    Data-derived opportunity candidates.

    - rate_increase: channels earning > 1.2x the average billable rate over
      more than 300 minutes; suggests a 15% raise
    - reactivation: clients with no activity in the last 30 days, valued at
      20 hours each at the average billable rate
    """
    avg_rate = _average_billable_rate(entries)
    opportunities: List[OpportunityCandidate] = []

    for channel, metrics in channel_metrics.items():
        if (metrics.efficiency > avg_rate * RATE_INCREASE_EFFICIENCY_FACTOR
                and metrics.total_minutes > RATE_INCREASE_MIN_MINUTES):
            opportunities.append(OpportunityCandidate(
                type="rate_increase",
                channel=channel,
                current_rate=round(metrics.efficiency),
                suggested_rate=round(metrics.efficiency * (1 + RATE_INCREASE_STEP)),
                potential_revenue=round(metrics.total_revenue * RATE_INCREASE_STEP),
            ))

    inactive = 0
    for client in clients:
        activity = client_metrics.get(client.id)
        if activity is None or activity.last_activity is None:
            inactive += 1
        elif days_ago(now, activity.last_activity) > REACTIVATION_INACTIVE_DAYS:
            inactive += 1

    if inactive:
        opportunities.append(OpportunityCandidate(
            type="reactivation",
            clients=inactive,
            potential_revenue=round(inactive * avg_rate * REACTIVATION_HOURS_PER_CLIENT, 2),
        ))

    return opportunities


def analyze_market_opportunities(channel_metrics: Dict[str, ChannelMetrics]) -> List[MarketOpportunity]:
    """High-efficiency channels that still receive little time."""
    return [
        MarketOpportunity(
            channel=channel,
            efficiency=round(metrics.efficiency, 2),
            current_hours=round(metrics.total_minutes / 60, 2),
        )
        for channel, metrics in channel_metrics.items()
        if metrics.efficiency > MARKET_MIN_EFFICIENCY and metrics.total_minutes < MARKET_MAX_MINUTES
    ]


def extract_highlights(entries: Sequence[TimeEntry]) -> List[Highlight]:
    """Highlights drawn from the 20 most recent entries."""
    recent = sorted(entries, key=lambda e: (to_utc(e.start_time), e.id), reverse=True)
    recent = recent[:HIGHLIGHT_RECENT_ENTRIES]
    highlights: List[Highlight] = []

    high_value = [e for e in recent if e.amount > HIGH_VALUE_SESSION_AMOUNT]
    if high_value:
        highlights.append(Highlight(
            type="revenue",
            description=f"{len(high_value)} high-value sessions (>${HIGH_VALUE_SESSION_AMOUNT:.0f})",
        ))

    distinct_clients = len({e.client_id for e in recent if e.client_id})
    if distinct_clients > MANY_CLIENTS_THRESHOLD:
        highlights.append(Highlight(
            type="growth",
            description=f"Working with {distinct_clients} different clients",
        ))

    return highlights


# =============================================================================
# Public API
# =============================================================================


def aggregate_metrics(
    entries: Iterable[TimeEntry],
    clients: Sequence[Client],
    projects: Sequence[Project],
    *,
    now: Optional[datetime] = None,
    window_start: Optional[datetime] = None,
    target_daily_hours: float = 6.0,
    default_hourly_rate: float = 100.0,
    retainer_usage_threshold: float = 0.8,
) -> MetricBundle:
    """
    Build the MetricBundle for one analysis window.

    Args:
        entries: Time entries in the window, in any order.
        clients: Active clients (used for names, retainers, reactivation).
        projects: Active or planning projects (names, budgets, deadlines).
        now: Reference time for rolling windows and deadlines. Defaults to
            the current UTC time.
        window_start: Start of the fetched window, recorded on the bundle.
        target_daily_hours: Billable hours per working day counted as 100%
            utilization.
        default_hourly_rate: Rate used to value unused retainer hours when a
            client has no rate configured.
        retainer_usage_threshold: Share of retainer hours below which a client
            is reported as underutilized.

    Returns:
        MetricBundle: Frozen aggregate value object. Empty input returns a
        zeroed bundle.
    """
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    window_start = to_utc(window_start) if window_start is not None else None
    ordered = sort_entries(entries)

    if not ordered:
        return MetricBundle(
            window_start=window_start,
            window_end=now,
            active_clients=len(clients),
            project_count=len(projects),
        )

    total_minutes = sum(e.duration for e in ordered)
    billable_minutes = _billable_minutes(ordered)
    total_revenue = sum(e.amount for e in ordered)
    working_days = _working_days(ordered)

    billable_rate = min(100.0, _ratio(billable_minutes, total_minutes) * 100)

    channel_metrics = analyze_channels(ordered)
    client_metrics = analyze_clients(ordered, clients)
    project_metrics = analyze_projects(ordered, projects, now)
    concentration = client_concentration(client_metrics, total_revenue)

    utilization = 0.0
    if working_days and target_daily_hours > 0:
        daily_billable_hours = billable_minutes / 60 / working_days
        utilization = min(100.0, daily_billable_hours / target_daily_hours * 100)

    bundle = MetricBundle(
        window_start=window_start or to_utc(ordered[0].start_time),
        window_end=now,
        entry_count=len(ordered),
        total_minutes=total_minutes,
        billable_minutes=billable_minutes,
        total_revenue=total_revenue,
        billable_rate=billable_rate,
        avg_hourly_rate=_ratio(total_revenue, billable_minutes / 60),
        revenue_per_hour=_ratio(total_revenue, total_minutes / 60),
        avg_session_minutes=_ratio(total_minutes, len(ordered)),
        monthly_revenue=round(_ratio(total_revenue, working_days) * WORKING_DAYS_PER_MONTH, 2),
        client_concentration=concentration,
        utilization=utilization,
        active_clients=len(clients),
        project_count=len(projects),
        top_channel=_top_channel(channel_metrics),
        channel_metrics=channel_metrics,
        client_metrics=client_metrics,
        project_metrics=project_metrics,
        time_patterns=analyze_time_patterns(ordered),
        weekly_patterns=analyze_weekly_patterns(ordered),
        daily_averages=calculate_daily_averages(ordered, now),
        weekly_trends=analyze_weekly_trends(ordered),
        week_over_week=calculate_week_over_week(ordered, now),
        time_series=create_time_series(ordered),
        correlations=calculate_correlations(ordered, channel_metrics, project_metrics),
        seasonal_patterns=detect_seasonal_patterns(ordered),
        underutilized=find_underutilized(
            ordered, clients, default_hourly_rate, retainer_usage_threshold
        ),
        challenges=identify_challenges(billable_rate, concentration, projects, now),
        opportunities=identify_opportunities(ordered, channel_metrics, client_metrics, clients, now),
        market_opportunities=analyze_market_opportunities(channel_metrics),
        highlights=extract_highlights(ordered),
    )

    logger.debug(
        f"Aggregated {bundle.entry_count} entries: {len(channel_metrics)} channels, "
        f"{len(client_metrics)} clients, {len(project_metrics)} projects"
    )
    return bundle


def aggregate_weekly_metrics(
    entries: Iterable[TimeEntry],
    clients: Sequence[Client],
    projects: Sequence[Project],
    *,
    now: Optional[datetime] = None,
    window_days: int = 7,
) -> WeeklyMetrics:
    """
    Reduced metric set for the weekly summary.

    `entries` should cover the report window plus the window before it: the
    totals, highlights and challenges use only the most recent `window_days`,
    while the week-over-week deltas compare both windows.
    """
    now = to_utc(now) if now is not None else datetime.now(timezone.utc)
    ordered = sort_entries(entries)
    recent = [e for e in ordered if days_ago(now, e.start_time) <= window_days]

    billable_minutes = _billable_minutes(recent)
    total_minutes = sum(e.duration for e in recent)
    revenue = sum(e.amount for e in recent)
    billable_rate = _ratio(billable_minutes, total_minutes) * 100
    concentration = client_concentration(analyze_clients(recent, clients), revenue)

    return WeeklyMetrics(
        window_start=now - timedelta(days=window_days),
        window_end=now,
        entry_count=len(recent),
        total_hours=total_minutes / 60,
        billable_hours=billable_minutes / 60,
        revenue=revenue,
        active_clients=len(clients),
        project_count=len(projects),
        week_over_week=calculate_week_over_week(ordered, now, window_days),
        highlights=extract_highlights(recent),
        challenges=identify_challenges(billable_rate, concentration, projects, now) if recent else [],
    )
