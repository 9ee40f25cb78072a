"""
Pytest test module for the metric aggregator.

Covers the MetricBundle arithmetic over the shared sample history
(5 entries, 2 channels, 2 clients, 360 minutes of which 270 billable):
- Billable rate, concentration and utilization bounds
- Channel efficiency (never negative, 0 without billable time)
- Rolling week-over-week deltas
- Retainer underutilization valuation
- Empty-input behavior and ordering independence
- A 90 day / 50 entry / 3 channel history with one zero-billable channel

Test Classes:
- TestRecordNormalization: NULL tolerance of TimeEntry / Client / Project
- TestHelpers: days_ago, iso_week_key, pearson
- TestAggregateMetrics: Bundle totals and bounds
- TestChannelMetrics: Per-channel aggregates
- TestWeekOverWeek: Rolling window comparison
- TestCandidateLists: Underutilized retainers, challenges, opportunities
- TestNinetyDayScenario: Larger synthetic history
- TestWeeklyMetrics: Reduced metric set for the weekly summary
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, List

import pytest

from profit_insights.models import (
    ChallengeSeverity,
    Client,
    Project,
    TimeEntry,
    TrendDirection,
)
from profit_insights.services.metric_aggregator import (
    aggregate_metrics,
    aggregate_weekly_metrics,
    analyze_channels,
    analyze_clients,
    calculate_week_over_week,
    client_concentration,
    days_ago,
    detect_seasonal_patterns,
    find_underutilized,
    identify_challenges,
    identify_opportunities,
    iso_week_key,
    pearson,
)


# =============================================================================
# Test Class: TestRecordNormalization
# =============================================================================

class TestRecordNormalization:
    """NULL columns from the store are coerced instead of rejected."""

    def test_time_entry_null_numbers_become_zero(self) -> None:
        entry = TimeEntry(
            id='te_x',
            start_time=datetime(2026, 3, 1, 9, 0),
            duration=None,
            amount=None,
            hourly_rate=None,
            billable=None,
        )
        assert entry.duration == 0.0
        assert entry.amount == 0.0
        assert entry.hourly_rate == 0.0
        assert entry.billable is False

    def test_time_entry_naive_start_is_utc(self) -> None:
        entry = TimeEntry(id='te_x', start_time=datetime(2026, 3, 1, 9, 0))
        assert entry.start_time.tzinfo == timezone.utc
        assert entry.start_time.hour == 9

    def test_time_entry_negative_duration_clamped(self) -> None:
        entry = TimeEntry(id='te_x', start_time=datetime(2026, 3, 1, 9, 0), duration=-15)
        assert entry.duration == 0.0

    def test_client_null_name_and_status_use_defaults(self) -> None:
        client = Client(id='cl_x', name=None, status=None)
        assert client.name == 'Unknown'
        assert client.status == 'active'

    def test_project_date_deadline_becomes_utc_datetime(self) -> None:
        project = Project(id='pr_x', deadline=date(2026, 4, 1))
        assert project.deadline == datetime(2026, 4, 1, tzinfo=timezone.utc)


# =============================================================================
# Test Class: TestHelpers
# =============================================================================

class TestHelpers:

    def test_days_ago_rounds_up_partial_days(self, now: datetime) -> None:
        assert days_ago(now, now - timedelta(hours=3)) == 1
        assert days_ago(now, now - timedelta(days=7)) == 7
        assert days_ago(now, now - timedelta(days=7, minutes=1)) == 8

    def test_iso_week_key(self) -> None:
        assert iso_week_key(datetime(2026, 1, 12, tzinfo=timezone.utc)) == '2026-W03'

    def test_pearson_perfect_positive(self) -> None:
        assert pearson([1, 2, 3, 4], [2, 4, 6, 8]) == 1.0

    def test_pearson_perfect_negative(self) -> None:
        assert pearson([1, 2, 3], [3, 2, 1]) == -1.0

    def test_pearson_undefined_cases_return_zero(self) -> None:
        assert pearson([], []) == 0.0
        assert pearson([5], [7]) == 0.0
        assert pearson([1, 1, 1], [1, 2, 3]) == 0.0
        assert pearson([1, 2], [1, 2, 3]) == 0.0


# =============================================================================
# Test Class: TestAggregateMetrics
# =============================================================================

class TestAggregateMetrics:
    """Totals, rates and bounds of the MetricBundle."""

    def test_totals_over_sample_history(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, sample_clients, sample_projects, now=now)

        assert bundle.entry_count == 5
        assert bundle.total_minutes == 360
        assert bundle.billable_minutes == 270
        assert bundle.total_revenue == 675
        assert bundle.billable_rate == pytest.approx(75.0)
        assert bundle.avg_hourly_rate == pytest.approx(150.0)
        assert bundle.avg_session_minutes == pytest.approx(72.0)
        assert bundle.active_clients == 2
        assert bundle.project_count == 2

    def test_rates_stay_within_bounds(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, sample_clients, sample_projects, now=now)

        assert 0 <= bundle.billable_rate <= 100
        assert 0 <= bundle.client_concentration <= 100
        assert 0 <= bundle.utilization <= 100

    def test_client_concentration_is_top_client_share(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, sample_clients, [], now=now)
        # cl_001 earned 450 of 675
        assert bundle.client_concentration == pytest.approx(66.667, abs=0.01)

    def test_single_client_concentration_is_100(self, make_entry: Callable[..., TimeEntry]) -> None:
        entries = [make_entry(days_ago=1), make_entry(days_ago=2)]
        metrics = analyze_clients(entries, [])
        assert client_concentration(metrics, 200.0) == 100.0

    def test_concentration_zero_without_revenue(self, make_entry: Callable[..., TimeEntry]) -> None:
        metrics = analyze_clients([make_entry(amount=0.0)], [])
        assert client_concentration(metrics, 0.0) == 0.0

    def test_utilization_uses_billable_hours_per_working_day(
        self,
        sample_entries: List[TimeEntry],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, [], [], now=now, target_daily_hours=6.0)
        # 4.5 billable hours over 5 working days against a 6 hour target
        assert bundle.utilization == pytest.approx(15.0)
        assert bundle.monthly_revenue == pytest.approx(2970.0)

    def test_top_channel_by_revenue(self, sample_entries: List[TimeEntry], now: datetime) -> None:
        bundle = aggregate_metrics(sample_entries, [], [], now=now)
        assert bundle.top_channel == 'PPC'

    def test_empty_input_returns_zeroed_bundle(
        self,
        sample_clients: List[Client],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics([], sample_clients, sample_projects, now=now)

        assert bundle.entry_count == 0
        assert bundle.total_minutes == 0
        assert bundle.billable_rate == 0
        assert bundle.avg_hourly_rate == 0
        assert bundle.top_channel is None
        assert bundle.channel_metrics == {}
        assert bundle.time_series == []
        assert bundle.active_clients == 2
        assert bundle.project_count == 2
        assert bundle.window_end == now

    def test_result_independent_of_input_order(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        forward = aggregate_metrics(sample_entries, sample_clients, sample_projects, now=now)
        backward = aggregate_metrics(
            list(reversed(sample_entries)), sample_clients, sample_projects, now=now
        )
        assert forward == backward

    def test_project_health_indicators(
        self,
        sample_entries: List[TimeEntry],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, [], sample_projects, now=now)
        spring = bundle.project_metrics['pr_001']

        # 330 minutes against a 40 hour estimate, 675 revenue against 5000 budget
        assert spring.completion_percent == pytest.approx(13.75)
        assert spring.budget_used == pytest.approx(13.5)
        assert spring.days_remaining == 21
        assert spring.on_track is True

        audit = bundle.project_metrics['pr_002']
        assert audit.completion_percent is None
        assert audit.days_remaining is None

    def test_bundle_is_frozen(self, sample_entries: List[TimeEntry], now: datetime) -> None:
        bundle = aggregate_metrics(sample_entries, [], [], now=now)
        with pytest.raises(Exception):
            bundle.total_revenue = 0.0


# =============================================================================
# Test Class: TestChannelMetrics
# =============================================================================

class TestChannelMetrics:

    def test_efficiency_is_revenue_per_billable_hour(self, sample_entries: List[TimeEntry]) -> None:
        channels = analyze_channels(sample_entries)

        assert set(channels) == {'SEO', 'PPC'}
        assert channels['SEO'].efficiency == pytest.approx(150.0)
        assert channels['PPC'].efficiency == pytest.approx(150.0)
        assert channels['SEO'].billable_rate == pytest.approx(120 / 210 * 100)

    def test_zero_billable_channel_has_zero_efficiency(self, make_entry: Callable[..., TimeEntry]) -> None:
        entries = [
            make_entry(marketing_channel='Social', billable=False, amount=0.0),
            make_entry(marketing_channel='Social', billable=False, amount=0.0),
        ]
        social = analyze_channels(entries)['Social']

        assert social.efficiency == 0.0
        assert social.billable_rate == 0.0
        assert social.count == 2

    def test_efficiency_never_negative(self, make_entry: Callable[..., TimeEntry]) -> None:
        refund = make_entry(marketing_channel='Email', amount=-50.0)
        assert analyze_channels([refund])['Email'].efficiency == 0.0

    def test_missing_channel_grouped_as_unknown(self, make_entry: Callable[..., TimeEntry]) -> None:
        channels = analyze_channels([make_entry(marketing_channel=None)])
        assert list(channels) == ['Unknown']


# =============================================================================
# Test Class: TestWeekOverWeek
# =============================================================================

class TestWeekOverWeek:
    """Rolling 7 day windows counted back from `now`."""

    def test_sample_history_deltas(self, sample_entries: List[TimeEntry], now: datetime) -> None:
        wow = calculate_week_over_week(sample_entries, now)

        assert wow.this_week_hours == pytest.approx(4.5)
        assert wow.last_week_hours == pytest.approx(1.5)
        assert wow.this_week_revenue == pytest.approx(525.0)
        assert wow.last_week_revenue == pytest.approx(150.0)
        assert wow.hours_change == pytest.approx(200.0)
        assert wow.revenue_change == pytest.approx(250.0)
        assert wow.productivity_change == pytest.approx(250.0)
        assert wow.trend == TrendDirection.UP

    def test_changes_zero_when_last_week_empty(
        self, make_entry: Callable[..., TimeEntry], now: datetime
    ) -> None:
        wow = calculate_week_over_week([make_entry(days_ago=2)], now)

        assert wow.last_week_hours == 0
        assert wow.hours_change == 0
        assert wow.revenue_change == 0
        assert wow.trend == TrendDirection.STABLE

    def test_day_seven_belongs_to_this_week(
        self, make_entry: Callable[..., TimeEntry], now: datetime
    ) -> None:
        wow = calculate_week_over_week(
            [make_entry(days_ago=7, duration=60), make_entry(days_ago=8, duration=120)], now
        )
        assert wow.this_week_hours == pytest.approx(1.0)
        assert wow.last_week_hours == pytest.approx(2.0)

    def test_revenue_drop_marks_trend_down(
        self, make_entry: Callable[..., TimeEntry], now: datetime
    ) -> None:
        wow = calculate_week_over_week(
            [make_entry(days_ago=2, amount=50.0), make_entry(days_ago=9, amount=100.0)], now
        )
        assert wow.revenue_change == pytest.approx(-50.0)
        assert wow.trend == TrendDirection.DOWN

    def test_negative_last_week_revenue_yields_no_change(
        self, make_entry: Callable[..., TimeEntry], now: datetime
    ) -> None:
        wow = calculate_week_over_week(
            [make_entry(days_ago=2, amount=100.0), make_entry(days_ago=10, amount=-100.0)], now
        )

        assert wow.last_week_revenue == pytest.approx(-100.0)
        assert wow.revenue_change == 0
        assert wow.trend == TrendDirection.STABLE


# =============================================================================
# Test Class: TestCandidateLists
# =============================================================================

class TestCandidateLists:

    def test_retainer_with_half_usage_values_unused_hours(
        self, make_entry: Callable[..., TimeEntry]
    ) -> None:
        client = Client(id='cl_001', name='Acme Dental', hourly_rate=150.0, retainer_hours=20.0)
        entries = [make_entry(days_ago=i + 1, duration=60) for i in range(10)]

        flagged = find_underutilized(entries, [client])

        assert len(flagged) == 1
        assert flagged[0].hours_used == 10.0
        assert flagged[0].unused_value == 10 * 150.0

    def test_retainer_without_rate_uses_default(self, make_entry: Callable[..., TimeEntry]) -> None:
        client = Client(id='cl_001', retainer_hours=20.0)
        entries = [make_entry(days_ago=i + 1, duration=60) for i in range(10)]

        flagged = find_underutilized(entries, [client], default_hourly_rate=100.0)
        assert flagged[0].unused_value == 1000.0

    def test_retainer_at_threshold_not_flagged(self, make_entry: Callable[..., TimeEntry]) -> None:
        client = Client(id='cl_001', hourly_rate=150.0, retainer_hours=20.0)
        entries = [make_entry(days_ago=i + 1, duration=60) for i in range(16)]

        assert find_underutilized(entries, [client], usage_threshold=0.8) == []

    def test_clients_without_retainer_ignored(self, make_entry: Callable[..., TimeEntry]) -> None:
        assert find_underutilized([make_entry()], [Client(id='cl_001')]) == []

    def test_sample_bundle_flags_acme_retainer(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        now: datetime,
    ) -> None:
        bundle = aggregate_metrics(sample_entries, sample_clients, [], now=now)

        assert [u.client_id for u in bundle.underutilized] == ['cl_001']
        # 4 hours logged against 20
        assert bundle.underutilized[0].unused_value == pytest.approx(16 * 150.0)

    def test_challenges(self, now: datetime) -> None:
        due_soon = Project(id='pr_x', deadline=now + timedelta(days=3))
        challenges = identify_challenges(50.0, 45.0, [due_soon], now)

        assert [c.issue for c in challenges] == [
            'Low billable utilization',
            'High client concentration risk',
            'Projects approaching deadline',
        ]
        assert challenges[0].severity == ChallengeSeverity.HIGH
        assert challenges[1].severity == ChallengeSeverity.MEDIUM

    def test_no_challenges_for_healthy_metrics(self, now: datetime) -> None:
        later = Project(id='pr_x', deadline=now + timedelta(days=30))
        assert identify_challenges(85.0, 20.0, [later], now) == []

    def test_reactivation_opportunity_for_inactive_clients(
        self,
        sample_entries: List[TimeEntry],
        now: datetime,
    ) -> None:
        clients = [Client(id='cl_001'), Client(id='cl_002'), Client(id='cl_003', name='Dormant Co')]
        channels = analyze_channels(sample_entries)
        client_metrics = analyze_clients(sample_entries, clients)

        opportunities = identify_opportunities(sample_entries, channels, client_metrics, clients, now)

        reactivation = [o for o in opportunities if o.type == 'reactivation']
        assert len(reactivation) == 1
        assert reactivation[0].clients == 1
        # 1 client x 150/h average billable rate x 20 hours
        assert reactivation[0].potential_revenue == pytest.approx(3000.0)

    def test_rate_increase_for_efficient_channel(
        self, make_entry: Callable[..., TimeEntry], now: datetime
    ) -> None:
        entries = [
            make_entry(days_ago=1, duration=360, amount=1800.0, marketing_channel='SEO'),
            make_entry(days_ago=2, duration=600, amount=1000.0, marketing_channel='PPC'),
        ]
        channels = analyze_channels(entries)
        opportunities = identify_opportunities(entries, channels, {}, [], now)

        assert [o.type for o in opportunities] == ['rate_increase']
        assert opportunities[0].channel == 'SEO'
        assert opportunities[0].current_rate == 300
        assert opportunities[0].suggested_rate == 345

    def test_seasonal_patterns_label_growth(self) -> None:
        entries = [
            TimeEntry(id='a', start_time=datetime(2026, 1, 10, tzinfo=timezone.utc), amount=1000.0),
            TimeEntry(id='b', start_time=datetime(2026, 2, 10, tzinfo=timezone.utc), amount=1000.0),
            TimeEntry(id='c', start_time=datetime(2026, 3, 10, tzinfo=timezone.utc), amount=4000.0),
        ]
        seasonal = detect_seasonal_patterns(entries)

        assert list(seasonal.monthly) == ['2026-01', '2026-02', '2026-03']
        assert seasonal.trend == 'growing'
        assert seasonal.seasonality == 'high'

    def test_seasonal_trend_after_refund_month(self) -> None:
        entries = [
            TimeEntry(id='a', start_time=datetime(2026, 1, 10, tzinfo=timezone.utc), amount=-200.0),
            TimeEntry(id='b', start_time=datetime(2026, 2, 10, tzinfo=timezone.utc), amount=500.0),
        ]
        assert detect_seasonal_patterns(entries).trend == 'growing'

    def test_seasonal_patterns_single_month_flat(self) -> None:
        entries = [TimeEntry(id='a', start_time=datetime(2026, 1, 10, tzinfo=timezone.utc), amount=10.0)]
        seasonal = detect_seasonal_patterns(entries)
        assert seasonal.trend == 'flat'
        assert seasonal.seasonality == 'low'


# =============================================================================
# Test Class: TestNinetyDayScenario
# =============================================================================

@pytest.mark.scenario
class TestNinetyDayScenario:
    """
    50 entries over ~85 days across SEO, PPC and a never-billable Social channel.
    """

    @pytest.fixture
    def history(self, make_entry: Callable[..., TimeEntry]) -> List[TimeEntry]:
        channels = ['SEO', 'PPC', 'Social']
        entries = []
        for i in range(50):
            channel = channels[i % 3]
            billable = channel != 'Social'
            duration = 60 + (i % 4) * 15
            entries.append(make_entry(
                days_ago=1 + i * 1.7,
                duration=duration,
                billable=billable,
                amount=duration / 60 * 150.0 if billable else 0.0,
                marketing_channel=channel,
                client_id=f'cl_00{i % 4 + 1}',
            ))
        return entries

    def test_bundle_covers_every_entry(self, history: List[TimeEntry], now: datetime) -> None:
        bundle = aggregate_metrics(history, [], [], now=now, window_start=now - timedelta(days=90))

        assert bundle.entry_count == 50
        assert set(bundle.channel_metrics) == {'SEO', 'PPC', 'Social'}
        assert sum(c.count for c in bundle.channel_metrics.values()) == 50
        assert bundle.total_minutes == pytest.approx(sum(e.duration for e in history))
        assert bundle.window_start == now - timedelta(days=90)

    def test_zero_billable_channel(self, history: List[TimeEntry], now: datetime) -> None:
        bundle = aggregate_metrics(history, [], [], now=now)
        social = bundle.channel_metrics['Social']

        assert social.efficiency == 0.0
        assert social.billable_rate == 0.0
        assert bundle.channel_metrics['SEO'].efficiency == pytest.approx(150.0)
        assert 0 < bundle.billable_rate < 100

    def test_statistics_bounded(self, history: List[TimeEntry], now: datetime) -> None:
        bundle = aggregate_metrics(history, [], [], now=now)
        correlations = bundle.correlations

        for value in (
            correlations.channel_revenue,
            correlations.time_productivity,
            correlations.project_profitability,
        ):
            assert -1.0 <= value <= 1.0
        assert 0.0 <= bundle.weekly_patterns.consistency_score <= 100.0
        assert len(bundle.seasonal_patterns.monthly) >= 3


# =============================================================================
# Test Class: TestWeeklyMetrics
# =============================================================================

class TestWeeklyMetrics:

    def test_totals_use_report_window_only(
        self,
        sample_entries: List[TimeEntry],
        sample_clients: List[Client],
        sample_projects: List[Project],
        now: datetime,
    ) -> None:
        weekly = aggregate_weekly_metrics(sample_entries, sample_clients, sample_projects, now=now)

        assert weekly.entry_count == 3
        assert weekly.total_hours == pytest.approx(4.5)
        assert weekly.billable_hours == pytest.approx(3.5)
        assert weekly.revenue == pytest.approx(525.0)
        assert weekly.window_start == now - timedelta(days=7)
        assert weekly.week_over_week.revenue_change == pytest.approx(250.0)

    def test_empty_week_has_no_challenges(self, sample_clients: List[Client], now: datetime) -> None:
        weekly = aggregate_weekly_metrics([], sample_clients, [], now=now)

        assert weekly.entry_count == 0
        assert weekly.challenges == []
        assert weekly.highlights == []
