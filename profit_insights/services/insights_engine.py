"""
Insights Engine - orchestrates the insights generation pipeline.

Pipeline (one run per request, nothing cached or persisted):

    IDLE -> FETCHING -> AGGREGATING -> ANALYZING -> RANKING -> DONE
                 \            \
                  +------------+--> DEGRADED

1. FETCHING: time entries, active clients and open projects are read from the
   DataStore concurrently.
2. AGGREGATING: the MetricBundle and the five task contexts are built. A window
   with zero entries ends the run in DEGRADED with the onboarding insight set.
3. ANALYZING: the five analysis tasks run concurrently; each is its own failure
   boundary and contributes [] when it fails or times out.
4. RANKING: merged results (in task order) are sorted and capped.

Any unexpected exception ends the run in DEGRADED with the fallback insight
set. The public entry points (generate_insights, generate_weekly_summary,
generate_rule_based_insights) never raise.

Dependencies are injected; there is no module-level engine instance. The
FastAPI application builds one engine in its lifespan (see main.py).
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set, Tuple

from profit_insights.core.config import Settings
from profit_insights.models import (
    AnalysisContext,
    AnalysisTaskName,
    Client,
    CompletionOptions,
    EngineState,
    Insight,
    InsightCategory,
    InsightPriority,
    InsightRun,
    InsightType,
    Project,
    TimeEntry,
)
from profit_insights.services.analysis_tasks import ANALYSIS_TASKS, run_analysis_task
from profit_insights.services.context_builder import build_contexts
from profit_insights.services.data_store import DataStore
from profit_insights.services.generative import GenerativeAnalysisService
from profit_insights.services.insight_ranker import MAX_INSIGHTS, rank_insights
from profit_insights.services.metric_aggregator import aggregate_metrics, aggregate_weekly_metrics
from profit_insights.services.rule_insights import RULES_LOOKBACK_DAYS, build_rule_based_insights
from profit_insights.services.weekly_summary import (
    UNAVAILABLE_SUMMARY_TEXT,
    WEEKLY_SUMMARY_MAX_TOKENS,
    WEEKLY_SUMMARY_TEMPERATURE,
    build_weekly_summary_messages,
    format_weekly_summary,
)


logger = logging.getLogger(__name__)


# =============================================================================
# State Machine
# =============================================================================

# DEGRADED from ANALYZING / RANKING only covers unexpected errors; the
# planned degraded exits (store failure, empty window) happen earlier.
ALLOWED_TRANSITIONS: Dict[EngineState, Set[EngineState]] = {
    EngineState.IDLE: {EngineState.FETCHING},
    EngineState.FETCHING: {EngineState.AGGREGATING, EngineState.DEGRADED},
    EngineState.AGGREGATING: {EngineState.ANALYZING, EngineState.DEGRADED},
    EngineState.ANALYZING: {EngineState.RANKING, EngineState.DEGRADED},
    EngineState.RANKING: {EngineState.DONE, EngineState.DEGRADED},
    EngineState.DONE: set(),
    EngineState.DEGRADED: set(),
}


class InvalidStateTransition(Exception):
    """Raised when a pipeline run attempts a transition the state machine forbids."""

    def __init__(self, current: EngineState, target: EngineState):
        super().__init__(f"Invalid pipeline transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class PipelineRun:
    """State of a single pipeline execution. Engines create one per call."""

    def __init__(self):
        self.state = EngineState.IDLE
        self.history: List[EngineState] = [EngineState.IDLE]

    def advance(self, target: EngineState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidStateTransition(self.state, target)
        self.state = target
        self.history.append(target)

    @property
    def finished(self) -> bool:
        return self.state in (EngineState.DONE, EngineState.DEGRADED)


# =============================================================================
# Static Insight Sets
# =============================================================================


def onboarding_insights() -> List[Insight]:
    """Fixed set shown when the user has no time entries in the window."""
    return [
        Insight(
            id="onboard-1",
            type=InsightType.RECOMMENDATION,
            category=InsightCategory.GROWTH,
            title="Start Tracking Your Time",
            description="Begin capturing your work sessions to unlock AI-powered insights",
            impact="Foundation for all analytics and optimization",
            action_items=[
                "Track your first work session",
                "Set up your clients and projects",
                "Define your standard hourly rates",
            ],
            confidence=1.0,
            priority=InsightPriority.HIGH,
        ),
        Insight(
            id="onboard-2",
            type=InsightType.RECOMMENDATION,
            category=InsightCategory.PRODUCTIVITY,
            title="Set Up Your Workspace",
            description="Configure your tracking categories for better insights",
            impact="Improved data quality and actionable insights",
            action_items=[
                "Create marketing channel categories",
                "Set up project templates",
                "Configure billing preferences",
            ],
            confidence=1.0,
            priority=InsightPriority.MEDIUM,
        ),
    ]


def fallback_insights() -> List[Insight]:
    """Fixed set returned when the pipeline fails unexpectedly."""
    return [
        Insight(
            id="fallback-1",
            type=InsightType.ANALYSIS,
            category=InsightCategory.PRODUCTIVITY,
            title="Insights Temporarily Unavailable",
            description="We're processing your data. Please check back shortly.",
            impact="Full insights will be available soon",
            action_items=["Refresh in a few moments"],
            confidence=0.5,
            priority=InsightPriority.LOW,
        ),
    ]


# =============================================================================
# Engine
# =============================================================================


class InsightsEngine:
    """
    Orchestrator for insight generation and weekly summaries.

    Args:
        data_store: Read-only source of entries, clients and projects.
        generative: Service implementing complete(messages, options).
        lookback_days: History window fed into the aggregator.
        weekly_window_days: Report window of the weekly summary.
        max_insights: Cap applied by the ranker.
        task_timeout: Seconds allowed for each generative call.
        model: Model name sent with every completion request.
        dedupe: Drop near-duplicate insights before capping.
        target_daily_hours: Billable hours per day counted as full utilization.
        default_hourly_rate: Rate used to value unused retainer hours.
        retainer_usage_threshold: Retainer share below which a client is flagged.
        clock: Callable returning the current time; defaults to UTC now.
    """

    def __init__(
        self,
        data_store: DataStore,
        generative: GenerativeAnalysisService,
        *,
        lookback_days: int = 90,
        weekly_window_days: int = 7,
        max_insights: int = MAX_INSIGHTS,
        task_timeout: float = 30.0,
        model: str = "gpt-4o-mini",
        dedupe: bool = False,
        target_daily_hours: float = 6.0,
        default_hourly_rate: float = 100.0,
        retainer_usage_threshold: float = 0.8,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.data_store = data_store
        self.generative = generative
        self.lookback_days = lookback_days
        self.weekly_window_days = weekly_window_days
        self.max_insights = max_insights
        self.task_timeout = task_timeout
        self.model = model
        self.dedupe = dedupe
        self.target_daily_hours = target_daily_hours
        self.default_hourly_rate = default_hourly_rate
        self.retainer_usage_threshold = retainer_usage_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        data_store: DataStore,
        generative: GenerativeAnalysisService,
    ) -> "InsightsEngine":
        return cls(
            data_store,
            generative,
            lookback_days=settings.insights_lookback_days,
            weekly_window_days=settings.weekly_summary_days,
            max_insights=settings.max_insights,
            task_timeout=settings.generative_timeout_seconds,
            model=settings.openai_model,
            dedupe=settings.insight_dedupe_enabled,
            target_daily_hours=settings.target_daily_hours,
            default_hourly_rate=settings.default_hourly_rate,
            retainer_usage_threshold=settings.retainer_usage_threshold,
        )

    def _now(self) -> datetime:
        now = self._clock()
        return now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    async def _fetch(
        self,
        user_id: str,
        scope_id: str,
        since: datetime,
    ) -> Tuple[List[TimeEntry], List[Client], List[Project]]:
        entries, clients, projects = await asyncio.gather(
            self.data_store.fetch_time_entries(user_id, scope_id, since),
            self.data_store.fetch_active_clients(scope_id),
            self.data_store.fetch_active_or_planning_projects(scope_id),
        )
        return list(entries or []), list(clients or []), list(projects or [])

    async def _analyze(self, contexts: Dict[AnalysisTaskName, AnalysisContext]) -> List[Insight]:
        results = await asyncio.gather(*(
            run_analysis_task(
                task,
                contexts[name],
                self.generative,
                model=self.model,
                timeout=self.task_timeout,
            )
            for name, task in ANALYSIS_TASKS.items()
        ))
        merged: List[Insight] = []
        for name, insights in zip(ANALYSIS_TASKS, results):
            logger.debug(f"Task {name.value}: {len(insights)} insights")
            merged.extend(insights)
        return merged

    # =========================================================================
    # Public API
    # =========================================================================

    async def run_pipeline(self, user_id: str, scope_id: str) -> InsightRun:
        """
        Execute one full pipeline run.

        Returns:
            InsightRun: DONE with the ranked feed, or DEGRADED with the
            onboarding set (no entries) or the fallback set (any error).
        """
        run = PipelineRun()
        now = self._now()
        since = now - timedelta(days=self.lookback_days)

        try:
            run.advance(EngineState.FETCHING)
            entries, clients, projects = await self._fetch(user_id, scope_id, since)

            run.advance(EngineState.AGGREGATING)
            if not entries:
                run.advance(EngineState.DEGRADED)
                logger.info(f"No time entries for user {user_id} in the last {self.lookback_days} days")
                return InsightRun(state=run.state, insights=onboarding_insights(), reason="no_entries")

            bundle = aggregate_metrics(
                entries,
                clients,
                projects,
                now=now,
                window_start=since,
                target_daily_hours=self.target_daily_hours,
                default_hourly_rate=self.default_hourly_rate,
                retainer_usage_threshold=self.retainer_usage_threshold,
            )
            contexts = build_contexts(bundle, entries, clients, projects)

            run.advance(EngineState.ANALYZING)
            merged = await self._analyze(contexts)

            run.advance(EngineState.RANKING)
            ranked = rank_insights(merged, limit=self.max_insights, dedupe=self.dedupe)

            run.advance(EngineState.DONE)
            logger.info(
                f"Generated {len(ranked)} insights for user {user_id} "
                f"({len(merged)} before ranking, {bundle.entry_count} entries)"
            )
            return InsightRun(state=run.state, insights=ranked)

        except Exception as e:
            logger.error(
                f"Insight pipeline failed for user {user_id} in state {run.state.value}: {e}",
                exc_info=True,
            )
            if EngineState.DEGRADED in ALLOWED_TRANSITIONS[run.state]:
                run.advance(EngineState.DEGRADED)
            return InsightRun(
                state=EngineState.DEGRADED,
                insights=fallback_insights(),
                reason=type(e).__name__,
            )

    async def generate_insights(self, user_id: str, scope_id: str) -> List[Insight]:
        """Ranked insight feed for a user; never raises, never more than max_insights."""
        run = await self.run_pipeline(user_id, scope_id)
        return run.insights

    async def generate_weekly_summary(self, user_id: str, scope_id: str) -> str:
        """
        Fixed-section weekly report for a user.

        Fetches the report window plus the window before it so week-over-week
        deltas are meaningful. Never raises: any failure yields
        UNAVAILABLE_SUMMARY_TEXT.
        """
        now = self._now()
        since = now - timedelta(days=2 * self.weekly_window_days)

        try:
            entries, clients, projects = await self._fetch(user_id, scope_id, since)
            metrics = aggregate_weekly_metrics(
                entries, clients, projects, now=now, window_days=self.weekly_window_days
            )
            options = CompletionOptions(
                model=self.model,
                temperature=WEEKLY_SUMMARY_TEMPERATURE,
                max_tokens=WEEKLY_SUMMARY_MAX_TOKENS,
            )
            response = await asyncio.wait_for(
                self.generative.complete(build_weekly_summary_messages(metrics), options),
                timeout=self.task_timeout,
            )
            if not isinstance(response, dict):
                logger.warning(f"Weekly summary response is a {type(response).__name__}, expected an object")
                return UNAVAILABLE_SUMMARY_TEXT
            return format_weekly_summary(response.get("summary"))

        except asyncio.TimeoutError:
            logger.warning(f"Weekly summary for user {user_id} timed out after {self.task_timeout}s")
            return UNAVAILABLE_SUMMARY_TEXT
        except Exception as e:
            logger.error(f"Weekly summary failed for user {user_id}: {e}", exc_info=True)
            return UNAVAILABLE_SUMMARY_TEXT

    async def generate_rule_based_insights(self, user_id: str, scope_id: str) -> List[Insight]:
        """Heuristic insights over the last 30 days; [] when the store fails."""
        since = self._now() - timedelta(days=RULES_LOOKBACK_DAYS)
        try:
            entries = await self.data_store.fetch_time_entries(user_id, scope_id, since)
            return build_rule_based_insights(entries or [])
        except Exception as e:
            logger.error(f"Rule-based insights failed for user {user_id}: {e}", exc_info=True)
            return []
