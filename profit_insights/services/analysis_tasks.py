"""
Analysis Tasks - the five independent generative analyses.

Each AnalysisTask pairs a fixed system instruction and prompt with a tolerant
mapper that turns the loosely-typed records returned by the generative
service into Insight objects:

| Task            | Response key      | Temp | Max tokens | Default confidence          |
|-----------------|-------------------|------|------------|-----------------------------|
| predictions     | "predictions"     | 0.3  | 1500       | 0.7                         |
| anomalies       | "anomalies"       | 0.2  | 1200       | 0.85                        |
| recommendations | "recommendations" | 0.4  | 1500       | 0.8                         |
| patterns        | "patterns"        | 0.3  | 1200       | 0.75                        |
| opportunities   | "opportunities"   | 0.5  | 1500       | high 0.9 / medium 0.7 / 0.5 |

run_analysis_task() is the failure boundary of a single task: exceptions,
timeouts and malformed responses all produce an empty list (logged), never
an exception. Tasks do not cap their output; the ranker does.

Mapping rules shared by all tasks:
- Non-dict records are skipped.
- Missing text fields get a documented default.
- Confidence is coerced to float and clamped to [0, 1], else the task default.
- Priority comes from "severity" / "priority" (case-insensitive), else medium.
- Category comes from a valid explicit "category", a fixed per-task category,
  or keyword inspection of title + description.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from profit_insights.models import (
    AnalysisContext,
    AnalysisTaskName,
    CompletionOptions,
    Insight,
    InsightCategory,
    InsightComparison,
    InsightPriority,
    InsightType,
    InsightVisualization,
    VisualizationType,
)
from profit_insights.services.context_builder import render_context
from profit_insights.services.generative import GenerativeAnalysisService, Message


logger = logging.getLogger(__name__)


# =============================================================================
# Tolerant Field Helpers
# =============================================================================

# First match wins
CATEGORY_KEYWORDS = [
    (InsightCategory.REVENUE, ("revenue", "profit", "billing")),
    (InsightCategory.GROWTH, ("growth", "expand", "opportunity")),
    (InsightCategory.RISK, ("risk", "warning", "issue")),
    (InsightCategory.EFFICIENCY, ("efficien", "optimize", "improve")),
]


def _text(record: Dict[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _string_list(value: Any) -> List[str]:
    """Accept a list of strings or a single string; drop empty items."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def coerce_confidence(value: Any, default: float) -> float:
    """Float in [0, 1]; the task default when the value is missing or unusable."""
    number = _number(value)
    if number is None:
        return default
    return min(1.0, max(0.0, number))


def derive_priority(record: Dict[str, Any]) -> InsightPriority:
    """
    Priority from the record's "severity" or "priority" string.

    The more urgent of the two wins; anything unrecognized is medium.
    """
    labels = {
        str(record.get(key)).strip().lower()
        for key in ("severity", "priority")
        if isinstance(record.get(key), str)
    }
    for priority in (InsightPriority.CRITICAL, InsightPriority.HIGH, InsightPriority.LOW):
        if priority.value in labels:
            return priority
    return InsightPriority.MEDIUM


def categorize(title: str, description: str) -> InsightCategory:
    """Keyword inspection of title + description."""
    text = f"{title} {description}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return InsightCategory.PRODUCTIVITY


def _explicit_category(record: Dict[str, Any]) -> Optional[InsightCategory]:
    value = record.get("category")
    if isinstance(value, str):
        try:
            return InsightCategory(value.strip().lower())
        except ValueError:
            return None
    return None


def _comparison(value: Any) -> Optional[InsightComparison]:
    if not isinstance(value, dict):
        return None
    current = _number(value.get("current"))
    predicted = _number(value.get("predicted"))
    change = _number(value.get("change_percent"))
    if current is None or predicted is None or change is None:
        return None
    return InsightComparison(current=current, predicted=predicted, change_percent=change)


def _dict_or_none(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _compact(values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    kept = {k: v for k, v in values.items() if v is not None}
    return kept or None


# =============================================================================
# Record Mappers
# =============================================================================


def map_prediction(record: Dict[str, Any], index: int) -> Insight:
    title = _text(record, "title", "Prediction")
    description = _text(record, "description")
    predicted_date = record.get("predicted_date")
    return Insight(
        id=f"pred-{index}",
        type=InsightType.PREDICTION,
        category=_explicit_category(record) or categorize(title, description),
        title=title,
        description=description,
        impact=_text(record, "impact", "Potential impact on business metrics"),
        action_items=_string_list(record.get("action_items")),
        confidence=coerce_confidence(record.get("confidence"), 0.7),
        priority=derive_priority(record),
        predicted_value=_number(record.get("predicted_value")),
        predicted_date=str(predicted_date) if predicted_date is not None else None,
        comparison=_comparison(record.get("comparison")),
        data_points=_dict_or_none(record.get("data_points")),
    )


def map_anomaly(record: Dict[str, Any], index: int) -> Insight:
    anomaly_type = _text(record, "type", "Unusual activity")
    metric = _text(record, "affected_metric")
    deviation = _text(record, "deviation")
    if metric and deviation:
        impact = f"{metric} deviates by {deviation}"
    else:
        impact = "Deviation from normal activity"
    return Insight(
        id=f"anomaly-{index}",
        type=InsightType.ANOMALY,
        category=InsightCategory.RISK,
        title=f"Anomaly Detected: {anomaly_type}",
        description=_text(record, "description"),
        impact=impact,
        action_items=_string_list(record.get("recommended_action")),
        confidence=coerce_confidence(record.get("confidence"), 0.85),
        priority=derive_priority(record),
        data_points=_dict_or_none(record.get("data_points")),
    )


def map_recommendation(record: Dict[str, Any], index: int) -> Insight:
    title = _text(record, "title", "Recommendation")
    description = _text(record, "description")
    metrics = record.get("metrics_to_track")
    return Insight(
        id=f"rec-{index}",
        type=InsightType.RECOMMENDATION,
        category=_explicit_category(record) or categorize(title, description),
        title=title,
        description=description,
        impact=_text(record, "expected_impact", "Expected improvement in key metrics"),
        action_items=_string_list(record.get("implementation_steps")),
        confidence=coerce_confidence(record.get("confidence"), 0.8),
        priority=derive_priority(record),
        data_points=_compact({
            "effort": _text(record, "effort_level") or None,
            "metrics": _string_list(metrics) or None,
        }),
    )


def map_pattern(record: Dict[str, Any], index: int) -> Insight:
    raw_visual = record.get("visualization_type")
    try:
        visual = VisualizationType(str(raw_visual).strip().lower())
    except ValueError:
        visual = VisualizationType.CHART
    return Insight(
        id=f"pattern-{index}",
        type=InsightType.ANALYSIS,
        category=InsightCategory.PRODUCTIVITY,
        title=_text(record, "title", "Pattern"),
        description=_text(record, "description"),
        impact=_text(record, "significance"),
        action_items=_string_list(record.get("actionable_insight")),
        confidence=coerce_confidence(record.get("confidence"), 0.75),
        priority=derive_priority(record),
        visualization=InsightVisualization(type=visual, data=record.get("data")),
        data_points=_compact({"pattern_type": _text(record, "pattern_type") or None}),
    )


SUCCESS_PROBABILITY_CONFIDENCE = {"high": 0.9, "medium": 0.7}
HIGH_PRIORITY_REVENUE_POTENTIAL = 5000


def map_opportunity(record: Dict[str, Any], index: int) -> Insight:
    probability = _text(record, "success_probability").lower()
    potential = _number(record.get("revenue_potential"))
    if potential is not None and potential > HIGH_PRIORITY_REVENUE_POTENTIAL:
        priority = InsightPriority.HIGH
    else:
        priority = derive_priority(record)
    impact = (
        f"Potential revenue: ${potential:,.0f}/month" if potential is not None
        else "Potential revenue impact"
    )
    return Insight(
        id=f"opp-{index}",
        type=InsightType.OPPORTUNITY,
        category=InsightCategory.GROWTH,
        title=_text(record, "title", "Opportunity"),
        description=_text(record, "description"),
        impact=impact,
        action_items=_string_list(record.get("first_steps")),
        confidence=SUCCESS_PROBABILITY_CONFIDENCE.get(probability, 0.5),
        priority=priority,
        data_points=_compact({
            "opportunity_type": _text(record, "opportunity_type") or None,
            "investment": _text(record, "investment_required") or None,
            "timeline": _text(record, "implementation_timeline") or None,
        }),
    )


# =============================================================================
# Task Definitions
# =============================================================================


@dataclass(frozen=True)
class AnalysisTask:
    """
    One generative analysis: prompts, sampling options and record mapper.

    The user prompt is `intro`, the rendered context, then `instructions`,
    which always ask for a JSON object holding a `response_key` array.
    """
    name: AnalysisTaskName
    system_instruction: str
    intro: str
    instructions: str
    temperature: float
    max_tokens: int
    default_confidence: float
    mapper: Callable[[Dict[str, Any], int], Insight]

    @property
    def response_key(self) -> str:
        return self.name.value

    def build_messages(self, context: AnalysisContext) -> List[Message]:
        user = "\n\n".join([self.intro, render_context(context), self.instructions])
        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": user},
        ]

    def map_records(self, records: List[Any]) -> List[Insight]:
        insights: List[Insight] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                logger.debug(f"{self.name.value}: skipping non-object record at {index}")
                continue
            try:
                insights.append(self.mapper(record, index))
            except ValueError as e:
                logger.warning(f"{self.name.value}: dropping unmappable record {index}: {e}")
        return insights


PREDICTIONS_TASK = AnalysisTask(
    name=AnalysisTaskName.PREDICTIONS,
    system_instruction=(
        "You are an AI analyst specializing in digital marketing agency metrics. "
        "Analyze time tracking data to predict future trends and outcomes. "
        "Focus on actionable predictions that help optimize revenue and productivity."
    ),
    intro="Analyze this time tracking data and generate predictions:",
    instructions=(
        'Return JSON with a "predictions" array covering:\n'
        "- revenue_next_month: predicted revenue\n"
        "- productivity_trend: up/down/stable with percentage\n"
        "- optimal_focus_times: best hours for deep work\n"
        "- project_completion_risk: projects at risk of delays\n"
        "- capacity_forecast: available hours next month\n"
        "- growth_opportunities: specific actions to increase revenue\n\n"
        "Each prediction should have: title, description, predicted_value, "
        "confidence (0-1), impact, action_items[], and optionally category, "
        "priority, predicted_date, comparison {current, predicted, change_percent}."
    ),
    temperature=0.3,
    max_tokens=1500,
    default_confidence=0.7,
    mapper=map_prediction,
)

ANOMALIES_TASK = AnalysisTask(
    name=AnalysisTaskName.ANOMALIES,
    system_instruction=(
        "You are an anomaly detection specialist. Identify unusual patterns, "
        "outliers, and potential issues in time tracking and billing data."
    ),
    intro=(
        "Detect anomalies in this data, such as unusual billing patterns, "
        "productivity drops or spikes, client engagement changes, time tracking "
        "inconsistencies, revenue irregularities and efficiency issues:"
    ),
    instructions=(
        'Return JSON with an "anomalies" array. Each anomaly should have:\n'
        "- type: the type of anomaly\n"
        "- severity: critical/high/medium/low\n"
        "- description: detailed explanation\n"
        "- affected_metric: what metric is affected\n"
        "- deviation: how much it deviates from normal\n"
        "- recommended_action: what to do about it\n"
        "- data_points: supporting data"
    ),
    temperature=0.2,
    max_tokens=1200,
    default_confidence=0.85,
    mapper=map_anomaly,
)

RECOMMENDATIONS_TASK = AnalysisTask(
    name=AnalysisTaskName.RECOMMENDATIONS,
    system_instruction=(
        "You are a business optimization expert for digital marketing agencies. "
        "Provide specific, actionable recommendations to improve efficiency, "
        "revenue, and client satisfaction."
    ),
    intro=(
        "Generate optimization recommendations for increasing billable hours, "
        "optimizing hourly rates, improving time management, expanding profitable "
        "channels, reducing context switching and automating repetitive tasks, based on:"
    ),
    instructions=(
        'Return JSON with a "recommendations" array. Each should have:\n'
        "- category: revenue/productivity/efficiency/growth\n"
        "- title: clear action title\n"
        "- description: why this matters\n"
        "- expected_impact: quantified benefit\n"
        "- implementation_steps: array of steps\n"
        "- effort_level: low/medium/high\n"
        "- priority: critical/high/medium/low\n"
        "- metrics_to_track: what to measure"
    ),
    temperature=0.4,
    max_tokens=1500,
    default_confidence=0.8,
    mapper=map_recommendation,
)

PATTERNS_TASK = AnalysisTask(
    name=AnalysisTaskName.PATTERNS,
    system_instruction=(
        "You are a pattern recognition expert. Identify meaningful patterns, "
        "correlations, and trends in time tracking and business data."
    ),
    intro=(
        "Analyze patterns in this data. Identify recurring patterns (daily, weekly, "
        "monthly), cause-effect relationships, hidden correlations, emerging trends "
        "and behavioral patterns:"
    ),
    instructions=(
        'Return JSON with a "patterns" array. Each pattern should have:\n'
        "- pattern_type: temporal/behavioral/correlation/trend\n"
        "- title: pattern name\n"
        "- description: what was discovered\n"
        "- significance: why it matters\n"
        "- confidence: 0-1\n"
        "- visualization_type: chart/metric/timeline\n"
        "- actionable_insight: how to use this knowledge"
    ),
    temperature=0.3,
    max_tokens=1200,
    default_confidence=0.75,
    mapper=map_pattern,
)

OPPORTUNITIES_TASK = AnalysisTask(
    name=AnalysisTaskName.OPPORTUNITIES,
    system_instruction=(
        "You are a growth strategist for digital agencies. Identify specific, "
        "high-impact opportunities for revenue growth and business expansion."
    ),
    intro=(
        "Identify growth opportunities (new revenue streams, service expansion, rate "
        "optimization, client upselling, capacity-creating efficiency gains, "
        "automation) from:"
    ),
    instructions=(
        'Return JSON with an "opportunities" array. Each should have:\n'
        "- opportunity_type: new_service/upsell/optimization/expansion\n"
        "- title: opportunity name\n"
        "- description: detailed explanation\n"
        "- revenue_potential: estimated monthly impact as a number\n"
        "- investment_required: time/money needed\n"
        "- success_probability: high/medium/low\n"
        "- implementation_timeline: weeks to implement\n"
        "- first_steps: immediate actions to take"
    ),
    temperature=0.5,
    max_tokens=1500,
    default_confidence=0.5,
    mapper=map_opportunity,
)


# Declaration order is the merge order
ANALYSIS_TASKS: Dict[AnalysisTaskName, AnalysisTask] = {
    task.name: task
    for task in (
        PREDICTIONS_TASK,
        ANOMALIES_TASK,
        RECOMMENDATIONS_TASK,
        PATTERNS_TASK,
        OPPORTUNITIES_TASK,
    )
}


# =============================================================================
# Execution
# =============================================================================


async def run_analysis_task(
    task: AnalysisTask,
    context: AnalysisContext,
    generative: GenerativeAnalysisService,
    *,
    model: str,
    timeout: float,
) -> List[Insight]:
    """
    Run one analysis task against the generative service.

    Args:
        task: Task definition.
        context: Context built for this task.
        generative: Service implementing complete(messages, options).
        model: Model name sent with the request.
        timeout: Upper bound in seconds for the whole call.

    Returns:
        List[Insight]: Mapped insights, or [] on any failure.
    """
    options = CompletionOptions(
        model=model,
        temperature=task.temperature,
        max_tokens=task.max_tokens,
    )
    messages = task.build_messages(context)

    try:
        response = await asyncio.wait_for(generative.complete(messages, options), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Analysis task '{task.name.value}' timed out after {timeout}s")
        return []
    except Exception as e:
        logger.error(f"Analysis task '{task.name.value}' failed: {e}", exc_info=True)
        return []

    if not isinstance(response, dict):
        logger.warning(
            f"Analysis task '{task.name.value}' got a {type(response).__name__} response, expected an object"
        )
        return []

    records = response.get(task.response_key)
    if not isinstance(records, list):
        logger.warning(f"Analysis task '{task.name.value}' response has no '{task.response_key}' array")
        return []

    insights = task.map_records(records)
    logger.info(f"Analysis task '{task.name.value}' produced {len(insights)} insights")
    return insights
