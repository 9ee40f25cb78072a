"""
Weekly summary prompt and report rendering.

The engine sends one completion request built from WeeklyMetrics and renders
the returned "summary" object into a fixed-section markdown report:

    # Weekly Performance Summary
    ## Executive Summary
    ## Key Achievements                  (bullets)
    ## Areas Needing Attention           (bullets)
    ## Recommended Focus for Next Week   (numbered)
    ## Strategic Insight
"""

import json
from typing import Any, List

from profit_insights.models import WeeklyMetrics
from profit_insights.services.generative import Message


WEEKLY_SUMMARY_TEMPERATURE = 0.4
WEEKLY_SUMMARY_MAX_TOKENS = 1000

NO_SUMMARY_TEXT = "No summary available"
UNAVAILABLE_SUMMARY_TEXT = "Unable to generate weekly summary at this time."

WEEKLY_SUMMARY_SYSTEM = (
    "You are an executive assistant providing weekly performance summaries "
    "for digital marketing agency owners. Be concise, insightful, and actionable."
)


def build_weekly_summary_messages(metrics: WeeklyMetrics) -> List[Message]:
    wow = metrics.week_over_week
    highlights = [h.model_dump(mode="json") for h in metrics.highlights]
    challenges = [c.model_dump(mode="json") for c in metrics.challenges]

    user = "\n".join([
        "Create a weekly summary from this data:",
        "",
        "Week Overview:",
        f"- Total hours worked: {metrics.total_hours:.1f}",
        f"- Billable hours: {metrics.billable_hours:.1f}",
        f"- Revenue generated: ${metrics.revenue:,.2f}",
        f"- Active clients: {metrics.active_clients}",
        f"- Projects: {metrics.project_count}",
        "",
        "Compared to previous week:",
        f"- Hours change: {wow.hours_change:.1f}%",
        f"- Revenue change: {wow.revenue_change:.1f}%",
        f"- Productivity change: {wow.productivity_change:.1f}%",
        "",
        "Highlights:",
        json.dumps(highlights, indent=2, sort_keys=True),
        "",
        "Challenges:",
        json.dumps(challenges, indent=2, sort_keys=True),
        "",
        'Return JSON with a "summary" object containing:',
        "- executive_summary: 2-3 sentences",
        "- key_achievements: array of bullet strings",
        "- areas_needing_attention: array of bullet strings",
        "- recommended_focus: array of 3 priorities for next week",
        "- strategic_insight: one strategic insight",
    ])
    return [
        {"role": "system", "content": WEEKLY_SUMMARY_SYSTEM},
        {"role": "user", "content": user},
    ]


def _items(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _paragraph(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def format_weekly_summary(summary: Any) -> str:
    """
    Render the model's summary object as the fixed-section report.

    A missing or non-object summary renders as NO_SUMMARY_TEXT.
    """
    if not isinstance(summary, dict) or not summary:
        return NO_SUMMARY_TEXT

    achievements = "\n".join(f"- {item}" for item in _items(summary.get("key_achievements")))
    attention = "\n".join(f"- {item}" for item in _items(summary.get("areas_needing_attention")))
    focus = "\n".join(
        f"{i}. {item}" for i, item in enumerate(_items(summary.get("recommended_focus")), start=1)
    )

    sections = [
        "# Weekly Performance Summary",
        "## Executive Summary\n" + _paragraph(summary.get("executive_summary")),
        "## Key Achievements\n" + achievements,
        "## Areas Needing Attention\n" + attention,
        "## Recommended Focus for Next Week\n" + focus,
        "## Strategic Insight\n" + _paragraph(summary.get("strategic_insight")),
    ]
    return "\n\n".join(section.rstrip() for section in sections)
