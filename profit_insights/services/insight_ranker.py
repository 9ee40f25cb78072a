"""
Insight Ranker - merge, order and cap the insight feed.

Ordering is a stable sort on (priority rank, -confidence), with priority rank
critical=0, high=1, medium=2, low=3. Insights that tie on both keys keep their
merge order (task order, then record order), so the output is a deterministic
total order regardless of task completion order.

Deduplication is opt-in: when enabled, later insights whose normalized title
and category match an earlier-ranked one are dropped.
"""

import logging
import re
from typing import Iterable, List, Set, Tuple

from profit_insights.models import Insight, InsightCategory, PRIORITY_RANK


logger = logging.getLogger(__name__)


MAX_INSIGHTS = 20


def sort_key(insight: Insight) -> Tuple[int, float]:
    return PRIORITY_RANK[insight.priority], -insight.confidence


def _dedupe_key(insight: Insight) -> Tuple[str, InsightCategory]:
    title = re.sub(r"[^a-z0-9]+", " ", insight.title.lower()).strip()
    return title, insight.category


def dedupe_insights(insights: Iterable[Insight]) -> List[Insight]:
    """Keep the first insight per (normalized title, category)."""
    seen: Set[Tuple[str, InsightCategory]] = set()
    kept: List[Insight] = []
    for insight in insights:
        key = _dedupe_key(insight)
        if key in seen:
            continue
        seen.add(key)
        kept.append(insight)
    return kept


def rank_insights(
    insights: Iterable[Insight],
    *,
    limit: int = MAX_INSIGHTS,
    dedupe: bool = False,
) -> List[Insight]:
    """
    Order insights by priority then confidence and keep the top `limit`.

    Args:
        insights: Merged task output, in task order.
        limit: Maximum number of insights returned.
        dedupe: Drop near-duplicates before truncating.

    Returns:
        List[Insight]: At most `limit` insights, most important first.
    """
    ranked = sorted(insights, key=sort_key)
    if dedupe:
        before = len(ranked)
        ranked = dedupe_insights(ranked)
        if len(ranked) < before:
            logger.info(f"Dropped {before - len(ranked)} duplicate insights")
    return ranked[:max(0, limit)]
