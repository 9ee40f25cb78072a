'''
Profit Insights Backend Test Suite

Test Modules:
-------------
- test_metric_aggregator.py: MetricBundle arithmetic, bounds and candidate lists
- test_context_builder.py: Per-task contexts, determinism, rendering
- test_analysis_tasks.py: Record mappers and the per-task failure boundary
- test_insight_ranker.py: Priority/confidence ordering, dedup, cap
- test_generative.py: OpenAI-compatible client over httpx.MockTransport
- test_weekly_summary.py: Weekly prompt and fixed-section rendering
- test_rule_insights.py: Heuristic insights without the generative service
- test_data_store.py: PostgresDataStore row mapping and query parameters
- test_insights_engine.py: State machine, onboarding/fallback sets, fan-out
- test_api.py: HTTP contract of the insights router

Running Tests:
--------------
    pip install -e ".[test]"
    pytest profit_insights/tests -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
