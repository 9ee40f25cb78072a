"""
Pytest Configuration and Shared Fixtures for Profit Insights Backend Tests.

This module provides fixtures and configuration for all backend tests, supporting:
- Async test execution with pytest-asyncio
- A fixed reference clock so rolling windows are deterministic
- Factories for TimeEntry / Client / Project records
- An in-memory DataStore and a scripted GenerativeAnalysisService
- A mock asyncpg pool for PostgresDataStore tests

The fakes route generative requests by the response key each prompt asks for:
analysis prompts contain `"<task>" array` and the weekly summary prompt
contains `"summary" object`.

Dependencies:
- pytest
- pytest-asyncio
- httpx (FastAPI TestClient and httpx.MockTransport)
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from profit_insights.models import (
    AnalysisTaskName,
    Client,
    CompletionOptions,
    Project,
    TimeEntry,
)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - contract: HTTP contract tests against the FastAPI router
    - scenario: End-to-end pipeline scenarios over synthetic histories

    Usage:
        pytest -m contract
        pytest -m "not scenario"
    """
    config.addinivalue_line(
        'markers',
        'contract: marks HTTP contract tests against the insights router'
    )
    config.addinivalue_line(
        'markers',
        'scenario: marks end-to-end pipeline scenarios over synthetic histories'
    )


# ============================================================
# CLOCK
# ============================================================

# Wednesday, 2026-03-18 12:00 UTC
REFERENCE_NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time shared by aggregator and engine tests."""
    return REFERENCE_NOW


# ============================================================
# RECORD FACTORIES
# ============================================================

@pytest.fixture
def make_entry(now: datetime) -> Callable[..., TimeEntry]:
    """
    Factory for TimeEntry records positioned relative to the reference clock.

    Usage:
        entry = make_entry(days_ago=3, duration=90, billable=True, amount=150)

    Args accepted by the factory:
        days_ago / hours_ago: Offset of start_time before `now`
        Any TimeEntry field as a keyword override
    """
    counter = {'n': 0}

    def _make(days_ago: float = 1, hours_ago: float = 0, **overrides: Any) -> TimeEntry:
        counter['n'] += 1
        start = now - timedelta(days=days_ago, hours=hours_ago)
        duration = overrides.pop('duration', 60)
        fields: Dict[str, Any] = {
            'id': f"te_{counter['n']:03d}",
            'start_time': start,
            'end_time': start + timedelta(minutes=duration),
            'duration': duration,
            'billable': True,
            'amount': 100.0,
            'hourly_rate': 100.0,
            'marketing_channel': 'SEO',
            'client_id': 'cl_001',
            'project_id': 'pr_001',
            'user_id': 'usr_001',
        }
        fields.update(overrides)
        return TimeEntry(**fields)

    return _make


@pytest.fixture
def sample_clients() -> List[Client]:
    """Two active clients, one of them on a 20 hour retainer at $150/h."""
    return [
        Client(id='cl_001', name='Acme Dental', hourly_rate=150.0, retainer_hours=20.0),
        Client(id='cl_002', name='Birch Legal'),
    ]


@pytest.fixture
def sample_projects(now: datetime) -> List[Project]:
    """One project with budget/estimate/deadline and one bare planning project."""
    return [
        Project(
            id='pr_001',
            name='Spring Campaign',
            client_id='cl_001',
            budget_amount=5000.0,
            estimated_hours=40.0,
            deadline=now + timedelta(days=21),
        ),
        Project(id='pr_002', name='Site Audit', client_id='cl_002', status='planning'),
    ]


@pytest.fixture
def sample_entries(make_entry: Callable[..., TimeEntry]) -> List[TimeEntry]:
    """A small two-week history across two channels and both clients."""
    return [
        make_entry(days_ago=1, duration=120, amount=300.0, marketing_channel='SEO'),
        make_entry(days_ago=2, duration=90, amount=225.0, marketing_channel='PPC', client_id='cl_002'),
        make_entry(days_ago=3, duration=60, billable=False, amount=0.0, marketing_channel='SEO'),
        make_entry(days_ago=9, duration=60, amount=150.0, marketing_channel='PPC'),
        make_entry(days_ago=10, duration=30, billable=False, amount=0.0, marketing_channel='SEO',
                   project_id='pr_002', client_id='cl_002'),
    ]


# ============================================================
# DATA STORE FAKE
# ============================================================

class FakeDataStore:
    """
    In-memory DataStore.

    Set `error` to make every read raise it. Calls are recorded in `calls`
    as (method, args) tuples.
    """

    def __init__(
        self,
        entries: Optional[List[TimeEntry]] = None,
        clients: Optional[List[Client]] = None,
        projects: Optional[List[Project]] = None,
        error: Optional[Exception] = None,
    ):
        self.entries = entries or []
        self.clients = clients or []
        self.projects = projects or []
        self.error = error
        self.calls: List[Tuple[str, tuple]] = []

    async def fetch_time_entries(self, user_id: str, scope_id: str, since: datetime) -> List[TimeEntry]:
        self.calls.append(('fetch_time_entries', (user_id, scope_id, since)))
        if self.error:
            raise self.error
        return [e for e in self.entries if e.start_time >= since]

    async def fetch_active_clients(self, scope_id: str) -> List[Client]:
        self.calls.append(('fetch_active_clients', (scope_id,)))
        if self.error:
            raise self.error
        return list(self.clients)

    async def fetch_active_or_planning_projects(self, scope_id: str) -> List[Project]:
        self.calls.append(('fetch_active_or_planning_projects', (scope_id,)))
        if self.error:
            raise self.error
        return list(self.projects)


@pytest.fixture
def fake_store(
    sample_entries: List[TimeEntry],
    sample_clients: List[Client],
    sample_projects: List[Project],
) -> FakeDataStore:
    """DataStore preloaded with the sample history."""
    return FakeDataStore(sample_entries, sample_clients, sample_projects)


@pytest.fixture
def empty_store(sample_clients: List[Client]) -> FakeDataStore:
    """DataStore with clients but no time entries."""
    return FakeDataStore([], sample_clients, [])


@pytest.fixture
def failing_store() -> FakeDataStore:
    """DataStore whose every read raises a ConnectionError."""
    return FakeDataStore(error=ConnectionError('database unavailable'))


# ============================================================
# GENERATIVE SERVICE FAKE
# ============================================================

SUMMARY_ROUTE = 'summary'


class FakeGenerative:
    """
    Scripted GenerativeAnalysisService.

    `responses` maps a route (an AnalysisTaskName value or 'summary') to the
    object returned for that prompt, or to an Exception instance to raise.
    Unscripted analysis routes answer with an empty array. `delays` maps a
    route to seconds slept before answering.
    """

    def __init__(self):
        self.responses: Dict[str, Any] = {}
        self.delays: Dict[str, float] = {}
        self.calls: List[Tuple[str, List[Dict[str, str]], CompletionOptions]] = []

    @staticmethod
    def route_for(messages: List[Dict[str, str]]) -> str:
        prompt = messages[-1]['content']
        for name in AnalysisTaskName:
            if f'"{name.value}" array' in prompt:
                return name.value
        if '"summary" object' in prompt:
            return SUMMARY_ROUTE
        raise AssertionError('prompt does not name a response key')

    async def complete(self, messages: List[Dict[str, str]], options: CompletionOptions) -> Any:
        route = self.route_for(messages)
        self.calls.append((route, messages, options))
        delay = self.delays.get(route)
        if delay:
            await asyncio.sleep(delay)
        response = self.responses.get(route, {route: []} if route != SUMMARY_ROUTE else {})
        if isinstance(response, Exception):
            raise response
        return response

    def routes_called(self) -> List[str]:
        return [route for route, _, _ in self.calls]


@pytest.fixture
def fake_generative() -> FakeGenerative:
    """Generative service answering every analysis task with an empty array."""
    return FakeGenerative()


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Create a mock asyncpg connection pool for testing PostgresDataStore.

    Provides pool.acquire() as an async context manager yielding a mock
    connection whose fetch() returns [] by default.

    Usage:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.return_value = [{'id': 'te_001', ...}]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])

    # acquire() is a plain call returning an async context manager
    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)

    pool.close = AsyncMock(return_value=None)
    return pool
