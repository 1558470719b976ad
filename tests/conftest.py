"""Shared fixtures for the scoring & analysis engine test suite."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from engagement_engine.config import reset_settings
from engagement_engine.models import (
    Comment,
    CompanyInfo,
    CurrentRole,
    Engagement,
    HistoricalPost,
    ProfileInfo,
    RecentActivity,
    ResearchBundle,
)


# ---------------------------------------------------------------------------
# Ensure we don't hit real APIs or pick up local overrides during tests
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Clear API keys and ENGINE_* overrides; reset the settings singleton."""
    keys = [
        "SUPABASE_URL",
        "SUPABASE_SERVICE_KEY",
        "ANTHROPIC_API_KEY",
        "EMBEDDING_API_KEY",
        "EMBEDDING_API_URL",
        "EMBEDDING_MODEL",
        "LOG_LEVEL",
        "ENGINE_QUALIFIED_THRESHOLD",
        "ENGINE_REVIEW_THRESHOLD",
        "ENGINE_CACHE_TTL_HOURS",
        "ENGINE_PROVIDER_TIMEOUT",
        "ENGINE_PROVIDER_MAX_ATTEMPTS",
        "ENGINE_MIN_SIMILARITY",
        "ENGINE_COMMENT_WEIGHT",
        "ENGINE_RECENCY_HALF_LIFE_DAYS",
        "ENGINE_BATCH_PAGE_SIZE",
        "ENGINE_BATCH_PAGE_DELAY",
        "ENGINE_LLM_MODEL",
    ]
    for key in keys:
        monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_post(
    post_id: str,
    text: str = "A post about leadership",
    days_ago: int = 0,
    reactions: int = 10,
    comments: int = 0,
    shares: int = 0,
) -> HistoricalPost:
    return HistoricalPost(
        id=post_id,
        text=text,
        posted_at=FIXED_NOW - timedelta(days=days_ago),
        engagement=Engagement(
            likes=reactions,
            comments=comments,
            shares=shares,
            total_reactions=reactions,
        ),
    )


def make_bundle(
    name: str = "Jane Doe",
    title: str = "CEO",
    size: str = "1000+",
    industry: str = "Software",
    tenure: int = 3,
    summary: str = "I led teams and built products",
    post_count: int = 4,
) -> ResearchBundle:
    return ResearchBundle(
        profile=ProfileInfo(name=name, summary=summary),
        current_role=CurrentRole(title=title, company="Acme", tenure_months=tenure),
        company_info=CompanyInfo(name="Acme", size_bucket=size, industry=industry),
        recent_activity=RecentActivity(post_count=post_count),
    )


def make_comment(comment_id: str, text: str = "Great point", days_ago: int = 0) -> Comment:
    return Comment(id=comment_id, text=text, posted_at=FIXED_NOW - timedelta(days=days_ago))


@pytest.fixture
def post_factory():
    return make_post


@pytest.fixture
def comment_factory():
    return make_comment


@pytest.fixture
def bundle_factory():
    return make_bundle


# ---------------------------------------------------------------------------
# Mock Supabase client
# ---------------------------------------------------------------------------
@pytest.fixture
def mock_supabase_client():
    """A mock Supabase async client whose query chain ends in ``await execute()``.

    Set ``client.result_data`` to control the rows returned.
    """
    client = MagicMock()
    client.result_data = []
    table_mock = MagicMock()
    for method in ("select", "insert", "upsert", "update", "delete",
                   "eq", "in_", "lt", "gte", "lte", "order", "limit", "range"):
        getattr(table_mock, method).return_value = table_mock

    async def mock_execute():
        return MagicMock(data=client.result_data, count=len(client.result_data))

    table_mock.execute = mock_execute
    client.table.return_value = table_mock
    client.table_mock = table_mock
    return client
