"""
Tests for engagement_engine.utils module.

Covers:
    - utc_now(), ensure_utc(), parse_datetime()
    - recency_decay(), round_half_up(), stable_hash(), pearson()
    - with_retry(): exponential backoff decorator for async functions
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from engagement_engine.exceptions import RetryExhaustedError
from engagement_engine.utils import (
    ensure_utc,
    parse_datetime,
    pearson,
    recency_decay,
    round_half_up,
    stable_hash,
    utc_now,
    with_retry,
)


# ===========================================================================
# Time helpers
# ===========================================================================


def test_utc_now_is_aware_utc():
    assert utc_now().tzinfo == timezone.utc


def test_ensure_utc_attaches_utc_to_naive():
    """Naive datetimes are taken to be UTC already (no shift)."""
    result = ensure_utc(datetime(2025, 6, 15, 12, 0))
    assert result == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_ensure_utc_converts_other_zones():
    plus_five = timezone(timedelta(hours=5))
    result = ensure_utc(datetime(2025, 6, 15, 17, 0, tzinfo=plus_five))
    assert result.tzinfo == timezone.utc
    assert result.hour == 12


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-06-15T12:00:00Z", datetime(2025, 6, 15, 12, tzinfo=timezone.utc)),
        ("2025-06-15T14:00:00+02:00", datetime(2025, 6, 15, 12, tzinfo=timezone.utc)),
        ("2025-06-15", datetime(2025, 6, 15, tzinfo=timezone.utc)),
        (None, None),
        ("", None),
    ],
)
def test_parse_datetime(value, expected):
    assert parse_datetime(value) == expected


def test_parse_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_datetime("last tuesday")


# ===========================================================================
# Numeric helpers
# ===========================================================================


class TestRecencyDecay:
    """Half-life weighting used by the voice learner."""

    def test_fresh_item_weighs_one(self):
        assert recency_decay(0, 180) == 1.0

    def test_one_half_life_weighs_half(self):
        assert recency_decay(180, 180) == pytest.approx(0.5)

    def test_floor_applies(self):
        assert recency_decay(10_000, 180, min_factor=0.1) == 0.1

    def test_negative_age_counts_as_zero(self):
        assert recency_decay(-5, 180) == 1.0

    def test_non_positive_half_life_disables_decay(self):
        assert recency_decay(365, 0) == 1.0


@pytest.mark.parametrize(
    "value, expected",
    [(2.5, 3), (3.5, 4), (2.4999, 2), (0.0, 0), (-2.5, -3), (18.75, 19)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_stable_hash_is_deterministic_and_order_sensitive():
    assert stable_hash("a", "b") == stable_hash("a", "b")
    assert stable_hash("a", "b") != stable_hash("b", "a")
    assert len(stable_hash("x")) == 64


class TestPearson:
    """Correlation helper used for trigger and pattern correlations."""

    def test_perfect_positive(self):
        assert pearson([1, 2, 3], [10, 20, 30]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert pearson([1, 0, 1, 0], [5, 10, 5, 10]) == pytest.approx(-1.0)

    def test_no_variance_returns_zero(self):
        assert pearson([1, 1, 1], [3, 4, 5]) == 0.0

    def test_single_point_returns_zero(self):
        assert pearson([1], [2]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            pearson([1, 2], [1])


# ===========================================================================
# with_retry()
# ===========================================================================


@pytest.mark.asyncio
@patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock)
async def test_with_retry_succeeds_first_try(mock_sleep):
    """A call that succeeds immediately is not retried."""

    @with_retry(max_attempts=3, base_delay=2.0)
    async def succeed():
        return "ok"

    assert await succeed() == "ok"
    mock_sleep.assert_not_awaited()


@pytest.mark.asyncio
@patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock)
async def test_with_retry_recovers_after_transient_failure(mock_sleep):
    """The call is retried after a failure and the eventual result returned."""
    calls = {"count": 0}

    @with_retry(max_attempts=3, base_delay=1.0)
    async def flaky():
        calls["count"] += 1
        if calls["count"] < 3:
            raise ConnectionError("reset by peer")
        return "done"

    assert await flaky() == "done"
    assert calls["count"] == 3
    assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
@patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock)
async def test_with_retry_exhausted_raises(mock_sleep):
    """After max_attempts the last error is wrapped in RetryExhaustedError."""

    @with_retry(max_attempts=2, base_delay=0.5, operation_name="embed")
    async def always_fail():
        raise TimeoutError("slow")

    with pytest.raises(RetryExhaustedError) as exc_info:
        await always_fail()

    err = exc_info.value
    assert err.operation == "embed"
    assert err.attempts == 2
    assert isinstance(err.last_error, TimeoutError)
    assert mock_sleep.await_count == 1


@pytest.mark.asyncio
@patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock)
async def test_with_retry_non_retryable_propagates(mock_sleep):
    """Exceptions outside retryable_exceptions propagate on the first failure."""
    calls = {"count": 0}

    @with_retry(max_attempts=3, retryable_exceptions=(ConnectionError,))
    async def bad_input():
        calls["count"] += 1
        raise KeyError("missing")

    with pytest.raises(KeyError):
        await bad_input()
    assert calls["count"] == 1
    mock_sleep.assert_not_awaited()


def test_with_retry_rejects_sync_functions():
    with pytest.raises(TypeError):
        @with_retry()
        def not_async():
            return 1
