"""
Tests for engagement_engine.analysis.historical_analyzer.

Covers:
    - Tier-weighted ranking (viral precedents outrank weak ones)
    - Empty corpus "no signal" result
    - Input validation
    - Caching of scores/patterns, degraded results never cached
    - Provider and cache-store failures degrade instead of raising
    - Confidence labels and prediction arithmetic
"""

import dataclasses
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from engagement_engine.analysis.historical_analyzer import (
    HistoricalAnalyzer,
    confidence_for,
    corpus_fingerprint,
    topic_supported_triggers,
)
from engagement_engine.analysis.post_metrics import derive_metrics
from engagement_engine.analysis.similarity import ResilientSimilarity, SimilarityProvider
from engagement_engine.cache.research_cache import InMemoryCacheStore, ResearchCache
from engagement_engine.exceptions import InvalidInputError, ProviderUnavailableError
from engagement_engine.models import ConfidenceLabel, PatternSummary, PerformanceTier


def with_tier(post, tier):
    """Return ``post`` with metrics derived and its tier pinned to ``tier``."""
    derived = derive_metrics(post)
    return dataclasses.replace(
        derived,
        derived_metrics=dataclasses.replace(derived.derived_metrics, performance_tier=tier),
    )


class DownProvider(SimilarityProvider):
    name = "down"

    async def score_many(self, query, texts):
        raise ProviderUnavailableError("down", "connection refused")


@pytest.fixture
def analyzer():
    return HistoricalAnalyzer()


@pytest.fixture
def store():
    return InMemoryCacheStore()


@pytest.fixture
def cached_analyzer(store, clock):
    return HistoricalAnalyzer(cache=ResearchCache(store, clock=clock))


# ===========================================================================
# Ranking
# ===========================================================================


@pytest.mark.asyncio
async def test_viral_posts_rank_above_equally_similar_low_posts(analyzer, post_factory):
    viral = [
        with_tier(post_factory(f"v{i}", text=f"Leadership lesson number {i}", days_ago=30 + i),
                  PerformanceTier.VIRAL)
        for i in range(3)
    ]
    low = [
        with_tier(post_factory(f"l{i}", text=f"Leadership thoughts {i}", days_ago=i),
                  PerformanceTier.LOW)
        for i in range(3)
    ]
    off_topic = [
        with_tier(post_factory(f"m{i}", text="Quarterly revenue update"), PerformanceTier.MID)
        for i in range(4)
    ]

    result = await analyzer.analyze("leadership", [*low, *off_topic, *viral], limit=5)

    assert len(result.matches) == 5
    assert [m.post.tier for m in result.matches[:3]] == [PerformanceTier.VIRAL] * 3
    assert all(m.post.tier == PerformanceTier.LOW for m in result.matches[3:])
    assert all(m.post.id.startswith(("v", "l")) for m in result.matches)


@pytest.mark.asyncio
async def test_higher_tier_wins_at_equal_similarity(analyzer, post_factory):
    text = "Hiring your first sales leader"
    mid = with_tier(post_factory("mid", text=text), PerformanceTier.MID)
    high = with_tier(post_factory("high", text=text, days_ago=100), PerformanceTier.HIGH)

    result = await analyzer.analyze("hiring sales", [mid, high])

    assert [m.post.id for m in result.matches] == ["high", "mid"]


@pytest.mark.asyncio
async def test_moderate_viral_match_beats_strong_low_match(analyzer, post_factory):
    viral = with_tier(post_factory("viral", text="Hiring notes"), PerformanceTier.VIRAL)
    low = with_tier(post_factory("low", text="Leadership and hiring"), PerformanceTier.LOW)

    result = await analyzer.analyze("leadership hiring", [low, viral])

    assert result.matches[0].post.id == "viral"
    assert result.matches[0].similarity_score == 0.5
    assert result.matches[0].combined_rank == 1.0
    assert result.matches[1].combined_rank == 0.5


@pytest.mark.asyncio
async def test_ties_prefer_more_recent_post(analyzer, post_factory):
    older = post_factory("older", text="Board meetings", days_ago=10)
    newer = post_factory("newer", text="Board meetings", days_ago=1)

    result = await analyzer.analyze("board meetings", [older, newer])

    assert [m.post.id for m in result.matches] == ["newer", "older"]


@pytest.mark.asyncio
async def test_unrelated_posts_are_not_matches(analyzer, post_factory):
    result = await analyzer.analyze("pricing", [post_factory("a", text="Team offsite photos")])
    assert result.matches == []
    assert result.prediction.confidence == ConfidenceLabel.LOW


# ===========================================================================
# No signal and validation
# ===========================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("corpus", [[], None])
async def test_empty_corpus_returns_no_signal(analyzer, corpus):
    result = await analyzer.analyze("leadership", corpus)

    assert result.matches == []
    assert result.patterns == PatternSummary()
    assert result.prediction.confidence == ConfidenceLabel.LOW
    assert result.prediction.score == 0.0
    assert not result.degraded


@pytest.mark.asyncio
@pytest.mark.parametrize("topic", ["", "   "])
async def test_blank_topic_raises(analyzer, post_factory, topic):
    with pytest.raises(InvalidInputError):
        await analyzer.analyze(topic, [post_factory("a")])


@pytest.mark.asyncio
async def test_limit_below_one_raises(analyzer, post_factory):
    with pytest.raises(InvalidInputError) as exc_info:
        await analyzer.analyze("leadership", [post_factory("a")], limit=0)
    assert exc_info.value.field == "limit"


# ===========================================================================
# Caching
# ===========================================================================


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(cached_analyzer, post_factory):
    corpus = [post_factory("a", text="Leadership basics"), post_factory("b", text="Leadership")]

    first = await cached_analyzer.analyze("leadership", corpus)
    second = await cached_analyzer.analyze("leadership", corpus)

    assert not first.cache_hit
    assert second.cache_hit
    assert [m.post.id for m in second.matches] == [m.post.id for m in first.matches]
    assert second.patterns == first.patterns


@pytest.mark.asyncio
async def test_force_refresh_bypasses_cache(cached_analyzer, post_factory):
    corpus = [post_factory("a", text="Leadership basics")]
    await cached_analyzer.analyze("leadership", corpus)

    result = await cached_analyzer.analyze("leadership", corpus, force_refresh=True)

    assert not result.cache_hit


@pytest.mark.asyncio
async def test_changed_corpus_misses_cache(cached_analyzer, post_factory):
    await cached_analyzer.analyze("leadership", [post_factory("a", text="Leadership basics")])

    result = await cached_analyzer.analyze(
        "leadership",
        [post_factory("a", text="Leadership basics"), post_factory("b", text="Leadership")],
    )

    assert not result.cache_hit
    assert len(result.matches) == 2


def test_fingerprint_tracks_engagement(post_factory):
    before = [derive_metrics(post_factory("a", reactions=1))]
    after = [derive_metrics(post_factory("a", reactions=2))]
    assert corpus_fingerprint(before) != corpus_fingerprint(after)


@pytest.mark.asyncio
async def test_degraded_result_is_not_cached(store, clock, post_factory):
    analyzer = HistoricalAnalyzer(
        similarity=ResilientSimilarity(DownProvider(), max_attempts=2),
        cache=ResearchCache(store, clock=clock),
    )

    with patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock):
        result = await analyzer.analyze("leadership", [post_factory("a", text="Leadership")])

    assert result.degraded
    assert result.similarity_source == "keyword_overlap"
    assert [m.post.id for m in result.matches] == ["a"]
    assert store.rows == {}


@pytest.mark.asyncio
async def test_unexpected_provider_error_degrades_instead_of_raising(post_factory):
    class BrokenProvider(SimilarityProvider):
        name = "broken"

        async def score_many(self, query, texts):
            raise KeyError("embedding")

    analyzer = HistoricalAnalyzer(similarity=ResilientSimilarity(BrokenProvider(), max_attempts=2))

    with patch("engagement_engine.utils.asyncio.sleep", new_callable=AsyncMock):
        result = await analyzer.analyze("leadership", [post_factory("a", text="Leadership")])

    assert result.degraded
    assert result.warnings
    assert [m.post.id for m in result.matches] == ["a"]


@pytest.mark.asyncio
async def test_unreachable_cache_store_does_not_fail_analysis(clock, post_factory):
    class DownStore(InMemoryCacheStore):
        async def get_cache_entry(self, key):
            raise httpx.ConnectError("research_cache unreachable")

        async def upsert_cache_entry(self, row):
            raise httpx.ConnectError("research_cache unreachable")

    analyzer = HistoricalAnalyzer(cache=ResearchCache(DownStore(), clock=clock))

    result = await analyzer.analyze("leadership", [post_factory("a", text="Leadership basics")])

    assert not result.cache_hit
    assert [m.post.id for m in result.matches] == ["a"]


# ===========================================================================
# Patterns and prediction
# ===========================================================================


@pytest.mark.parametrize(
    "count, label",
    [
        (0, ConfidenceLabel.LOW),
        (2, ConfidenceLabel.LOW),
        (3, ConfidenceLabel.MEDIUM),
        (7, ConfidenceLabel.MEDIUM),
        (8, ConfidenceLabel.HIGH),
    ],
)
def test_confidence_for(count, label):
    assert confidence_for(count) == label


def test_topic_supported_triggers():
    assert topic_supported_triggers("What I learned from my first failure") == [
        "question",
        "story",
        "call_to_action",
    ]
    assert topic_supported_triggers("quarterly update") == ["call_to_action"]


def test_predict_applies_supported_trigger_correlations(analyzer, post_factory):
    corpus = [derive_metrics(post_factory("a", reactions=10)),
              derive_metrics(post_factory("b", reactions=30))]
    patterns = PatternSummary(trigger_correlations={"question": 0.5, "story": 0.9})

    prediction = analyzer.predict("Why hire slowly?", corpus, [], patterns)

    assert prediction.baseline == 20.0
    assert prediction.supported_triggers == ["question"]
    assert prediction.adjustment == pytest.approx(0.1)
    assert prediction.score == 22.0
    assert prediction.confidence == ConfidenceLabel.LOW


def test_predict_is_floored_at_zero(analyzer, post_factory):
    corpus = [derive_metrics(post_factory("a", reactions=10))]
    patterns = PatternSummary(trigger_correlations={"call_to_action": -10.0})

    assert analyzer.predict("anything", corpus, [], patterns).score == 0.0


@pytest.mark.asyncio
async def test_patterns_summarise_matches(analyzer, post_factory):
    corpus = [
        post_factory("a", text="Why do leaders fail? Tell me below.", reactions=50),
        post_factory("b", text="Leaders need sleep.", reactions=5),
    ]

    result = await analyzer.analyze("leaders", corpus)
    patterns = result.patterns

    assert patterns.sample_size == 2
    assert patterns.avg_word_count == 5.0
    assert patterns.common_openings[0].startswith("Why do leaders fail")
    assert "question" in patterns.trigger_correlations
    assert patterns.trigger_correlations["question"] == pytest.approx(1.0)
