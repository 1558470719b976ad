"""
Historical Performance Analyzer.

Given a topic and a corpus snapshot, finds the most relevant *and*
best-performing precedents, summarises their patterns and predicts how a
new post on the topic might perform.

Ranking::

    combined_rank = similarity * tier_weight(performance_tier)

Tier weights increase strictly (``low < mid < high < viral``), so a
moderately similar viral post can outrank a very similar low performer.
Ties fall back to the more recent post, then to post id.

Similarity scores and the ``PatternSummary`` are cached in the
``ResearchCache`` under the normalized topic plus a fingerprint of the
corpus snapshot; a changed corpus is a miss and everything is recomputed
from the full corpus. Results produced with the keyword fallback are never
cached.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from engagement_engine.analysis.post_metrics import (
    classify_structure,
    derive_metrics,
    opening_words,
)
from engagement_engine.analysis.similarity import ResilientSimilarity, SimilarityOutcome
from engagement_engine.cache.research_cache import ResearchCache
from engagement_engine.config import AnalyzerConfig
from engagement_engine.exceptions import InvalidInputError
from engagement_engine.models import (
    AnalysisResult,
    ConfidenceLabel,
    HistoricalPost,
    PatternSummary,
    PerformancePrediction,
    SimilarityMatch,
)
from engagement_engine.utils import pearson, stable_hash

logger = logging.getLogger("HistoricalAnalyzer")

SIMILARITY_SOURCE = "similarity"
PATTERNS_SOURCE = "patterns"

TRIGGER_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("question", "has_question"),
    ("story", "has_story"),
    ("call_to_action", "has_call_to_action"),
)

QUESTION_TOPIC_WORDS = ("how", "why", "what", "should", "when", "which", "who")
STORY_TOPIC_WORDS = (
    "story", "lesson", "lessons", "journey", "mistake", "mistakes", "failure",
    "learned", "experience", "career", "first", "years",
)


def confidence_for(match_count: int) -> ConfidenceLabel:
    """``<3`` low, ``3..7`` medium, ``>7`` high."""
    if match_count < 3:
        return ConfidenceLabel.LOW
    if match_count <= 7:
        return ConfidenceLabel.MEDIUM
    return ConfidenceLabel.HIGH


def topic_supported_triggers(topic: str) -> List[str]:
    """
    Triggers a post on ``topic`` can plausibly use.

    Heuristic: question-shaped topics support questions, experience-shaped
    topics support stories, and every post can end with a call to action.
    """
    words = topic.lower().replace("?", " ? ").split()
    supported = []
    if "?" in words or (words and words[0] in QUESTION_TOPIC_WORDS):
        supported.append("question")
    if any(w.strip(".,!") in STORY_TOPIC_WORDS for w in words):
        supported.append("story")
    supported.append("call_to_action")
    return supported


def _reactions(post: HistoricalPost) -> float:
    return float(max(post.engagement.total_reactions, post.engagement.likes))


def corpus_fingerprint(posts: Sequence[HistoricalPost]) -> str:
    """Changes whenever a post is added or removed, or its text, score or tier changes."""
    parts = sorted(
        f"{p.id}:{stable_hash(p.text)[:16]}:"
        f"{p.derived_metrics.viral_score if p.derived_metrics else ''}:"
        f"{p.tier.value if p.tier else ''}"
        for p in posts
    )
    return stable_hash(*parts)


class HistoricalAnalyzer:
    """
    Finds and summarises high-performing precedents for a topic.

    Args:
        similarity: Resilient similarity scorer (provider + fallback).
        cache: Optional research cache. ``None`` disables caching.
        config: Analyzer tuning; defaults to ``AnalyzerConfig()``.

    Usage::

        analyzer = HistoricalAnalyzer(ResilientSimilarity(provider), cache)
        result = await analyzer.analyze("leadership", corpus, limit=5)
        for match in result.matches:
            print(match.post.id, match.combined_rank)
    """

    def __init__(
        self,
        similarity: Optional[ResilientSimilarity] = None,
        cache: Optional[ResearchCache] = None,
        config: Optional[AnalyzerConfig] = None,
    ):
        self.similarity = similarity or ResilientSimilarity()
        self.cache = cache
        self.config = config or AnalyzerConfig()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def analyze(
        self,
        topic: str,
        corpus: Optional[Sequence[HistoricalPost]],
        limit: int = 5,
        force_refresh: bool = False,
    ) -> AnalysisResult:
        """
        Rank precedents for ``topic`` and derive patterns and a prediction.

        Args:
            topic: Free-text topic of the planned post.
            corpus: Snapshot of historical posts. ``None`` or empty yields
                the "no signal" result.
            limit: Maximum number of matches returned.
            force_refresh: Ignore cached similarity scores and patterns.

        Returns:
            ``AnalysisResult``; ``warnings`` is non-empty when the result
            was computed in degraded mode.

        Raises:
            InvalidInputError: If ``topic`` is blank or ``limit < 1``.
        """
        if not topic or not topic.strip():
            raise InvalidInputError("topic")
        if limit < 1:
            raise InvalidInputError("limit", f"limit must be >= 1, got {limit}")

        posts = [p if p.derived_metrics is not None else derive_metrics(p) for p in (corpus or [])]
        if not posts:
            logger.info("Empty corpus for topic '%s', returning no-signal result", topic)
            return AnalysisResult(topic=topic)

        fingerprint = corpus_fingerprint(posts)
        outcome, scores_cached = await self._similarities(topic, posts, fingerprint, force_refresh)
        matches = self.rank(posts, outcome.scores, limit)

        patterns, patterns_cached = await self._patterns(
            topic, matches, fingerprint, limit, outcome, reuse=scores_cached and not force_refresh
        )
        prediction = self.predict(topic, posts, matches, patterns)

        logger.info(
            "Analyzed '%s': %d/%d matches, confidence=%s, source=%s%s",
            topic,
            len(matches),
            len(posts),
            prediction.confidence.value,
            outcome.source,
            " (cached)" if scores_cached else "",
        )
        return AnalysisResult(
            topic=topic,
            matches=matches,
            patterns=patterns,
            prediction=prediction,
            warnings=list(outcome.warnings),
            similarity_source=outcome.source,
            cache_hit=scores_cached and patterns_cached,
        )

    def tier_weight(self, post: HistoricalPost) -> float:
        tier = post.tier
        if tier is None:
            return self.config.unranked_weight
        return float(self.config.tier_weights[tier.value])

    def rank(
        self,
        posts: Sequence[HistoricalPost],
        scores: Sequence[float],
        limit: int,
    ) -> List[SimilarityMatch]:
        """Combine similarity with tier weight, sort and cut to ``limit``."""
        candidates = [
            SimilarityMatch(
                post=post,
                similarity_score=score,
                combined_rank=score * self.tier_weight(post),
            )
            for post, score in zip(posts, scores)
            if score >= self.config.min_similarity
        ]
        candidates.sort(
            key=lambda m: (-m.combined_rank, -m.post.posted_at.timestamp(), m.post.id)
        )
        return candidates[:limit]

    def summarize(self, matches: Sequence[SimilarityMatch]) -> PatternSummary:
        """Aggregate patterns of the selected matches."""
        if not matches:
            return PatternSummary()

        posts = [m.post for m in matches]
        word_counts = [p.derived_metrics.word_count for p in posts]  # type: ignore[union-attr]

        openings: List[str] = []
        for post in posts:
            opening = opening_words(post.text, self.config.opening_words)
            if opening and opening not in openings:
                openings.append(opening)

        structures = [classify_structure(p.text) for p in posts]
        first_seen = {s: structures.index(s) for s in set(structures)}
        counts = Counter(structures)
        common_structures = sorted(counts, key=lambda s: (-counts[s], first_seen[s]))

        viral_by_structure: Dict[str, List[float]] = defaultdict(list)
        for structure, post in zip(structures, posts):
            viral_by_structure[structure].append(post.derived_metrics.viral_score)  # type: ignore[union-attr]
        mean_viral = {s: sum(v) / len(v) for s, v in viral_by_structure.items()}
        best_formats = sorted(mean_viral, key=lambda s: (-mean_viral[s], s))

        reactions = [_reactions(p) for p in posts]
        correlations: Dict[str, float] = {}
        for trigger, attr in TRIGGER_FLAGS:
            flags = [1.0 if getattr(p.derived_metrics, attr) else 0.0 for p in posts]
            if any(flags):
                correlations[trigger] = round(pearson(flags, reactions), 4)
        triggers = sorted(correlations, key=lambda t: (-correlations[t], t))

        return PatternSummary(
            avg_word_count=round(sum(word_counts) / len(word_counts), 1),
            common_openings=openings,
            common_structures=common_structures,
            best_performing_formats=best_formats,
            engagement_triggers=triggers,
            trigger_correlations=correlations,
            sample_size=len(matches),
        )

    def predict(
        self,
        topic: str,
        corpus: Sequence[HistoricalPost],
        matches: Sequence[SimilarityMatch],
        patterns: PatternSummary,
    ) -> PerformancePrediction:
        """
        Baseline corpus engagement adjusted by triggers the topic supports.

        ``score = baseline * (1 + trigger_weight * sum(correlation))`` over
        supported triggers present in ``patterns``, floored at 0.
        """
        if not corpus:
            return PerformancePrediction()
        baseline = sum(p.derived_metrics.viral_score for p in corpus) / len(corpus)  # type: ignore[union-attr]
        supported = [
            t for t in topic_supported_triggers(topic) if t in patterns.trigger_correlations
        ]
        adjustment = self.config.trigger_weight * sum(
            patterns.trigger_correlations[t] for t in supported
        )
        return PerformancePrediction(
            score=round(max(0.0, baseline * (1.0 + adjustment)), 2),
            baseline=round(baseline, 2),
            adjustment=round(adjustment, 4),
            confidence=confidence_for(len(matches)),
            supported_triggers=supported,
            match_count=len(matches),
        )

    # -------------------------------------------------------------------------
    # Cached steps
    # -------------------------------------------------------------------------

    async def _similarities(
        self,
        topic: str,
        posts: Sequence[HistoricalPost],
        fingerprint: str,
        force_refresh: bool,
    ) -> Tuple[SimilarityOutcome, bool]:
        key = f"{topic} {fingerprint}"
        if self.cache is not None and not force_refresh:
            entry = await self.cache.get(key, SIMILARITY_SOURCE)
            if entry is not None:
                by_id = entry.results.get("scores", {})
                if all(p.id in by_id for p in posts):
                    return (
                        SimilarityOutcome(
                            scores=[float(by_id[p.id]) for p in posts],
                            source=entry.results.get("source", "cache"),
                        ),
                        True,
                    )

        outcome = await self.similarity.score_all(topic, [p.text for p in posts])
        if self.cache is not None and not outcome.degraded:
            await self.cache.put(
                key,
                SIMILARITY_SOURCE,
                {
                    "source": outcome.source,
                    "scores": {p.id: s for p, s in zip(posts, outcome.scores)},
                },
            )
        return outcome, False

    async def _patterns(
        self,
        topic: str,
        matches: Sequence[SimilarityMatch],
        fingerprint: str,
        limit: int,
        outcome: SimilarityOutcome,
        reuse: bool,
    ) -> Tuple[PatternSummary, bool]:
        # Cached patterns are only valid alongside the cached scores they came from.
        key = f"{topic} {fingerprint} limit {limit}"
        if self.cache is not None and reuse:
            entry = await self.cache.get(key, PATTERNS_SOURCE)
            if entry is not None:
                return PatternSummary.from_dict(entry.results), True

        patterns = self.summarize(matches)
        if self.cache is not None and not outcome.degraded:
            await self.cache.put(key, PATTERNS_SOURCE, patterns.to_dict())
        return patterns, False


__all__ = [
    "HistoricalAnalyzer",
    "confidence_for",
    "corpus_fingerprint",
    "topic_supported_triggers",
]
