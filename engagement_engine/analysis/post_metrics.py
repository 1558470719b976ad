"""
Derived per-post metrics and corpus-relative performance tiers.

Two passes:

1. ``derive_metrics(post)``: everything computable from the post alone
   (viral score, word count, presence flags). Keeps the post's current tier.
2. ``assign_tiers(posts)``: re-percentile pass over a whole corpus snapshot.
   Tiers are relative, so this must run on the full snapshot every time the
   corpus changes materially, never as an incremental patch.

Tier cut points use continuous percentiles (linear interpolation, same as
SQL ``percentile_cont``) of the snapshot's viral scores. A score equal to a
cut point lands in the higher tier::

    viral  >= p90
    high   >= p75
    mid    >= p50
    low    otherwise
"""

import logging
import re
from collections import Counter
from dataclasses import replace
from typing import Dict, List, Sequence

from engagement_engine.models import (
    DerivedMetrics,
    Engagement,
    HistoricalPost,
    PerformanceTier,
)

logger = logging.getLogger("PostMetrics")

COMMENT_WEIGHT = 3
SHARE_WEIGHT = 5

TIER_PERCENTILES = (
    (PerformanceTier.VIRAL, 0.90),
    (PerformanceTier.HIGH, 0.75),
    (PerformanceTier.MID, 0.50),
)

STORY_PATTERN = re.compile(
    r"\b(story|experience|when i|years ago|early in my|i remember|last (?:week|month|year))\b",
    re.IGNORECASE,
)
CTA_PATTERN = re.compile(
    r"\b(comment|share|thoughts|agree|disagree|follow|let me know|what do you think|"
    r"dm me|repost|your experience)\b",
    re.IGNORECASE,
)
LIST_LINE_PATTERN = re.compile(r"(?m)^\s*(?:\d+[.)]|[-•*→])\s+")
STATISTIC_PATTERN = re.compile(r"\d+%|\d+ years|\d+ people|\$\d+")
STORY_OPENING_PATTERN = re.compile(r"\b(when i|early in|years ago|recently|last year)\b", re.IGNORECASE)
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")


def compute_viral_score(engagement: Engagement) -> float:
    """``totalReactions + 3*comments + 5*shares``.

    Older rows carry only ``likes``; they count as reactions.
    """
    reactions = max(engagement.total_reactions, engagement.likes)
    return float(reactions + COMMENT_WEIGHT * engagement.comments + SHARE_WEIGHT * engagement.shares)


def word_count(text: str) -> int:
    return len(text.split())


def first_sentence(text: str) -> str:
    stripped = text.strip()
    if not stripped:
        return ""
    return SENTENCE_SPLIT.split(stripped, maxsplit=1)[0].strip()


def opening_words(text: str, n: int = 8) -> str:
    """First ``n`` words of the first sentence, trailing punctuation kept."""
    return " ".join(first_sentence(text).split()[:n])


def classify_opening(text: str) -> str:
    """One of ``question``, ``statistic``, ``quote``, ``story``, ``statement``."""
    sentence = first_sentence(text)
    if sentence.endswith("?"):
        return "question"
    if STATISTIC_PATTERN.search(sentence):
        return "statistic"
    if sentence.startswith(('"', "“")):
        return "quote"
    if STORY_OPENING_PATTERN.search(sentence):
        return "story"
    return "statement"


def classify_structure(text: str) -> str:
    """
    Coarse post structure.

    Returns one of ``problem_solution``, ``list_format``, ``question_answer``,
    ``story_lesson``, ``single_thought`` (checked in that order).
    """
    lowered = text.lower()
    if "problem" in lowered and "solution" in lowered:
        return "problem_solution"
    if len(LIST_LINE_PATTERN.findall(text)) >= 2:
        return "list_format"
    if "?" in text and len(text) > 200:
        return "question_answer"
    if STORY_PATTERN.search(text):
        return "story_lesson"
    return "single_thought"


def derive_metrics(post: HistoricalPost) -> HistoricalPost:
    """Return a copy of ``post`` with per-post metrics recomputed.

    The existing tier is carried over untouched; only ``assign_tiers``
    changes tiers.
    """
    text = post.text or ""
    metrics = DerivedMetrics(
        viral_score=compute_viral_score(post.engagement),
        word_count=word_count(text),
        has_question="?" in text,
        has_story=bool(STORY_PATTERN.search(text)),
        has_call_to_action=bool(CTA_PATTERN.search(text)),
        performance_tier=post.tier,
    )
    return replace(post, derived_metrics=metrics)


def percentile(sorted_values: Sequence[float], q: float) -> float:
    """Continuous percentile with linear interpolation.

    Raises:
        ValueError: If ``sorted_values`` is empty or ``q`` outside ``[0, 1]``.
    """
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"q must be in [0, 1], got {q}")
    position = (len(sorted_values) - 1) * q
    lower = int(position)
    upper = min(lower + 1, len(sorted_values) - 1)
    fraction = position - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * fraction


def tier_thresholds(viral_scores: Sequence[float]) -> Dict[PerformanceTier, float]:
    """Cut points for each non-low tier in this snapshot."""
    ordered = sorted(viral_scores)
    return {tier: percentile(ordered, q) for tier, q in TIER_PERCENTILES}


def tier_for(viral_score: float, thresholds: Dict[PerformanceTier, float]) -> PerformanceTier:
    for tier, _ in TIER_PERCENTILES:
        if viral_score >= thresholds[tier]:
            return tier
    return PerformanceTier.LOW


def assign_tiers(posts: Sequence[HistoricalPost]) -> List[HistoricalPost]:
    """
    Re-percentile pass over a complete corpus snapshot.

    Derives missing metrics first. Input posts are not modified; new
    instances are returned in the same order.

    Args:
        posts: The full snapshot. Partial snapshots yield wrong tiers.

    Returns:
        Posts whose ``performance_tier`` matches their viral-score
        percentile within ``posts``.
    """
    derived = [p if p.derived_metrics is not None else derive_metrics(p) for p in posts]
    if not derived:
        return []
    thresholds = tier_thresholds([p.derived_metrics.viral_score for p in derived])  # type: ignore[union-attr]
    logger.debug(
        "Tier thresholds over %d posts: %s",
        len(derived),
        {tier.value: round(v, 2) for tier, v in thresholds.items()},
    )
    return [
        replace(
            p,
            derived_metrics=replace(
                p.derived_metrics,  # type: ignore[arg-type]
                performance_tier=tier_for(p.derived_metrics.viral_score, thresholds),  # type: ignore[union-attr]
            ),
        )
        for p in derived
    ]


def tier_counts(posts: Sequence[HistoricalPost]) -> Dict[str, int]:
    counts = Counter(p.tier.value if p.tier else "unranked" for p in posts)
    return dict(sorted(counts.items()))


__all__ = [
    "compute_viral_score",
    "word_count",
    "first_sentence",
    "opening_words",
    "classify_opening",
    "classify_structure",
    "derive_metrics",
    "percentile",
    "tier_thresholds",
    "tier_for",
    "assign_tiers",
    "tier_counts",
]
