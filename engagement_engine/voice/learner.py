"""
Voice Pattern Learner.

``learn`` turns a corpus of the author's posts and comments into a
``VoiceProfile``; ``score`` rates a draft against that profile.

Weighting
---------
Every item contributes with::

    weight = training_weight(kind) * recency_decay(age_days)

Posts have full training weight, comments a reduced one (0.3 by default).
Age is measured from the newest item in the corpus, not from the wall
clock, so learning the same corpus twice gives identical signatures.

Performance correlation
-----------------------
For each pattern id (``question``, ``list``, ``opening:story``...) present in
at least one post, the lift is the mean viral score of posts showing it
relative to the mean of all posts, minus one. Comments have no engagement
data and do not take part.

Scoring
-------
``score`` measures per-dimension closeness (0..1) between the draft and the
profile, then combines them with fixed weighting tables into four 0-100
sub-scores. A profile learned from zero samples yields neutral 50s and the
``untrained`` flag.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from engagement_engine.analysis.post_metrics import derive_metrics
from engagement_engine.config import VoiceConfig
from engagement_engine.exceptions import (
    ClassificationError,
    InvalidInputError,
    ProviderUnavailableError,
    RetryExhaustedError,
)
from engagement_engine.models import (
    Comment,
    HistoricalPost,
    LexicalSignature,
    PatternLift,
    StructuralSignature,
    VoiceProfile,
    VoiceScore,
)
from engagement_engine.utils import pearson, recency_decay, round_half_up, utc_now
from engagement_engine.voice.features import TextFeatures, extract_features

logger = logging.getLogger("VoicePatternLearner")

NEUTRAL_SCORE = 50
ROUND_DIGITS = 4

# Dimension weights per sub-score; each row sums to 1.
SCORE_WEIGHTS: Dict[str, Dict[str, float]] = {
    "authenticity": {
        "vocabulary": 0.35,
        "sentence_length": 0.25,
        "paragraphs": 0.20,
        "emoji": 0.10,
        "hashtag": 0.10,
    },
    "authority": {
        "authority_markers": 0.45,
        "sentence_length": 0.20,
        "vocabulary": 0.20,
        "list": 0.15,
    },
    "vulnerability": {
        "disclosure_markers": 0.60,
        "vocabulary": 0.15,
        "question": 0.15,
        "sentence_length": 0.10,
    },
    "engagement_potential": {
        "performance": 0.60,
        "question": 0.20,
        "list": 0.10,
        "paragraphs": 0.10,
    },
}

VOCABULARY_FULL_OVERLAP = 5


@dataclass
class _Sample:
    features: TextFeatures
    weight: float
    viral_score: Optional[float]
    text: str


def _closeness(value: float, target: float, floor: float) -> float:
    """``1 - |value - target| / max(|target|, floor)``, clamped to ``[0, 1]``."""
    scale = max(abs(target), floor)
    return max(0.0, 1.0 - abs(value - target) / scale)


class VoicePatternLearner:
    """
    Learns and applies an author's voice profile.

    Args:
        config: Training weights and decay; defaults to ``VoiceConfig()``.
        classifier: Optional tone classifier with
            ``async classify(text) -> Dict[str, float]``. Failures degrade
            to a profile warning.
        clock: Returns the ``last_updated_at`` timestamp.

    Usage::

        learner = VoicePatternLearner()
        profile = await learner.learn(posts + comments)
        draft_score = learner.score(draft_text, profile)
    """

    def __init__(
        self,
        config: Optional[VoiceConfig] = None,
        classifier: Any = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or VoiceConfig()
        self.classifier = classifier
        self.clock = clock

    # -------------------------------------------------------------------------
    # learn
    # -------------------------------------------------------------------------

    async def learn(
        self,
        corpus: Iterable[Union[HistoricalPost, Comment]],
        as_of: Optional[datetime] = None,
    ) -> VoiceProfile:
        """
        Build a fresh profile from ``corpus``.

        Args:
            corpus: Posts and/or comments, in any order. Items with blank
                text are ignored.
            as_of: Reference time for recency decay. Defaults to the newest
                item's timestamp.

        Returns:
            A new ``VoiceProfile``; ``sample_count == 0`` for an empty corpus.
        """
        items = [item for item in corpus if (item.text or "").strip()]
        posts = [item for item in items if isinstance(item, HistoricalPost)]
        comments = [item for item in items if isinstance(item, Comment)]
        if not posts and not comments:
            logger.info("Empty corpus, returning untrained voice profile")
            return VoiceProfile(last_updated_at=self.clock())

        reference = as_of or max(item.posted_at for item in [*posts, *comments])
        samples = [self._sample(p, self.config.post_weight, reference) for p in posts]
        samples += [self._sample(c, self.config.comment_weight, reference) for c in comments]

        profile = VoiceProfile(
            lexical_signature=self._lexical(samples),
            structural_signature=self._structural(samples),
            performance_correlated_patterns=self._performance_patterns(
                [s for s in samples if s.viral_score is not None]
            ),
            sample_count=len(samples),
            post_count=len(posts),
            comment_count=len(comments),
            last_updated_at=self.clock(),
        )
        if self.classifier is not None:
            await self._classify_tone(samples, profile)

        logger.info(
            "Learned voice profile from %d posts and %d comments (%d correlated patterns)",
            profile.post_count,
            profile.comment_count,
            len(profile.performance_correlated_patterns),
        )
        return profile

    def _sample(
        self,
        item: Union[HistoricalPost, Comment],
        training_weight: float,
        reference: datetime,
    ) -> _Sample:
        age_days = (reference - item.posted_at).total_seconds() / 86400.0
        weight = training_weight * recency_decay(
            age_days, self.config.recency_half_life_days, self.config.min_decay
        )
        viral_score = None
        if isinstance(item, HistoricalPost):
            metrics = item.derived_metrics or derive_metrics(item).derived_metrics
            viral_score = metrics.viral_score  # type: ignore[union-attr]
        return _Sample(extract_features(item.text), weight, viral_score, item.text)

    @staticmethod
    def _weighted_mean(samples: Sequence[_Sample], value: Callable[[_Sample], float]) -> float:
        total = sum(s.weight for s in samples)
        if total <= 0:
            return 0.0
        return round(sum(s.weight * value(s) for s in samples) / total, ROUND_DIGITS)

    def _lexical(self, samples: Sequence[_Sample]) -> LexicalSignature:
        term_weights: Dict[str, float] = defaultdict(float)
        for sample in samples:
            for term, count in sample.features.terms.items():
                term_weights[term] += count * sample.weight
        common = sorted(term_weights, key=lambda t: (-round(term_weights[t], 9), t))
        return LexicalSignature(
            common_words=common[: self.config.top_terms],
            avg_sentence_length=self._weighted_mean(
                samples, lambda s: s.features.avg_sentence_length
            ),
            emoji_rate=self._weighted_mean(samples, lambda s: s.features.emoji_rate),
            hashtag_rate=self._weighted_mean(samples, lambda s: s.features.hashtag_rate),
            disclosure_rate=self._weighted_mean(
                samples, lambda s: 1.0 if s.features.disclosure_markers else 0.0
            ),
            authority_rate=self._weighted_mean(
                samples, lambda s: 1.0 if s.features.authority_markers else 0.0
            ),
        )

    def _structural(self, samples: Sequence[_Sample]) -> StructuralSignature:
        pattern_weights: Dict[str, float] = defaultdict(float)
        for sample in samples:
            pattern_weights[sample.features.paragraph_pattern] += sample.weight
        return StructuralSignature(
            paragraph_patterns=sorted(
                pattern_weights, key=lambda p: (-round(pattern_weights[p], 9), p)
            ),
            list_usage_rate=self._weighted_mean(
                samples, lambda s: 1.0 if s.features.uses_list else 0.0
            ),
            question_usage_rate=self._weighted_mean(
                samples, lambda s: 1.0 if s.features.uses_question else 0.0
            ),
            avg_paragraph_count=self._weighted_mean(
                samples, lambda s: float(s.features.paragraph_count)
            ),
        )

    @staticmethod
    def _performance_patterns(samples: Sequence[_Sample]) -> Dict[str, PatternLift]:
        if not samples:
            return {}
        virals = [float(s.viral_score) for s in samples]  # type: ignore[arg-type]
        mean_all = sum(virals) / len(virals)
        present = [set(s.features.pattern_ids()) for s in samples]

        lifts: Dict[str, PatternLift] = {}
        for pattern_id in sorted(set().union(*present)):
            flags = [1.0 if pattern_id in ids else 0.0 for ids in present]
            with_pattern = [v for v, f in zip(virals, flags) if f]
            mean_with = sum(with_pattern) / len(with_pattern)
            lift = (mean_with / mean_all - 1.0) if mean_all > 0 else 0.0
            lifts[pattern_id] = PatternLift(
                lift_score=round(lift, ROUND_DIGITS),
                correlation=round(pearson(flags, virals), ROUND_DIGITS),
                support=len(with_pattern),
            )
        return lifts

    async def _classify_tone(self, samples: Sequence[_Sample], profile: VoiceProfile) -> None:
        totals: Dict[str, float] = defaultdict(float)
        weight_sum = 0.0
        try:
            for sample in samples:
                tones = await self.classifier.classify(sample.text)
                for label, value in tones.items():
                    totals[label] += sample.weight * value
                weight_sum += sample.weight
        except (RetryExhaustedError, ProviderUnavailableError, ClassificationError) as exc:
            logger.warning("Tone classification failed, profile has no tone data: %s", exc)
            profile.warnings.append(f"Tone classification unavailable: {exc}")
            return
        if weight_sum > 0:
            profile.tone_distribution = {
                label: round(total / weight_sum, ROUND_DIGITS)
                for label, total in sorted(totals.items())
            }

    # -------------------------------------------------------------------------
    # score
    # -------------------------------------------------------------------------

    def score(self, text: str, profile: VoiceProfile) -> VoiceScore:
        """
        Rate ``text`` against ``profile``.

        Returns:
            ``VoiceScore`` with four independent 0-100 sub-scores, or
            neutral 50s flagged ``untrained`` for a zero-sample profile.

        Raises:
            InvalidInputError: If ``text`` is blank.
        """
        if not text or not text.strip():
            raise InvalidInputError("text", "Cannot score blank text")
        if not profile.is_trained:
            return VoiceScore(
                authenticity=NEUTRAL_SCORE,
                authority=NEUTRAL_SCORE,
                vulnerability=NEUTRAL_SCORE,
                engagement_potential=NEUTRAL_SCORE,
                untrained=True,
            )

        dimensions = self.dimensions(extract_features(text), profile)
        scores = {
            name: min(100, max(0, round_half_up(
                100 * sum(weight * dimensions[dim] for dim, weight in table.items())
            )))
            for name, table in SCORE_WEIGHTS.items()
        }
        return VoiceScore(**scores)

    @staticmethod
    def dimensions(features: TextFeatures, profile: VoiceProfile) -> Dict[str, float]:
        """Per-dimension closeness of ``features`` to ``profile`` (0..1)."""
        lex = profile.lexical_signature
        struct = profile.structural_signature

        common = set(lex.common_words)
        if common:
            shared = len(common & set(features.terms))
            vocabulary = min(1.0, shared / min(len(common), VOCABULARY_FULL_OVERLAP))
        else:
            vocabulary = 0.5

        if not struct.paragraph_patterns:
            paragraphs = 0.5
        elif features.paragraph_pattern == struct.paragraph_patterns[0]:
            paragraphs = 1.0
        elif features.paragraph_pattern in struct.paragraph_patterns:
            paragraphs = 0.5
        else:
            paragraphs = 0.0

        lift_total = sum(
            profile.performance_correlated_patterns[pid].lift_score
            for pid in features.pattern_ids()
            if pid in profile.performance_correlated_patterns
        )

        return {
            "vocabulary": vocabulary,
            "sentence_length": _closeness(
                features.avg_sentence_length, lex.avg_sentence_length, floor=5.0
            ),
            "emoji": _closeness(features.emoji_rate, lex.emoji_rate, floor=0.02),
            "hashtag": _closeness(features.hashtag_rate, lex.hashtag_rate, floor=0.02),
            "paragraphs": paragraphs,
            "list": 1.0 - abs((1.0 if features.uses_list else 0.0) - struct.list_usage_rate),
            "question": 1.0 - abs(
                (1.0 if features.uses_question else 0.0) - struct.question_usage_rate
            ),
            "disclosure_markers": min(1.0, features.disclosure_markers / 2.0),
            "authority_markers": min(1.0, features.authority_markers / 2.0),
            "performance": 0.5 + 0.5 * math.tanh(lift_total),
        }


__all__ = ["VoicePatternLearner", "SCORE_WEIGHTS", "NEUTRAL_SCORE"]
