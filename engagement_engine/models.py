"""
Centralized shared data types for the scoring & analysis engine.

Every component reads and produces the types defined here. Records that
cross a component boundary are frozen dataclasses: a ``ScoreResult`` or a
``HistoricalPost`` is never mutated after creation, recomputation produces
a new instance via ``dataclasses.replace``.

Hierarchy of types
------------------
- **Enums**: ``Recommendation``, ``PerformanceTier``, ``ConfidenceLabel``
- **Research models**: ``ProfileInfo``, ``CurrentRole``, ``CompanyInfo``,
  ``RecentActivity``, ``ExperienceEntry``, ``ResearchBundle``
- **Scoring models**: ``FactorScore``, ``ScoreResult``
- **Corpus models**: ``Engagement``, ``DerivedMetrics``, ``HistoricalPost``,
  ``Comment``
- **Analyzer models**: ``SimilarityMatch``, ``PatternSummary``,
  ``PerformancePrediction``, ``AnalysisResult``
- **Voice models**: ``LexicalSignature``, ``StructuralSignature``,
  ``PatternLift``, ``VoiceProfile``, ``VoiceScore``
- **Infrastructure models**: ``CacheEntry``, ``BatchPageError``,
  ``BatchReport``

``to_dict()`` emits the canonical camelCase contract names consumed by the
surrounding app; ``from_dict()`` accepts both camelCase and snake_case keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from engagement_engine.utils import parse_datetime, utc_now


def _get(data: Mapping[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    """Read ``camel`` or ``snake`` key from ``data``."""
    if camel in data and data[camel] is not None:
        return data[camel]
    if snake in data and data[snake] is not None:
        return data[snake]
    return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


# =============================================================================
# ENUMS
# =============================================================================


class Recommendation(str, Enum):
    """Lead disposition derived from the total ICP score."""

    QUALIFIED = "Qualified"
    REVIEW = "Review"
    NOT_ICP = "NotICP"


class PerformanceTier(str, Enum):
    """Corpus-relative performance bucket of a historical post."""

    LOW = "low"
    MID = "mid"
    HIGH = "high"
    VIRAL = "viral"


class ConfidenceLabel(str, Enum):
    """Confidence of a performance prediction, driven by match count."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# RESEARCH MODELS
# =============================================================================


@dataclass(frozen=True)
class ProfileInfo:
    """Identity section of a research bundle. ``name`` is mandatory for scoring."""

    name: str
    headline: Optional[str] = None
    location: Optional[str] = None
    summary: Optional[str] = None


@dataclass(frozen=True)
class CurrentRole:
    title: Optional[str] = None
    company: Optional[str] = None
    tenure_months: Optional[int] = None


@dataclass(frozen=True)
class CompanyInfo:
    name: Optional[str] = None
    size_bucket: Optional[str] = None
    industry: Optional[str] = None


@dataclass(frozen=True)
class RecentActivity:
    post_count: Optional[int] = None
    engagement_level: Optional[str] = None
    topics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExperienceEntry:
    """One past position, most recent first."""

    title: Optional[str] = None
    company: Optional[str] = None
    duration: Optional[str] = None


@dataclass(frozen=True)
class ResearchBundle:
    """
    Aggregated facts about one prospective contact.

    Optional sections are ``None`` when the research provider found nothing;
    "missing section" is a type-level state, never a sentinel string.

    Attributes:
        profile: Identity section (``profile.name`` is mandatory).
        current_role: Current position, if known.
        company_info: Employer facts, if known.
        recent_activity: Public posting activity, if known.
        experience: Past positions, most recent first (may be empty).
    """

    profile: ProfileInfo
    current_role: Optional[CurrentRole] = None
    company_info: Optional[CompanyInfo] = None
    recent_activity: Optional[RecentActivity] = None
    experience: Tuple[ExperienceEntry, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResearchBundle":
        """Build a bundle from a loosely-typed research payload.

        Unknown keys are ignored and malformed optional sections are
        treated as absent. A missing ``profile`` yields an empty name,
        which the scoring engine rejects.
        """
        profile_data = data.get("profile") or {}
        profile = ProfileInfo(
            name=str(profile_data.get("name") or "").strip(),
            headline=profile_data.get("headline"),
            location=profile_data.get("location"),
            summary=profile_data.get("summary"),
        )

        role_data = _get(data, "currentRole", "current_role")
        current_role = None
        if isinstance(role_data, Mapping):
            current_role = CurrentRole(
                title=role_data.get("title"),
                company=role_data.get("company"),
                tenure_months=_optional_int(
                    _get(role_data, "tenureMonths", "tenure_months")
                ),
            )

        company_data = _get(data, "companyInfo", "company_info")
        company_info = None
        if isinstance(company_data, Mapping):
            company_info = CompanyInfo(
                name=company_data.get("name"),
                size_bucket=_get(company_data, "sizeBucket", "size_bucket"),
                industry=company_data.get("industry"),
            )

        activity_data = _get(data, "recentActivity", "recent_activity")
        recent_activity = None
        if isinstance(activity_data, Mapping):
            recent_activity = RecentActivity(
                post_count=_optional_int(_get(activity_data, "postCount", "post_count")),
                engagement_level=_get(activity_data, "engagementLevel", "engagement_level"),
                topics=tuple(str(t) for t in (activity_data.get("topics") or [])),
            )

        experience = tuple(
            ExperienceEntry(
                title=item.get("title"),
                company=item.get("company"),
                duration=item.get("duration"),
            )
            for item in (data.get("experience") or [])
            if isinstance(item, Mapping)
        )

        return cls(
            profile=profile,
            current_role=current_role,
            company_info=company_info,
            recent_activity=recent_activity,
            experience=experience,
        )


# =============================================================================
# SCORING MODELS
# =============================================================================


@dataclass(frozen=True)
class FactorScore:
    """Points awarded by one ICP factor, with a human-readable reason."""

    score: int
    max_score: int
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "maxScore": self.max_score, "reasoning": self.reasoning}


@dataclass(frozen=True)
class ScoreResult:
    """
    Immutable outcome of one ICP scoring call.

    ``total_score`` always equals the sum of ``breakdown`` scores.
    """

    total_score: int
    breakdown: Dict[str, FactorScore]
    tags: FrozenSet[str]
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalScore": self.total_score,
            "breakdown": {name: f.to_dict() for name, f in self.breakdown.items()},
            "tags": sorted(self.tags),
            "recommendation": self.recommendation.value,
        }


# =============================================================================
# CORPUS MODELS
# =============================================================================


@dataclass(frozen=True)
class Engagement:
    likes: int = 0
    comments: int = 0
    shares: int = 0
    total_reactions: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Engagement":
        return cls(
            likes=int(data.get("likes") or 0),
            comments=int(data.get("comments") or 0),
            shares=int(_get(data, "shares", "reposts", 0)),
            total_reactions=int(_get(data, "totalReactions", "total_reactions", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "likes": self.likes,
            "comments": self.comments,
            "shares": self.shares,
            "totalReactions": self.total_reactions,
        }


@dataclass(frozen=True)
class DerivedMetrics:
    """
    Metrics computed from a post and its corpus snapshot.

    ``performance_tier`` is ``None`` until the first percentile pass has
    run over a snapshot that includes this post.
    """

    viral_score: float
    word_count: int
    has_question: bool
    has_story: bool
    has_call_to_action: bool
    performance_tier: Optional[PerformanceTier] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DerivedMetrics":
        tier = _get(data, "performanceTier", "performance_tier")
        return cls(
            viral_score=float(_get(data, "viralScore", "viral_score", 0.0)),
            word_count=int(_get(data, "wordCount", "word_count", 0)),
            has_question=bool(_get(data, "hasQuestion", "has_question", False)),
            has_story=bool(_get(data, "hasStory", "has_story", False)),
            has_call_to_action=bool(
                _get(data, "hasCallToAction", "has_call_to_action", False)
            ),
            performance_tier=PerformanceTier(tier) if tier else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "viralScore": self.viral_score,
            "performanceTier": self.performance_tier.value if self.performance_tier else None,
            "wordCount": self.word_count,
            "hasQuestion": self.has_question,
            "hasStory": self.has_story,
            "hasCallToAction": self.has_call_to_action,
        }


@dataclass(frozen=True)
class HistoricalPost:
    """A published post with its engagement counters."""

    id: str
    text: str
    posted_at: datetime
    engagement: Engagement = field(default_factory=Engagement)
    derived_metrics: Optional[DerivedMetrics] = None

    @property
    def tier(self) -> Optional[PerformanceTier]:
        return self.derived_metrics.performance_tier if self.derived_metrics else None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HistoricalPost":
        """Build a post from a JSON record or a corpus-store row.

        Raises:
            ValueError: If ``id`` or ``postedAt`` is missing or unparsable.
        """
        post_id = _get(data, "id", "post_id")
        posted_at = parse_datetime(_get(data, "postedAt", "posted_at"))
        if not post_id or posted_at is None:
            raise ValueError(f"Post record needs id and postedAt: {dict(data)!r:.200}")

        engagement_data = data.get("engagement")
        if not isinstance(engagement_data, Mapping):
            # Flat row layout (post_performance_analytics)
            engagement_data = data
        derived_data = _get(data, "derivedMetrics", "derived_metrics")

        return cls(
            id=str(post_id),
            text=str(_get(data, "text", "content", "")),
            posted_at=posted_at,
            engagement=Engagement.from_dict(engagement_data),
            derived_metrics=(
                DerivedMetrics.from_dict(derived_data)
                if isinstance(derived_data, Mapping)
                else None
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "postedAt": self.posted_at.isoformat(),
            "engagement": self.engagement.to_dict(),
            "derivedMetrics": self.derived_metrics.to_dict() if self.derived_metrics else None,
        }


@dataclass(frozen=True)
class Comment:
    """A comment written by the author (reduced training weight)."""

    id: str
    text: str
    posted_at: datetime
    parent_post_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Comment":
        comment_id = _get(data, "id", "content_id")
        posted_at = parse_datetime(_get(data, "postedAt", "posted_at") or data.get("content_date"))
        if not comment_id or posted_at is None:
            raise ValueError(f"Comment record needs id and postedAt: {dict(data)!r:.200}")
        return cls(
            id=str(comment_id),
            text=str(_get(data, "text", "content_text", "")),
            posted_at=posted_at,
            parent_post_id=_get(data, "parentPostId", "parent_post_id"),
        )


# =============================================================================
# ANALYZER MODELS
# =============================================================================


@dataclass(frozen=True)
class SimilarityMatch:
    """A historical post ranked against a topic. Never persisted."""

    post: HistoricalPost
    similarity_score: float
    combined_rank: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "post": self.post.to_dict(),
            "similarityScore": self.similarity_score,
            "combinedRank": self.combined_rank,
        }


@dataclass
class PatternSummary:
    """
    Patterns aggregated from the selected matches for one topic.

    The default instance (all zeros/empties) is the "no signal" summary.
    """

    avg_word_count: float = 0.0
    common_openings: List[str] = field(default_factory=list)
    common_structures: List[str] = field(default_factory=list)
    best_performing_formats: List[str] = field(default_factory=list)
    engagement_triggers: List[str] = field(default_factory=list)
    trigger_correlations: Dict[str, float] = field(default_factory=dict)
    sample_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avgWordCount": self.avg_word_count,
            "commonOpenings": list(self.common_openings),
            "commonStructures": list(self.common_structures),
            "bestPerformingFormats": list(self.best_performing_formats),
            "engagementTriggers": list(self.engagement_triggers),
            "triggerCorrelations": dict(self.trigger_correlations),
            "sampleSize": self.sample_size,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PatternSummary":
        return cls(
            avg_word_count=float(_get(data, "avgWordCount", "avg_word_count", 0.0)),
            common_openings=list(_get(data, "commonOpenings", "common_openings", [])),
            common_structures=list(_get(data, "commonStructures", "common_structures", [])),
            best_performing_formats=list(
                _get(data, "bestPerformingFormats", "best_performing_formats", [])
            ),
            engagement_triggers=list(
                _get(data, "engagementTriggers", "engagement_triggers", [])
            ),
            trigger_correlations={
                str(k): float(v)
                for k, v in _get(data, "triggerCorrelations", "trigger_correlations", {}).items()
            },
            sample_size=int(_get(data, "sampleSize", "sample_size", 0)),
        )


@dataclass
class PerformancePrediction:
    """Heuristic engagement prediction for a new post on a topic."""

    score: float = 0.0
    baseline: float = 0.0
    adjustment: float = 0.0
    confidence: ConfidenceLabel = ConfidenceLabel.LOW
    supported_triggers: List[str] = field(default_factory=list)
    match_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "baseline": self.baseline,
            "adjustment": self.adjustment,
            "confidence": self.confidence.value,
            "supportedTriggers": list(self.supported_triggers),
            "matchCount": self.match_count,
        }


@dataclass
class AnalysisResult:
    """
    Output of ``HistoricalAnalyzer.analyze``.

    A non-empty ``warnings`` list marks a degraded result (e.g. keyword
    fallback similarity); the result is still valid to render.
    """

    topic: str
    matches: List[SimilarityMatch] = field(default_factory=list)
    patterns: PatternSummary = field(default_factory=PatternSummary)
    prediction: PerformancePrediction = field(default_factory=PerformancePrediction)
    warnings: List[str] = field(default_factory=list)
    similarity_source: str = "none"
    cache_hit: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "matches": [m.to_dict() for m in self.matches],
            "patterns": self.patterns.to_dict(),
            "prediction": self.prediction.to_dict(),
            "warnings": list(self.warnings),
            "similaritySource": self.similarity_source,
            "cacheHit": self.cache_hit,
        }


# =============================================================================
# VOICE MODELS
# =============================================================================


@dataclass
class LexicalSignature:
    common_words: List[str] = field(default_factory=list)
    avg_sentence_length: float = 0.0
    emoji_rate: float = 0.0
    hashtag_rate: float = 0.0
    disclosure_rate: float = 0.0
    authority_rate: float = 0.0


@dataclass
class StructuralSignature:
    paragraph_patterns: List[str] = field(default_factory=list)
    list_usage_rate: float = 0.0
    question_usage_rate: float = 0.0
    avg_paragraph_count: float = 0.0


@dataclass
class PatternLift:
    """How much posts showing a pattern outperform the corpus average.

    ``lift_score`` of 0.25 means 25% above the mean viral score.
    """

    lift_score: float
    correlation: float = 0.0
    support: int = 0


@dataclass
class VoiceProfile:
    """
    Aggregated writing signature of one author.

    Regenerated wholesale on every batch run (replace, never merge).
    """

    lexical_signature: LexicalSignature = field(default_factory=LexicalSignature)
    structural_signature: StructuralSignature = field(default_factory=StructuralSignature)
    performance_correlated_patterns: Dict[str, PatternLift] = field(default_factory=dict)
    sample_count: int = 0
    post_count: int = 0
    comment_count: int = 0
    tone_distribution: Dict[str, float] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    last_updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_trained(self) -> bool:
        return self.sample_count > 0

    def signatures(self) -> Dict[str, Any]:
        """Everything except bookkeeping timestamps (used for equality checks)."""
        data = self.to_dict()
        data.pop("lastUpdatedAt")
        return data

    def to_dict(self) -> Dict[str, Any]:
        lex = self.lexical_signature
        struct = self.structural_signature
        return {
            "lexicalSignature": {
                "commonWords": list(lex.common_words),
                "avgSentenceLength": lex.avg_sentence_length,
                "emojiRate": lex.emoji_rate,
                "hashtagRate": lex.hashtag_rate,
                "disclosureRate": lex.disclosure_rate,
                "authorityRate": lex.authority_rate,
            },
            "structuralSignature": {
                "paragraphPatterns": list(struct.paragraph_patterns),
                "listUsageRate": struct.list_usage_rate,
                "questionUsageRate": struct.question_usage_rate,
                "avgParagraphCount": struct.avg_paragraph_count,
            },
            "performanceCorrelatedPatterns": {
                pattern_id: {
                    "liftScore": lift.lift_score,
                    "correlation": lift.correlation,
                    "support": lift.support,
                }
                for pattern_id, lift in self.performance_correlated_patterns.items()
            },
            "sampleCount": self.sample_count,
            "postCount": self.post_count,
            "commentCount": self.comment_count,
            "toneDistribution": dict(self.tone_distribution),
            "warnings": list(self.warnings),
            "lastUpdatedAt": self.last_updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VoiceProfile":
        lex = _get(data, "lexicalSignature", "lexical_signature", {})
        struct = _get(data, "structuralSignature", "structural_signature", {})
        patterns = _get(
            data, "performanceCorrelatedPatterns", "performance_correlated_patterns", {}
        )
        return cls(
            lexical_signature=LexicalSignature(
                common_words=list(_get(lex, "commonWords", "common_words", [])),
                avg_sentence_length=float(_get(lex, "avgSentenceLength", "avg_sentence_length", 0.0)),
                emoji_rate=float(_get(lex, "emojiRate", "emoji_rate", 0.0)),
                hashtag_rate=float(_get(lex, "hashtagRate", "hashtag_rate", 0.0)),
                disclosure_rate=float(_get(lex, "disclosureRate", "disclosure_rate", 0.0)),
                authority_rate=float(_get(lex, "authorityRate", "authority_rate", 0.0)),
            ),
            structural_signature=StructuralSignature(
                paragraph_patterns=list(_get(struct, "paragraphPatterns", "paragraph_patterns", [])),
                list_usage_rate=float(_get(struct, "listUsageRate", "list_usage_rate", 0.0)),
                question_usage_rate=float(
                    _get(struct, "questionUsageRate", "question_usage_rate", 0.0)
                ),
                avg_paragraph_count=float(
                    _get(struct, "avgParagraphCount", "avg_paragraph_count", 0.0)
                ),
            ),
            performance_correlated_patterns={
                str(pattern_id): PatternLift(
                    lift_score=float(_get(values, "liftScore", "lift_score", 0.0)),
                    correlation=float(values.get("correlation", 0.0)),
                    support=int(values.get("support", 0)),
                )
                for pattern_id, values in patterns.items()
            },
            sample_count=int(_get(data, "sampleCount", "sample_count", 0)),
            post_count=int(_get(data, "postCount", "post_count", 0)),
            comment_count=int(_get(data, "commentCount", "comment_count", 0)),
            tone_distribution={
                str(k): float(v)
                for k, v in _get(data, "toneDistribution", "tone_distribution", {}).items()
            },
            warnings=list(data.get("warnings") or []),
            last_updated_at=parse_datetime(_get(data, "lastUpdatedAt", "last_updated_at"))
            or utc_now(),
        )


@dataclass(frozen=True)
class VoiceScore:
    """Four independent 0-100 sub-scores of a draft against a profile."""

    authenticity: int
    authority: int
    vulnerability: int
    engagement_potential: int
    untrained: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authenticity": self.authenticity,
            "authority": self.authority,
            "vulnerability": self.vulnerability,
            "engagementPotential": self.engagement_potential,
            "untrained": self.untrained,
        }


# =============================================================================
# INFRASTRUCTURE MODELS
# =============================================================================


@dataclass
class CacheEntry:
    """
    One content-addressed cache record.

    An entry is valid while ``now <= expires_at``; afterwards it is a miss
    and eligible for physical deletion by ``ResearchCache.sweep``.
    """

    query_hash: str
    query_text: str
    results: Any
    source: str
    expires_at: datetime
    hit_count: int = 0
    last_accessed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_row(self) -> Dict[str, Any]:
        return {
            "query_hash": self.query_hash,
            "query_text": self.query_text,
            "results": self.results,
            "source": self.source,
            "expires_at": self.expires_at.isoformat(),
            "hit_count": self.hit_count,
            "last_accessed_at": _iso(self.last_accessed_at),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CacheEntry":
        return cls(
            query_hash=row["query_hash"],
            query_text=row.get("query_text") or "",
            results=row.get("results"),
            source=row.get("source") or "",
            expires_at=parse_datetime(row["expires_at"]),  # type: ignore[arg-type]
            hit_count=int(row.get("hit_count") or 0),
            last_accessed_at=parse_datetime(row.get("last_accessed_at")),
            created_at=parse_datetime(row.get("created_at")) or utc_now(),
        )


@dataclass
class BatchPageError:
    """A page or commit step that failed during a batch run.

    Commit steps (``learn``, ``profile``, ``metrics``, ``restore``) have no
    page and carry ``page`` and ``offset`` of -1.
    """

    kind: str  # "posts", "comments" or a commit step
    page: int
    offset: int
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "page": self.page, "offset": self.offset, "error": self.error}


@dataclass
class BatchReport:
    """
    Outcome of one ``BatchOrchestrator.run_full_analysis`` run.

    ``committed`` is ``True`` only when every page succeeded and the new
    tiers and voice profile were written.
    """

    processed: int = 0
    skipped: int = 0
    errors: List[BatchPageError] = field(default_factory=list)
    committed: bool = False
    profile_sample_count: int = 0
    tier_counts: Dict[str, int] = field(default_factory=dict)
    warmed_topics: List[str] = field(default_factory=list)
    swept_cache_entries: int = 0
    embedded_posts: int = 0
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
            "committed": self.committed,
            "profileSampleCount": self.profile_sample_count,
            "tierCounts": dict(self.tier_counts),
            "warmedTopics": list(self.warmed_topics),
            "sweptCacheEntries": self.swept_cache_entries,
            "embeddedPosts": self.embedded_posts,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": _iso(self.finished_at),
        }


# =============================================================================
# PUBLIC API
# =============================================================================

__all__ = [
    # Enums
    "Recommendation",
    "PerformanceTier",
    "ConfidenceLabel",
    # Research
    "ProfileInfo",
    "CurrentRole",
    "CompanyInfo",
    "RecentActivity",
    "ExperienceEntry",
    "ResearchBundle",
    # Scoring
    "FactorScore",
    "ScoreResult",
    # Corpus
    "Engagement",
    "DerivedMetrics",
    "HistoricalPost",
    "Comment",
    # Analyzer
    "SimilarityMatch",
    "PatternSummary",
    "PerformancePrediction",
    "AnalysisResult",
    # Voice
    "LexicalSignature",
    "StructuralSignature",
    "PatternLift",
    "VoiceProfile",
    "VoiceScore",
    # Infrastructure
    "CacheEntry",
    "BatchPageError",
    "BatchReport",
]
