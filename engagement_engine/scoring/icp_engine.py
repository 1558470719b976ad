"""
ICP Scoring Engine: ``ResearchBundle -> ScoreResult``.

Pure and deterministic: no I/O, no clock, no randomness. Scoring the same
bundle twice yields equal results.

Each factor in ``FACTOR_ALLOCATIONS`` owns a fixed number of points (the
allocations sum to 100). A factor first rates the bundle on a 0-100 scale
using a lookup table, threshold bucket or keyword match, then converts the
rating into points::

    points = round_half_up(max_points * rating / 100)

A factor whose input section is missing awards 0 points with the reasoning
``"insufficient data"``. ``total_score`` is the sum of the (already clamped)
factor points, clamped again to ``[0, 100]``.

Recommendation thresholds are inclusive lower bounds (a score of exactly
80 is ``Qualified``). Thresholds, target lists and rating tables are
tunable constants, see ``ScoringConfig``.

Usage::

    engine = ICPScoringEngine.from_settings(get_settings())
    result = engine.score(ResearchBundle.from_dict(payload))
    print(result.total_score, result.recommendation.value)
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from engagement_engine.config import ScoringConfig, Settings
from engagement_engine.exceptions import InvalidInputError
from engagement_engine.models import (
    FactorScore,
    Recommendation,
    ResearchBundle,
    ScoreResult,
)
from engagement_engine.utils import round_half_up

logger = logging.getLogger("ICPScoringEngine")

INSUFFICIENT_DATA = "insufficient data"

# Ordered: breakdown preserves this order.
FACTOR_ALLOCATIONS: Tuple[Tuple[str, int], ...] = (
    ("role", 25),
    ("companySize", 15),
    ("industry", 10),
    ("tenure", 15),
    ("recentTransition", 15),
    ("leadershipExperience", 10),
    ("engagementLevel", 10),
)

# =============================================================================
# RATING TABLES
# =============================================================================

DEFAULT_TARGET_ROLES: Tuple[str, ...] = (
    "CEO", "Chief Executive Officer",
    "President", "Managing Director",
    "Founder", "Co-Founder",
    "General Manager",
    "COO", "Chief Operating Officer",
    "VP", "Vice President",
    "SVP", "Senior Vice President",
    "Division Head", "Business Unit Leader",
)

ROLE_RATINGS: Dict[str, int] = {
    "ceo": 100,
    "chief executive officer": 100,
    "president": 90,
    "managing director": 90,
    "founder": 90,
    "co-founder": 90,
    "coo": 80,
    "chief operating officer": 80,
    "vp": 80,
    "vice president": 80,
    "svp": 80,
    "senior vice president": 80,
}
OTHER_TARGET_ROLE_RATING = 70
SENIOR_NON_TARGET_RATING = 50
NON_TARGET_ROLE_RATING = 20

DEFAULT_TARGET_SIZES: Tuple[str, ...] = ("51-200", "201-500", "501-1000", "1000+")

SIZE_RATINGS: Dict[str, int] = {
    "1000+": 100,
    "501-1000": 90,
    "201-500": 85,
    "51-200": 75,
}
SMALL_COMPANY_RATING = 40
NON_TARGET_SIZE_RATING = 30

DEFAULT_TARGET_INDUSTRIES: Tuple[str, ...] = (
    "Technology", "Software", "SaaS",
    "Professional Services", "Consulting",
    "Manufacturing", "Financial Services",
    "Healthcare", "Biotechnology",
    "E-commerce", "Retail",
)
PREMIUM_INDUSTRIES = ("technology", "software")
STRONG_INDUSTRIES = ("professional services", "financial")

LEADERSHIP_KEYWORDS: Tuple[str, ...] = (
    "led", "managed", "built", "scaled", "transformed",
    "team of", "direct reports", "p&l", "budget",
    "strategy", "vision", "culture", "growth",
)
RELEVANT_TOPICS: Tuple[str, ...] = (
    "leadership", "management", "growth", "strategy", "culture", "coaching",
)

# Notable-threshold ratings used for tags.
NEW_ROLE_TENURE_RATING = 90
RECENT_TRANSITION_RATING = 85
EXPERIENCED_LEADER_RATING = 80
ACTIVE_ENGAGEMENT_RATING = 80

_SIZE_NUMBER = re.compile(r"\d+")


def _phrase_pattern(phrase: str) -> "re.Pattern[str]":
    """Case-insensitive whole-phrase matcher (``coo`` never matches ``coordinator``)."""
    return re.compile(r"(?<![a-z0-9])" + re.escape(phrase.lower()) + r"(?![a-z0-9])")


def _contains_phrase(text: str, phrase: str) -> bool:
    return _phrase_pattern(phrase).search(text.lower()) is not None


def normalize_size_bucket(raw: Optional[str]) -> Optional[str]:
    """
    Map a raw company-size string onto one of the five buckets.

    Accepts exact buckets (``"201-500"``), LinkedIn-style ranges
    (``"1,001-5,000 employees"``) and open ranges (``"10000+"``). The range's
    lower bound picks the bucket.

    Returns:
        ``"1-50"``, ``"51-200"``, ``"201-500"``, ``"501-1000"``, ``"1000+"``
        or ``None`` when no number can be found.
    """
    if raw is None:
        return None
    text = raw.strip().lower().replace(",", "")
    if text in SIZE_RATINGS or text == "1-50":
        return text
    numbers = [int(n) for n in _SIZE_NUMBER.findall(text)]
    if not numbers:
        return None
    lower = numbers[0]
    if lower >= 1000:
        return "1000+"
    if lower > 500:
        return "501-1000"
    if lower > 200:
        return "201-500"
    if lower > 50:
        return "51-200"
    return "1-50"


def recommendation_for(
    total_score: int,
    qualified_threshold: int = 80,
    review_threshold: int = 40,
) -> Recommendation:
    """Map a total score onto a recommendation (inclusive lower bounds)."""
    if total_score >= qualified_threshold:
        return Recommendation.QUALIFIED
    if total_score >= review_threshold:
        return Recommendation.REVIEW
    return Recommendation.NOT_ICP


# =============================================================================
# CRITERIA
# =============================================================================


@dataclass(frozen=True)
class ICPCriteria:
    """Target persona definition. Defaults describe a senior business leader."""

    target_roles: Tuple[str, ...] = DEFAULT_TARGET_ROLES
    target_company_sizes: Tuple[str, ...] = DEFAULT_TARGET_SIZES
    target_industries: Tuple[str, ...] = DEFAULT_TARGET_INDUSTRIES
    min_tenure_months: int = 0
    max_tenure_months: int = 24

    @classmethod
    def from_config(cls, config: ScoringConfig) -> "ICPCriteria":
        return cls(
            target_roles=tuple(config.target_roles or DEFAULT_TARGET_ROLES),
            target_company_sizes=tuple(config.target_company_sizes or DEFAULT_TARGET_SIZES),
            target_industries=tuple(config.target_industries or DEFAULT_TARGET_INDUSTRIES),
            min_tenure_months=config.min_tenure_months,
            max_tenure_months=config.max_tenure_months,
        )


# Rating: (0-100 rating, reasoning) or None for insufficient data.
Rating = Optional[Tuple[int, str]]


# =============================================================================
# ENGINE
# =============================================================================


class ICPScoringEngine:
    """
    Weighted multi-factor ICP scorer.

    Args:
        criteria: Target persona; defaults to ``ICPCriteria()``.
        qualified_threshold: Minimum total for ``Qualified``.
        review_threshold: Minimum total for ``Review``.
    """

    def __init__(
        self,
        criteria: Optional[ICPCriteria] = None,
        qualified_threshold: int = 80,
        review_threshold: int = 40,
    ):
        self.criteria = criteria or ICPCriteria()
        self.qualified_threshold = qualified_threshold
        self.review_threshold = review_threshold
        self._role_patterns = [
            (role, _phrase_pattern(role)) for role in self.criteria.target_roles
        ]
        self._rules: Dict[str, Callable[[ResearchBundle], Rating]] = {
            "role": self._rate_role,
            "companySize": self._rate_company_size,
            "industry": self._rate_industry,
            "tenure": self._rate_tenure,
            "recentTransition": self._rate_recent_transition,
            "leadershipExperience": self._rate_leadership,
            "engagementLevel": self._rate_engagement,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "ICPScoringEngine":
        return cls(
            criteria=ICPCriteria.from_config(settings.scoring),
            qualified_threshold=settings.scoring.qualified_threshold,
            review_threshold=settings.scoring.review_threshold,
        )

    def score(self, bundle: ResearchBundle) -> ScoreResult:
        """
        Score one research bundle.

        Args:
            bundle: Research about a single subject.

        Returns:
            A new, immutable ``ScoreResult``.

        Raises:
            InvalidInputError: If ``bundle.profile.name`` is missing or blank.
        """
        if bundle is None or bundle.profile is None or not (bundle.profile.name or "").strip():
            raise InvalidInputError("profile.name", "Cannot score a bundle without profile.name")

        breakdown: Dict[str, FactorScore] = {}
        ratings: Dict[str, Optional[int]] = {}
        for name, max_points in FACTOR_ALLOCATIONS:
            rating = self._rules[name](bundle)
            if rating is None:
                ratings[name] = None
                breakdown[name] = FactorScore(0, max_points, INSUFFICIENT_DATA)
                continue
            value, reasoning = rating
            value = min(100, max(0, value))
            points = min(max_points, max(0, round_half_up(max_points * value / 100)))
            ratings[name] = value
            breakdown[name] = FactorScore(points, max_points, reasoning)

        total = min(100, max(0, sum(f.score for f in breakdown.values())))
        result = ScoreResult(
            total_score=total,
            breakdown=breakdown,
            tags=frozenset(self._tags(bundle, ratings)),
            recommendation=recommendation_for(
                total, self.qualified_threshold, self.review_threshold
            ),
        )
        logger.debug(
            "Scored %s: %d (%s)", bundle.profile.name, total, result.recommendation.value
        )
        return result

    # -------------------------------------------------------------------------
    # Factor rules
    # -------------------------------------------------------------------------

    @staticmethod
    def _title(bundle: ResearchBundle) -> str:
        if bundle.current_role is not None and bundle.current_role.title:
            return bundle.current_role.title
        return bundle.profile.headline or ""

    def _best_target_role(self, title: str) -> Optional[Tuple[str, int]]:
        """Most valuable target role named in ``title``.

        A match nested inside a longer match ("President" inside "Vice
        President") is ignored.
        """
        lowered = title.lower()
        spans: List[Tuple[int, int, str]] = []
        for role, pattern in self._role_patterns:
            for m in pattern.finditer(lowered):
                spans.append((m.start(), m.end(), role))
        kept = [
            (start, end, role) for start, end, role in spans
            if not any(
                o_start <= start and end <= o_end and (o_end - o_start) > (end - start)
                for o_start, o_end, _ in spans
            )
        ]
        if not kept:
            return None
        best = max(
            kept,
            key=lambda s: (ROLE_RATINGS.get(s[2].lower(), OTHER_TARGET_ROLE_RATING), -s[0]),
        )
        return best[2], ROLE_RATINGS.get(best[2].lower(), OTHER_TARGET_ROLE_RATING)

    def _is_target_role(self, title: Optional[str]) -> bool:
        return bool(title) and self._best_target_role(title) is not None  # type: ignore[arg-type]

    def _rate_role(self, bundle: ResearchBundle) -> Rating:
        title = self._title(bundle)
        if not title.strip():
            return None
        best = self._best_target_role(title)
        if best is not None:
            role, rating = best
            return rating, f"'{title}' matches target role {role}"
        lowered = title.lower()
        if any(_contains_phrase(lowered, hint) for hint in ("director", "head of", "lead")):
            return SENIOR_NON_TARGET_RATING, f"'{title}' is a leadership role but not senior executive"
        return NON_TARGET_ROLE_RATING, f"'{title}' does not match target roles"

    def _rate_company_size(self, bundle: ResearchBundle) -> Rating:
        info = bundle.company_info
        if info is None or not info.size_bucket:
            return None
        bucket = normalize_size_bucket(info.size_bucket)
        if bucket is None:
            return NON_TARGET_SIZE_RATING, f"Unrecognised company size '{info.size_bucket}'"
        if bucket in self.criteria.target_company_sizes:
            return SIZE_RATINGS.get(bucket, 75), f"Target company size ({bucket} employees)"
        if bucket == "1-50":
            return SMALL_COMPANY_RATING, "Small company (1-50 employees), budget may be limited"
        return NON_TARGET_SIZE_RATING, f"Company size {bucket} outside target range"

    def _rate_industry(self, bundle: ResearchBundle) -> Rating:
        info = bundle.company_info
        if info is None or not info.industry:
            return None
        industry = info.industry.lower()
        for target in self.criteria.target_industries:
            if target.lower() not in industry:
                continue
            lowered = target.lower()
            if any(p in lowered for p in PREMIUM_INDUSTRIES):
                return 100, f"High-value industry: {target}"
            if any(p in lowered for p in STRONG_INDUSTRIES):
                return 90, f"Good industry match: {target}"
            return 80, f"Industry match: {target}"
        return 40, f"Industry '{info.industry}' not in target list"

    def _rate_tenure(self, bundle: ResearchBundle) -> Rating:
        role = bundle.current_role
        if role is None or role.tenure_months is None:
            return None
        tenure = role.tenure_months
        if self.criteria.min_tenure_months <= tenure <= self.criteria.max_tenure_months:
            if tenure <= 6:
                return 100, f"Very recent appointment ({tenure} months)"
            if tenure <= 12:
                return 90, f"Recent appointment ({tenure} months), in transition"
            if tenure <= 24:
                return 80, f"Early tenure ({tenure} months), establishing leadership"
        if tenure > 60:
            return 30, f"Long tenure ({tenure} months)"
        if tenure > 24:
            return 50, f"Established in role ({tenure} months)"
        return 40, f"Tenure {tenure} months outside target range"

    def _rate_recent_transition(self, bundle: ResearchBundle) -> Rating:
        if bundle.current_role is None or not bundle.experience:
            return None
        recent = bundle.experience[:3]
        rating = 50
        if any(self._is_target_role(entry.title) for entry in recent):
            rating = 85
        companies = {entry.company for entry in recent if entry.company}
        if len(companies) >= 2:
            rating = max(rating, 75)
        headline = bundle.profile.headline or ""
        if _contains_phrase(headline, "new") or _contains_phrase(headline, "recently"):
            rating = 95

        if rating >= RECENT_TRANSITION_RATING:
            return rating, "Recent transition into a senior role"
        if rating >= 75:
            return rating, "Career progression across companies"
        return rating, "Limited transition indicators"

    def _rate_leadership(self, bundle: ResearchBundle) -> Rating:
        text = " ".join(
            part for part in (bundle.profile.summary, bundle.profile.headline) if part
        ).lower()
        if not text.strip() and not bundle.experience:
            return None
        indicators = sum(1 for kw in LEADERSHIP_KEYWORDS if _contains_phrase(text, kw))
        indicators += 2 * sum(
            1 for entry in bundle.experience if self._is_target_role(entry.title)
        )
        if indicators >= 6:
            return 100, f"Strong leadership background ({indicators} indicators)"
        if indicators >= 4:
            return 80, f"Good leadership experience ({indicators} indicators)"
        if indicators >= 2:
            return 60, f"Some leadership indicators ({indicators})"
        return 30, f"Limited leadership indicators ({indicators})"

    def _rate_engagement(self, bundle: ResearchBundle) -> Rating:
        activity = bundle.recent_activity
        if activity is None:
            return None
        rating = 50
        posts = activity.post_count or 0
        if posts >= 4:
            rating = 90
        elif posts >= 2:
            rating = 75
        elif posts > 0:
            rating = 60

        if any(
            relevant in topic.lower()
            for topic in activity.topics
            for relevant in RELEVANT_TOPICS
        ):
            rating = max(rating, 80)
        level = (activity.engagement_level or "").lower()
        if "high" in level or "active" in level:
            rating = max(rating, 85)

        if rating >= 85:
            return rating, "High engagement with relevant content"
        if rating >= 70:
            return rating, f"Good activity level ({posts} recent posts)"
        return rating, f"Moderate activity level ({posts} recent posts)"

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def _tags(self, bundle: ResearchBundle, ratings: Dict[str, Optional[int]]) -> List[str]:
        tags: List[str] = []
        title = self._title(bundle)
        if _contains_phrase(title, "ceo") or _contains_phrase(title, "chief executive officer"):
            tags.append("CEO")
        if "founder" in title.lower():
            tags.append("Founder")
        if _contains_phrase(title, "president") and not _contains_phrase(title, "vice president"):
            tags.append("President")
        if _contains_phrase(title, "new") or (ratings.get("tenure") or 0) >= NEW_ROLE_TENURE_RATING:
            tags.append("New Role")

        info = bundle.company_info
        bucket = normalize_size_bucket(info.size_bucket) if info is not None else None
        if bucket == "1000+":
            tags.append("Enterprise")
        elif bucket in ("501-1000", "201-500"):
            tags.append("Mid-Market")
        elif bucket == "51-200":
            tags.append("SMB")
        if bucket is not None and bucket in self.criteria.target_company_sizes:
            tags.append("Target Size")

        industry = (info.industry or "").lower() if info is not None else ""
        if "tech" in industry or "software" in industry:
            tags.append("Technology")
        if "saas" in industry:
            tags.append("SaaS")

        if (ratings.get("recentTransition") or 0) >= RECENT_TRANSITION_RATING:
            tags.append("Recent Transition")
        if (ratings.get("leadershipExperience") or 0) >= EXPERIENCED_LEADER_RATING:
            tags.append("Experienced Leader")
        if (ratings.get("engagementLevel") or 0) >= ACTIVE_ENGAGEMENT_RATING:
            tags.append("LinkedIn Active")
        return tags


__all__ = [
    "FACTOR_ALLOCATIONS",
    "INSUFFICIENT_DATA",
    "ICPCriteria",
    "ICPScoringEngine",
    "normalize_size_bucket",
    "recommendation_for",
]
