"""
Unified async database client for the engine's Supabase tables.

ALL database operations go through the SupabaseDB class defined here.
No direct Supabase calls should appear anywhere else in the codebase.

Tables used:

- ``post_performance_analytics``: historical posts and their derived metrics
- ``voice_learning_data``: author comments (``content_type = 'comment'``)
- ``voice_profiles``: the learned voice profile, one row per profile key
- ``research_cache``: content-addressed lookup cache
- ``post_embeddings``: post-text embeddings keyed by text hash and model
- ``engine_logs``: optional structured-log sink

``SupabaseDB`` doubles as the corpus source/sink consumed by the batch
orchestrator and as the store consumed by ``ResearchCache``.

Usage::

    from engagement_engine.database import get_db

    db = await get_db()
    rows = await db.fetch_posts_page(offset=0, limit=50)
"""

import asyncio
import json
import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from supabase import AsyncClient, create_async_client

from engagement_engine.exceptions import (
    CorpusUnavailableError,
    DatabaseError,
    ValidationError,
)
from engagement_engine.models import HistoricalPost, PerformanceTier, VoiceProfile
from engagement_engine.utils import utc_now

logger = logging.getLogger(__name__)

# performance_tier CHECK constraint values in post_performance_analytics
TIER_COLUMN_VALUES: Dict[PerformanceTier, str] = {
    PerformanceTier.VIRAL: "top_10_percent",
    PerformanceTier.HIGH: "top_25_percent",
    PerformanceTier.MID: "average",
    PerformanceTier.LOW: "below_average",
}
_TIER_FROM_COLUMN = {v: k for k, v in TIER_COLUMN_VALUES.items()}


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def validate_not_empty(value: Any, name: str) -> None:
    """Validate that *value* is not ``None`` or an empty string.

    Raises:
        ValidationError: If *value* is ``None`` or a blank string.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{name} cannot be empty string")


def validate_non_negative(value: Union[int, float], name: str) -> None:
    """Validate that *value* is ``>= 0`` (paging offsets)."""
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")


def validate_positive(value: Union[int, float], name: str) -> None:
    """Validate that *value* is strictly positive (> 0).

    Raises:
        ValidationError: If *value* is ``None`` or not positive.
    """
    if value is None:
        raise ValidationError(f"{name} cannot be None")
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")


# =============================================================================
# ROW MAPPING
# =============================================================================


def post_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a ``post_performance_analytics`` row to the post record shape.

    The returned dict is accepted by ``HistoricalPost.from_dict``.
    """
    derived = row.get("derived_metrics") or None
    if derived is not None:
        derived = dict(derived)
        tier = derived.get("performanceTier") or row.get("performance_tier")
        derived["performanceTier"] = _TIER_FROM_COLUMN.get(tier, tier)
    return {
        "id": row.get("post_id"),
        "text": row.get("content_text") or "",
        "postedAt": row.get("posted_at"),
        "engagement": {
            "likes": row.get("like_count") or 0,
            "comments": row.get("comments_count") or 0,
            "shares": (row.get("reposts_count") or 0) + (row.get("shares_count") or 0),
            "totalReactions": row.get("total_reactions") or 0,
        },
        "derivedMetrics": derived,
    }


def comment_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a ``voice_learning_data`` row to the comment record shape."""
    return {
        "id": row.get("content_id"),
        "text": row.get("content_text") or "",
        "postedAt": row.get("content_date") or row.get("created_at"),
        "parentPostId": row.get("content_context"),
    }


def metrics_to_row(post: HistoricalPost) -> Dict[str, Any]:
    """Row written by :meth:`SupabaseDB.upsert_derived_metrics`.

    ``viral_score`` is a generated column in the table and is only kept
    inside the ``derived_metrics`` JSON.
    """
    metrics = post.derived_metrics
    if metrics is None:
        raise ValidationError(f"post {post.id} has no derived metrics")
    return {
        "post_id": post.id,
        "content_text": post.text,
        "posted_at": post.posted_at.isoformat(),
        "word_count": metrics.word_count,
        "performance_tier": (
            TIER_COLUMN_VALUES[metrics.performance_tier]
            if metrics.performance_tier
            else None
        ),
        "derived_metrics": metrics.to_dict(),
        "last_updated": utc_now().isoformat(),
    }


def embedding_from_column(value: Any) -> List[float]:
    """Decode a ``post_embeddings.embedding`` value.

    pgvector columns come back from PostgREST as ``"[0.1,0.2,...]"``.
    """
    if isinstance(value, str):
        value = json.loads(value)
    return [float(x) for x in value]


async def _execute(query: Any, what: str) -> Any:
    """Run a PostgREST query, turning transport failures into ``DatabaseError``."""
    try:
        return await query.execute()
    except (httpx.HTTPError, OSError) as e:
        raise DatabaseError(f"Failed to {what}: {e}") from e


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass
class SupabaseConfig:
    """Supabase configuration loaded from environment variables.

    Attributes:
        url: The Supabase project URL (``SUPABASE_URL``).
        key: The service-role key (``SUPABASE_SERVICE_KEY``).
    """

    url: str
    key: str

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        """Create a config instance from environment variables.

        Raises:
            ValueError: If either variable is missing or empty.
        """
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

        return cls(url=url, key=key)


# =============================================================================
# SUPABASE DATABASE CLIENT
# =============================================================================


class SupabaseDB:
    """Unified **async** database client.

    **Important:** Use the :meth:`create` factory method instead of
    ``__init__`` directly; the underlying async client requires an
    ``await`` during initialisation.
    """

    def __init__(self, client: AsyncClient) -> None:
        """Private constructor.  Use :meth:`create` factory method."""
        self.client = client

    @classmethod
    async def create(cls, config: Optional[SupabaseConfig] = None) -> "SupabaseDB":
        """Factory method to create an async :class:`SupabaseDB` instance.

        Args:
            config: Optional configuration.  When ``None``,
                :meth:`SupabaseConfig.from_env` is used.
        """
        config = config or SupabaseConfig.from_env()
        client = await create_async_client(config.url, config.key)
        return cls(client)

    # -----------------------------------------------------------------
    # CORPUS SOURCE
    # -----------------------------------------------------------------

    async def fetch_posts_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        """Fetch one page of historical posts, oldest first.

        Args:
            offset: Zero-based row offset.
            limit: Page size.

        Returns:
            Post records (dicts accepted by ``HistoricalPost.from_dict``).

        Raises:
            ValidationError: On a negative offset or non-positive limit.
            CorpusUnavailableError: When the store cannot be reached.
        """
        validate_non_negative(offset, "offset")
        validate_positive(limit, "limit")
        try:
            result = await (
                self.client.table("post_performance_analytics")
                .select("*")
                .order("posted_at")
                .order("post_id")
                .range(offset, offset + limit - 1)
                .execute()
            )
        except (httpx.HTTPError, OSError) as e:
            raise CorpusUnavailableError(
                f"post_performance_analytics unreachable at offset {offset}: {e}"
            ) from e
        return [post_from_row(row) for row in result.data or []]

    async def fetch_comments_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        """Fetch one page of the author's comments, oldest first.

        Raises:
            ValidationError: On a negative offset or non-positive limit.
            CorpusUnavailableError: When the store cannot be reached.
        """
        validate_non_negative(offset, "offset")
        validate_positive(limit, "limit")
        try:
            result = await (
                self.client.table("voice_learning_data")
                .select("*")
                .eq("content_type", "comment")
                .order("content_date")
                .order("content_id")
                .range(offset, offset + limit - 1)
                .execute()
            )
        except (httpx.HTTPError, OSError) as e:
            raise CorpusUnavailableError(
                f"voice_learning_data unreachable at offset {offset}: {e}"
            ) from e
        return [comment_from_row(row) for row in result.data or []]

    # -----------------------------------------------------------------
    # CORPUS SINK
    # -----------------------------------------------------------------

    async def upsert_derived_metrics(self, posts: Sequence[HistoricalPost]) -> int:
        """Upsert derived metrics keyed by ``post_id``.

        Returns:
            Number of rows written.

        Raises:
            ValidationError: If a post has no derived metrics.
            DatabaseError: When the upsert fails.
        """
        if not posts:
            return 0
        rows = [metrics_to_row(post) for post in posts]
        result = await _execute(
            self.client.table("post_performance_analytics").upsert(rows, on_conflict="post_id"),
            "upsert derived metrics",
        )
        return len(result.data) if result.data else len(rows)

    async def save_voice_profile(
        self, profile: VoiceProfile, profile_key: str = "default"
    ) -> None:
        """Replace the stored voice profile for ``profile_key``.

        Raises:
            ValidationError: If ``profile_key`` is blank.
            DatabaseError: When the upsert fails or returns no data.
        """
        validate_not_empty(profile_key, "profile_key")
        row = {
            "profile_key": profile_key,
            "profile": profile.to_dict(),
            "sample_count": profile.sample_count,
            "last_updated_at": profile.last_updated_at.isoformat(),
        }
        result = await _execute(
            self.client.table("voice_profiles").upsert(row, on_conflict="profile_key"),
            "save voice profile",
        )
        if not result.data:
            raise DatabaseError("Upsert succeeded but returned no data")

    async def load_voice_profile(self, profile_key: str = "default") -> Optional[VoiceProfile]:
        """Load the stored voice profile, or ``None`` if never trained."""
        validate_not_empty(profile_key, "profile_key")
        result = await _execute(
            self.client.table("voice_profiles")
            .select("*")
            .eq("profile_key", profile_key)
            .limit(1),
            "load voice profile",
        )
        if not result.data:
            return None
        return VoiceProfile.from_dict(result.data[0]["profile"])

    # -----------------------------------------------------------------
    # POST EMBEDDINGS STORE
    # -----------------------------------------------------------------

    async def get_post_embeddings(
        self, text_hashes: Sequence[str], model: str
    ) -> Dict[str, List[float]]:
        """Stored embeddings for ``text_hashes`` under ``model``.

        Returns:
            ``{text_hash: embedding}`` for the hashes that were found.
        """
        validate_not_empty(model, "model")
        if not text_hashes:
            return {}
        result = await _execute(
            self.client.table("post_embeddings")
            .select("text_hash, embedding")
            .eq("model", model)
            .in_("text_hash", list(text_hashes)),
            "read post embeddings",
        )
        return {
            row["text_hash"]: embedding_from_column(row["embedding"])
            for row in result.data or []
        }

    async def upsert_post_embeddings(self, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert or replace embedding rows keyed by ``(text_hash, model)``.

        Raises:
            ValidationError: If a row lacks ``text_hash``, ``model`` or ``embedding``.
            DatabaseError: When the upsert fails.
        """
        if not rows:
            return 0
        for row in rows:
            for key in ("text_hash", "model", "embedding"):
                if not row.get(key):
                    raise ValidationError(f"post embedding row must have '{key}'")
        await _execute(
            self.client.table("post_embeddings").upsert(list(rows), on_conflict="text_hash,model"),
            "upsert post embeddings",
        )
        return len(rows)

    # -----------------------------------------------------------------
    # RESEARCH CACHE STORE
    # -----------------------------------------------------------------

    async def get_cache_entry(self, query_hash: str) -> Optional[Dict[str, Any]]:
        """Get a cache row by key, expired or not (the cache decides)."""
        validate_not_empty(query_hash, "query_hash")
        result = await _execute(
            self.client.table("research_cache")
            .select("*")
            .eq("query_hash", query_hash)
            .limit(1),
            "read research cache",
        )
        return result.data[0] if result.data else None

    async def upsert_cache_entry(self, row: Dict[str, Any]) -> None:
        """Insert or replace a cache row (last write wins)."""
        if not row or not row.get("query_hash"):
            raise ValidationError("cache row must have 'query_hash'")
        await _execute(
            self.client.table("research_cache").upsert(row, on_conflict="query_hash"),
            "write research cache",
        )

    async def record_cache_hit(
        self, query_hash: str, hit_count: int, last_accessed_at: datetime
    ) -> None:
        await _execute(
            self.client.table("research_cache")
            .update({
                "hit_count": hit_count,
                "last_accessed_at": last_accessed_at.isoformat(),
            })
            .eq("query_hash", query_hash),
            "record cache hit",
        )

    async def delete_expired_cache_entries(self, now: datetime) -> int:
        """Physically delete rows with ``expires_at < now``.

        Returns:
            Number of deleted rows.
        """
        result = await _execute(
            self.client.table("research_cache").delete().lt("expires_at", now.isoformat()),
            "sweep research cache",
        )
        return len(result.data or [])

    # -----------------------------------------------------------------
    # ENGINE LOGS
    # -----------------------------------------------------------------

    async def save_engine_log(self, log_entry: Dict[str, Any]) -> None:
        """Save a structured log entry.

        Raises:
            ValidationError: If ``timestamp`` or ``level`` is missing.
        """
        if not log_entry:
            raise ValidationError("log_entry cannot be None or empty")
        if "timestamp" not in log_entry or "level" not in log_entry:
            raise ValidationError("log_entry must have 'timestamp' and 'level'")
        await _execute(self.client.table("engine_logs").insert(log_entry), "save engine log")


# =============================================================================
# GLOBAL DATABASE INSTANCE (Singleton)
# =============================================================================

_db_instance: Optional[SupabaseDB] = None
_db_lock: Optional[asyncio.Lock] = None

# Thread lock for safe initialisation of the async lock itself.
_init_lock = threading.Lock()


async def get_db() -> SupabaseDB:
    """Get the global async database instance (created on first call)."""
    global _db_instance, _db_lock

    if _db_lock is None:
        with _init_lock:
            if _db_lock is None:
                _db_lock = asyncio.Lock()

    if _db_instance is None:
        async with _db_lock:
            if _db_instance is None:
                _db_instance = await SupabaseDB.create()

    return _db_instance


def reset_db() -> None:
    """Drop the singleton (tests and CLI re-entry)."""
    global _db_instance, _db_lock
    _db_instance = None
    _db_lock = None


__all__ = [
    "SupabaseDB",
    "SupabaseConfig",
    "get_db",
    "reset_db",
    "validate_not_empty",
    "validate_positive",
    "validate_non_negative",
    "post_from_row",
    "comment_from_row",
    "metrics_to_row",
    "embedding_from_column",
    "TIER_COLUMN_VALUES",
]
