"""
Corpus source/sink used by the batch orchestrator and the CLI.

A *corpus source* provides two paging coroutines:

- ``fetch_posts_page(offset, limit)`` -> list of ``HistoricalPost`` or raw rows
- ``fetch_comments_page(offset, limit)`` -> list of ``Comment`` or raw rows

A *corpus sink* persists derived artifacts:

- ``upsert_derived_metrics(posts)`` keyed by post id
- ``save_voice_profile(profile, profile_key)`` replacing the stored profile

``SupabaseDB`` implements both against Supabase tables. ``InMemoryCorpus``
implements both in memory and can be loaded from a JSON file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from engagement_engine.models import Comment, HistoricalPost, VoiceProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_KEY = "default"


class InMemoryCorpus:
    """
    Ordered in-memory corpus.

    Pages are served oldest first (``posted_at``, then id), so offsets stay
    stable while new posts are appended.

    Usage::

        corpus = InMemoryCorpus.from_json_file("data/posts.json")
        page = await corpus.fetch_posts_page(0, 50)
    """

    def __init__(
        self,
        posts: Sequence[HistoricalPost] = (),
        comments: Sequence[Comment] = (),
    ) -> None:
        self.posts: Dict[str, HistoricalPost] = {p.id: p for p in posts}
        self.comments: List[Comment] = sorted(comments, key=lambda c: (c.posted_at, c.id))
        self.profiles: Dict[str, VoiceProfile] = {}
        self.metrics_writes = 0

    @classmethod
    def from_json_file(cls, file_path: Union[str, Path]) -> "InMemoryCorpus":
        """Load ``{"posts": [...], "comments": [...]}`` or a bare array of posts.

        Malformed records are skipped with a warning.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the top-level JSON value has the wrong shape.
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"JSON file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, list):
            data = {"posts": data, "comments": []}
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected JSON object or array, got {type(data).__name__}. File: {file_path}"
            )

        posts: List[HistoricalPost] = []
        for item in data.get("posts") or []:
            try:
                posts.append(HistoricalPost.from_dict(item))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed post record: %s", exc)
        comments: List[Comment] = []
        for item in data.get("comments") or []:
            try:
                comments.append(Comment.from_dict(item))
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning("Skipping malformed comment record: %s", exc)

        logger.info("Loaded %d posts and %d comments from %s", len(posts), len(comments), path)
        return cls(posts, comments)

    def snapshot(self) -> List[HistoricalPost]:
        return sorted(self.posts.values(), key=lambda p: (p.posted_at, p.id))

    # -----------------------------------------------------------------
    # Source
    # -----------------------------------------------------------------

    async def fetch_posts_page(self, offset: int, limit: int) -> List[Any]:
        return self.snapshot()[offset:offset + limit]

    async def fetch_comments_page(self, offset: int, limit: int) -> List[Any]:
        return self.comments[offset:offset + limit]

    # -----------------------------------------------------------------
    # Sink
    # -----------------------------------------------------------------

    async def upsert_derived_metrics(self, posts: Sequence[HistoricalPost]) -> int:
        for post in posts:
            self.posts[post.id] = post
        self.metrics_writes += 1
        return len(posts)

    async def save_voice_profile(
        self, profile: VoiceProfile, profile_key: str = DEFAULT_PROFILE_KEY
    ) -> None:
        self.profiles[profile_key] = profile

    async def load_voice_profile(
        self, profile_key: str = DEFAULT_PROFILE_KEY
    ) -> Optional[VoiceProfile]:
        return self.profiles.get(profile_key)


__all__ = ["InMemoryCorpus", "DEFAULT_PROFILE_KEY"]
