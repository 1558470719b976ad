"""
Topic-to-post similarity providers.

A provider answers "how similar is this text to that one" with a float in
``[0, 1]``. The analyzer only needs ``score_many(query, texts)``; the base
class implements it on top of ``similarity`` for simple providers.

- ``KeywordOverlapSimilarity``: deterministic, local, always available.
  Used as the fallback when the real provider keeps failing.
- ``EmbeddingSimilarity``: cosine similarity of embeddings from an
  ``EmbeddingClient``, clamped to ``[0, 1]``.
- ``ResilientSimilarity``: wraps a provider with a timeout and bounded
  exponential-backoff retries on any provider error; on exhaustion it
  degrades to the keyword fallback and reports a warning instead of raising.
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from engagement_engine.exceptions import (
    ProviderTimeoutError,
    ProviderUnavailableError,
    RetryExhaustedError,
)
from engagement_engine.utils import stable_hash, utc_now, with_retry

logger = logging.getLogger("Similarity")

STOPWORDS: FrozenSet[str] = frozenset("""
a about above after again against all am an and any are as at be because been
before being below between both but by can could did do does doing down during
each few for from further had has have having he her here hers herself him
himself his how i if in into is it its itself just me more most my myself no nor
not now of off on once only or other our ours ourselves out over own same she
should so some such than that the their theirs them themselves then there these
they this those through to too under until up very was we were what when where
which while who whom why will with would you your yours yourself yourselves
also get got just like really one thing things make made much many every
""".split())

_TOKEN = re.compile(r"[a-z0-9][a-z0-9'&-]*")


def content_terms(text: str) -> List[str]:
    """Lowercased non-stopword tokens of 3+ characters, in order."""
    return [
        tok.strip("'-")
        for tok in _TOKEN.findall((text or "").lower())
        if len(tok.strip("'-")) >= 3 and tok.strip("'-") not in STOPWORDS
    ]


def _stem(term: str) -> str:
    """Very light suffix stripping so 'leaders' meets 'leader'."""
    for suffix in ("ing", "ers", "er", "es", "s"):
        if term.endswith(suffix) and len(term) - len(suffix) >= 4:
            return term[: -len(suffix)]
    return term


# =============================================================================
# PROVIDERS
# =============================================================================


class SimilarityProvider:
    """Base class for pluggable similarity providers."""

    name: str = "base"

    async def similarity(self, text_a: str, text_b: str) -> float:
        raise NotImplementedError

    async def score_many(self, query: str, texts: Sequence[str]) -> List[float]:
        return [await self.similarity(query, text) for text in texts]


class KeywordOverlapSimilarity(SimilarityProvider):
    """Share of the query's content terms that appear in the text."""

    name = "keyword_overlap"

    def score(self, query: str, text: str) -> float:
        query_terms = {_stem(t) for t in content_terms(query)}
        if not query_terms:
            return 0.0
        text_terms = {_stem(t) for t in content_terms(text)}
        return len(query_terms & text_terms) / len(query_terms)

    async def similarity(self, text_a: str, text_b: str) -> float:
        return self.score(text_a, text_b)

    async def score_many(self, query: str, texts: Sequence[str]) -> List[float]:
        return [self.score(query, text) for text in texts]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clamped to ``[0, 1]`` (opposite vectors score 0)."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return min(1.0, max(0.0, dot / (norm_a * norm_b)))


class InMemoryEmbeddingStore:
    """Dict-backed post-embedding store keyed by ``(text_hash, model)``."""

    def __init__(self) -> None:
        self.rows: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def get_post_embeddings(
        self, text_hashes: Sequence[str], model: str
    ) -> Dict[str, List[float]]:
        return {
            h: list(self.rows[(h, model)]["embedding"])
            for h in text_hashes
            if (h, model) in self.rows
        }

    async def upsert_post_embeddings(self, rows: Sequence[Dict[str, Any]]) -> int:
        for row in rows:
            self.rows[(row["text_hash"], row["model"])] = dict(row)
        return len(rows)


class EmbeddingSimilarity(SimilarityProvider):
    """
    Cosine similarity over provider embeddings.

    Embeddings are memoised per instance. With a ``store`` (``SupabaseDB``
    or ``InMemoryEmbeddingStore``) post-text embeddings are also read from
    and written to the ``post_embeddings`` table, keyed by a hash of the
    text, so a new process only embeds texts it has never seen. Query
    texts are never persisted. Store failures are logged and skipped.

    Args:
        client: Object with ``async embed(texts) -> List[List[float]]``
            (normally an ``EmbeddingClient``).
        store: Optional post-embedding store.
        model: Model name stored with each row; defaults to ``client.model``.
    """

    name = "embedding"

    def __init__(self, client, store: Any = None, model: Optional[str] = None) -> None:
        self.client = client
        self.store = store
        self.model = model or getattr(client, "model", None) or "default"
        self._memo: Dict[str, List[float]] = {}

    async def _load_stored(self, texts: Sequence[str]) -> None:
        if self.store is None or not texts:
            return
        by_hash = {stable_hash(t): t for t in texts}
        try:
            found = await self.store.get_post_embeddings(list(by_hash), self.model)
        except Exception as exc:
            logger.warning("Reading stored embeddings failed, embedding afresh: %s", exc)
            return
        for text_hash, vector in found.items():
            if text_hash in by_hash:
                self._memo[by_hash[text_hash]] = list(vector)

    async def _save(self, texts: Sequence[str], post_ids: Dict[str, str]) -> None:
        if self.store is None or not texts:
            return
        now = utc_now().isoformat()
        rows = [
            {
                "text_hash": stable_hash(t),
                "model": self.model,
                "post_id": post_ids.get(t),
                "embedding": self._memo[t],
                "updated_at": now,
            }
            for t in texts
        ]
        try:
            await self.store.upsert_post_embeddings(rows)
        except Exception as exc:
            logger.warning("Storing %d embeddings failed: %s", len(rows), exc)

    async def _vectors(
        self,
        texts: Sequence[str],
        persist: FrozenSet[str] = frozenset(),
        post_ids: Optional[Dict[str, str]] = None,
    ) -> Tuple[List[List[float]], int]:
        """Vectors for ``texts`` plus how many had to be embedded now."""
        missing = list(dict.fromkeys(t for t in texts if t not in self._memo))
        await self._load_stored([t for t in missing if t in persist])
        missing = [t for t in missing if t not in self._memo]
        if missing:
            vectors = await self.client.embed(missing)
            if len(vectors) != len(missing):
                raise ProviderUnavailableError(
                    "embeddings", f"expected {len(missing)} vectors, got {len(vectors)}"
                )
            self._memo.update(zip(missing, vectors))
            await self._save([t for t in missing if t in persist], post_ids or {})
        return [self._memo[t] for t in texts], len(missing)

    async def similarity(self, text_a: str, text_b: str) -> float:
        (vec_a, vec_b), _ = await self._vectors([text_a, text_b])
        return cosine_similarity(vec_a, vec_b)

    async def score_many(self, query: str, texts: Sequence[str]) -> List[float]:
        vectors, _ = await self._vectors([query, *texts], persist=frozenset(texts))
        query_vec = vectors[0]
        return [cosine_similarity(query_vec, vec) for vec in vectors[1:]]

    async def embed_posts(self, posts: Sequence[Any]) -> int:
        """Make sure every post text has a stored embedding.

        Returns:
            Number of texts sent to the embedding provider.

        Raises:
            ProviderUnavailableError: If the provider fails.
        """
        texts = [p.text for p in posts if (p.text or "").strip()]
        post_ids = {p.text: p.id for p in posts if (p.text or "").strip()}
        _, embedded = await self._vectors(texts, persist=frozenset(texts), post_ids=post_ids)
        return embedded


# =============================================================================
# RESILIENT WRAPPER
# =============================================================================


@dataclass
class SimilarityOutcome:
    """Scores for one query plus where they came from."""

    scores: List[float]
    source: str
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


class ResilientSimilarity:
    """
    Timeout + retry + fallback around a similarity provider.

    The whole batch of texts is scored as one unit, so a result set never
    mixes provider scores with fallback scores.

    Args:
        provider: Primary provider. ``None`` means keyword overlap only.
        fallback: Provider used after retries are exhausted.
        timeout_seconds: Limit for one ``score_many`` attempt.
        max_attempts: Attempts before falling back.
        base_delay: First backoff delay; doubles on every retry.
    """

    # Any provider failure is retried and then replaced by the fallback.
    # asyncio.CancelledError is a BaseException and always propagates.
    RETRYABLE = (Exception,)

    def __init__(
        self,
        provider: Optional[SimilarityProvider] = None,
        fallback: Optional[KeywordOverlapSimilarity] = None,
        timeout_seconds: float = 10.0,
        max_attempts: int = 3,
        base_delay: float = 0.5,
    ):
        self.fallback = fallback or KeywordOverlapSimilarity()
        self.provider = provider or self.fallback
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def _attempt(self, query: str, texts: Sequence[str]) -> List[float]:
        try:
            scores = await asyncio.wait_for(
                self.provider.score_many(query, texts), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTimeoutError(self.provider.name, self.timeout_seconds) from exc
        if len(scores) != len(texts):
            raise ProviderUnavailableError(
                self.provider.name, f"returned {len(scores)} scores for {len(texts)} texts"
            )
        return [min(1.0, max(0.0, float(s))) for s in scores]

    async def score_all(self, query: str, texts: Sequence[str]) -> SimilarityOutcome:
        """Score every text against ``query``. Never raises for provider failures."""
        if not texts:
            return SimilarityOutcome(scores=[], source=self.provider.name)
        if self.provider is self.fallback:
            return SimilarityOutcome(
                scores=await self.fallback.score_many(query, texts), source=self.fallback.name
            )

        attempt = with_retry(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            retryable_exceptions=self.RETRYABLE,
            operation_name=f"similarity:{self.provider.name}",
        )(self._attempt)
        try:
            scores = await attempt(query, texts)
            return SimilarityOutcome(scores=scores, source=self.provider.name)
        except RetryExhaustedError as exc:
            logger.warning(
                "Similarity provider %s unavailable, using %s fallback: %s",
                self.provider.name,
                self.fallback.name,
                exc.last_error,
            )
            return SimilarityOutcome(
                scores=await self.fallback.score_many(query, texts),
                source=self.fallback.name,
                warnings=[
                    f"Similarity provider '{self.provider.name}' unavailable after "
                    f"{exc.attempts} attempts ({exc.last_error}); "
                    f"used keyword-overlap fallback"
                ],
            )


__all__ = [
    "STOPWORDS",
    "content_terms",
    "cosine_similarity",
    "SimilarityProvider",
    "KeywordOverlapSimilarity",
    "EmbeddingSimilarity",
    "InMemoryEmbeddingStore",
    "SimilarityOutcome",
    "ResilientSimilarity",
]
