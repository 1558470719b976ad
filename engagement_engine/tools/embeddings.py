"""
Async client for an OpenAI-compatible embeddings endpoint.

Uses ``httpx`` to call ``POST /v1/embeddings``. Transport and HTTP errors
are converted into ``ProviderUnavailableError`` so callers can decide on
retries and fallbacks; this client does not retry on its own.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from engagement_engine.exceptions import ProviderUnavailableError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Async wrapper around an OpenAI-compatible embeddings API.

    Args:
        api_key: API key. Falls back to ``EMBEDDING_API_KEY``.
        api_url: Full endpoint URL. Falls back to ``EMBEDDING_API_URL``.
        model: Embedding model name. Falls back to ``EMBEDDING_MODEL``.
        timeout: Per-request HTTP timeout in seconds.
        batch_size: Max inputs per request.

    Usage::

        client = EmbeddingClient()
        vectors = await client.embed(["leadership lessons", "hiring tips"])
    """

    DEFAULT_URL: str = "https://api.openai.com/v1/embeddings"
    DEFAULT_MODEL: str = "text-embedding-3-small"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
        batch_size: int = 100,
    ) -> None:
        self.api_key: str = api_key or os.environ.get("EMBEDDING_API_KEY", "")
        self.api_url: str = api_url or os.environ.get("EMBEDDING_API_URL", self.DEFAULT_URL)
        self.model: str = model or os.environ.get("EMBEDDING_MODEL", self.DEFAULT_MODEL)
        self.timeout = timeout
        self.batch_size = batch_size

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed ``texts``, preserving order.

        Raises:
            ProviderUnavailableError: Missing API key, HTTP/transport error,
                or a malformed response.
        """
        if not texts:
            return []
        if not self.api_key:
            raise ProviderUnavailableError("embeddings", "EMBEDDING_API_KEY is not set")

        vectors: List[List[float]] = []
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for start in range(0, len(texts), self.batch_size):
                chunk = texts[start:start + self.batch_size]
                vectors.extend(await self._embed_chunk(client, chunk))
        return vectors

    async def _embed_chunk(
        self, client: httpx.AsyncClient, chunk: List[str]
    ) -> List[List[float]]:
        try:
            response = await client.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={"model": self.model, "input": chunk},
            )
            response.raise_for_status()
            payload: Dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailableError(
                "embeddings",
                f"HTTP {exc.response.status_code}",
                {"body": exc.response.text[:200]},
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError("embeddings", str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise ProviderUnavailableError("embeddings", "response is not JSON") from exc

        data = payload.get("data")
        if not isinstance(data, list) or len(data) != len(chunk):
            raise ProviderUnavailableError(
                "embeddings",
                f"expected {len(chunk)} embeddings, got {len(data) if isinstance(data, list) else 'none'}",
            )
        try:
            ordered = sorted(data, key=lambda item: item.get("index", 0))
            vectors = [[float(x) for x in item["embedding"]] for item in ordered]
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            raise ProviderUnavailableError(
                "embeddings", f"malformed embedding item: {exc!r}"
            ) from exc
        logger.debug("Embedded %d texts with %s", len(chunk), self.model)
        return vectors
