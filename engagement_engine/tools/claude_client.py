"""
Async Claude API client and the tone classifier built on it.

Uses the ``anthropic`` Python SDK (``AsyncAnthropic``) to call Anthropic's
Messages API. The voice learner only needs structured (JSON) output, so
that is the one generation mode exposed here.

Key features:
    - Automatic retry with exponential backoff via ``@with_retry``
    - Token usage tracking (input + output)
    - Structured JSON generation with markdown-fence stripping

If all retry attempts are exhausted the last ``anthropic`` / JSON error is
wrapped in ``RetryExhaustedError``; callers turn that into a warning.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import AsyncAnthropic

from engagement_engine.exceptions import ClassificationError
from engagement_engine.utils import with_retry

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

TONE_LABELS = (
    "conversational",
    "professional",
    "inspirational",
    "vulnerable",
    "authoritative",
)


def _strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (```json ... ```), if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline != -1:
            cleaned = cleaned[first_newline + 1 :]
        else:
            cleaned = cleaned[3:]
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


class ClaudeClient:
    """Async Claude API client.

    Args:
        api_key: Anthropic API key. Falls back to the
            ``ANTHROPIC_API_KEY`` environment variable.
        model: Model identifier.

    Raises:
        KeyError: If no API key is provided and the environment variable
            is missing.

    Usage::

        client = ClaudeClient()
        data = await client.generate_structured("Return {score: int, reason: str}")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
    ) -> None:
        self.client = AsyncAnthropic(
            api_key=api_key or os.environ["ANTHROPIC_API_KEY"],
        )
        self.model = model
        self._total_input_tokens: int = 0
        self._total_output_tokens: int = 0

    @with_retry(
        max_attempts=3,
        retryable_exceptions=(anthropic.APIError, json.JSONDecodeError),
    )
    async def generate_structured(
        self,
        prompt: str,
        system: Optional[str] = None,
        max_tokens: int = 1024,
    ) -> Dict[str, Any]:
        """Generate a structured JSON response.

        Appends an explicit JSON instruction to the prompt and uses a low
        temperature (0.3). Markdown code fences are stripped before parsing.

        Args:
            prompt: The user message content.
            system: Optional system prompt.
            max_tokens: Maximum tokens in the response.

        Returns:
            Parsed JSON object as a Python dict.
        """
        json_prompt = (
            f"{prompt}\n\n"
            "IMPORTANT: Return ONLY valid JSON, no markdown, no explanation."
        )
        messages: List[Dict[str, str]] = [{"role": "user", "content": json_prompt}]

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": 0.3,
        }
        if system:
            kwargs["system"] = system

        response = await self.client.messages.create(**kwargs)

        self._total_input_tokens += response.usage.input_tokens
        self._total_output_tokens += response.usage.output_tokens
        logger.debug(
            "Claude generate_structured: in=%d out=%d tokens",
            response.usage.input_tokens,
            response.usage.output_tokens,
        )

        return json.loads(_strip_fences(response.content[0].text))

    @property
    def usage_stats(self) -> Dict[str, int]:
        """Cumulative token usage since this client was instantiated."""
        return {
            "input_tokens": self._total_input_tokens,
            "output_tokens": self._total_output_tokens,
        }


class ClaudeToneClassifier:
    """
    Text-classification provider for the voice learner.

    ``classify(text)`` returns a probability distribution over
    ``TONE_LABELS`` (values sum to 1).

    Args:
        client: A ``ClaudeClient`` (or anything with ``generate_structured``).
    """

    SYSTEM_PROMPT = (
        "You classify the tone of short social-media posts written by one "
        "author. Answer with a JSON object mapping each tone label to a "
        "weight between 0 and 1."
    )

    def __init__(self, client: Any) -> None:
        self.client = client

    async def classify(self, text: str) -> Dict[str, float]:
        """Classify one text.

        Raises:
            ClassificationError: If the response holds no usable weights.
            RetryExhaustedError: If the API keeps failing.
        """
        prompt = (
            f"Tone labels: {', '.join(TONE_LABELS)}.\n\n"
            f"Post:\n\"\"\"\n{text[:4000]}\n\"\"\"\n\n"
            'Return {"tone": {"<label>": <weight>, ...}}'
        )
        data = await self.client.generate_structured(prompt, system=self.SYSTEM_PROMPT)
        raw = data.get("tone", data) if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            raise ClassificationError(f"Unexpected classifier response: {data!r:.200}")

        weights: Dict[str, float] = {}
        for label in TONE_LABELS:
            try:
                weights[label] = max(0.0, float(raw.get(label, 0.0)))
            except (TypeError, ValueError):
                weights[label] = 0.0
        total = sum(weights.values())
        if total <= 0:
            raise ClassificationError(f"Classifier returned no positive weights: {raw!r:.200}")
        return {label: weight / total for label, weight in weights.items()}


__all__ = ["ClaudeClient", "ClaudeToneClassifier", "TONE_LABELS", "DEFAULT_MODEL"]
