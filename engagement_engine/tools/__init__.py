"""
External provider wrappers.

- EmbeddingClient: OpenAI-compatible embeddings endpoint (similarity provider)
- ClaudeClient: Anthropic Claude API for structured JSON calls
- ClaudeToneClassifier: tone distribution of a text, built on ClaudeClient
"""

from engagement_engine.tools.claude_client import ClaudeClient, ClaudeToneClassifier
from engagement_engine.tools.embeddings import EmbeddingClient

__all__ = ["ClaudeClient", "ClaudeToneClassifier", "EmbeddingClient"]
