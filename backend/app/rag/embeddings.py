"""Embedding client - text to fixed-dimension vectors.

Security: reads the API key from settings only, never hardcoded.
Provides a deterministic hashing fallback when no key is present.
"""

import hashlib
import logging
import math
import re
import time
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.app.config import settings
from backend.app.errors import RemoteServiceError
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

EMBEDDING_DIM = 1536

_TOKEN_RE = re.compile(r"\w+")


class EmbeddingClient(Protocol):
    """Protocol for embedding client implementations."""

    async def embed(self, text: str) -> list[float]:
        """Embed text into a fixed-dimension float vector.

        Raises:
            RemoteServiceError: If the provider call fails or times out
        """
        ...


class DeterministicEmbeddingClient:
    """Hashing bag-of-words embedder for tests and keyless development.

    Texts sharing tokens land close together under cosine similarity, which
    is enough to exercise retrieval end to end without a network call.
    """

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        """Generate deterministic embedding."""
        vector = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:8], "big") % self.dim] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]


class OpenAIEmbeddingClient:
    """OpenAI-backed embedding client."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dim: int = EMBEDDING_DIM,
        timeout: float = 30.0,
    ):
        """Initialize OpenAI embedding client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Embedding model name
            dim: Expected vector dimension
            timeout: Transport timeout in seconds
        """
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.dim = dim

    async def embed(self, text: str) -> list[float]:
        """Embed text using the OpenAI embeddings API."""
        started = time.perf_counter()
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except OpenAIError as e:
            metrics.record_embedding("error", (time.perf_counter() - started) * 1000)
            raise RemoteServiceError("embedding", type(e).__name__) from e

        metrics.record_embedding("success", (time.perf_counter() - started) * 1000)

        if not response.data:
            raise RemoteServiceError("embedding", "empty response")

        vector = list(response.data[0].embedding)
        if len(vector) != self.dim:
            raise RemoteServiceError(
                "embedding", f"expected {self.dim} dimensions, got {len(vector)}"
            )
        return vector


_embedding_client: EmbeddingClient | None = None


def get_embedding_client() -> EmbeddingClient:
    """Get process-wide embedding client.

    Returns:
        OpenAIEmbeddingClient if API key is configured, DeterministicEmbeddingClient otherwise
    """
    global _embedding_client
    if _embedding_client is None:
        api_key = settings.openai_api_key
        if api_key and api_key.get_secret_value():
            logger.info("Using OpenAI embedding client")
            _embedding_client = OpenAIEmbeddingClient(
                api_key=api_key.get_secret_value(),
                model=settings.embedding_model,
                dim=settings.embedding_dim,
                timeout=settings.remote_timeout_seconds,
            )
        else:
            logger.warning("No OpenAI API key configured, using deterministic embedding client")
            _embedding_client = DeterministicEmbeddingClient(dim=settings.embedding_dim)
    return _embedding_client
