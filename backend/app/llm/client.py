"""LLM client for rule synthesis with OpenAI integration.

Security: Reads API key from environment only, never hardcoded.
Provides deterministic fallback when no key present for testing.
"""

import hashlib
import logging
from typing import Protocol

from openai import AsyncOpenAI, OpenAIError

from backend.app.config import settings
from backend.app.errors import RemoteServiceError

logger = logging.getLogger(__name__)

# Upper bound on completion text kept from the provider
MAX_COMPLETION_CHARS = 20_000


class LLMClient(Protocol):
    """Protocol for LLM client implementations."""

    async def complete(self, *, system: str, user: str) -> str:
        """Run a single chat completion.

        Args:
            system: System instruction
            user: User message

        Returns:
            Raw completion text (may be empty)

        Raises:
            RemoteServiceError: If the provider call fails or times out
        """
        ...


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    async def complete(self, *, system: str, user: str) -> str:
        """Generate deterministic stub completion."""
        fingerprint = hashlib.sha256(user.encode("utf-8")).hexdigest()[:12]
        context_note = (
            "without documentation context"
            if "No relevant context found" in user
            else "using retrieved documentation context"
        )

        return (
            "# Coding Rules\n\n"
            f"- Follow the conventions already present in the selected repositories.\n"
            f"- Keep functions small and covered by tests.\n"
            f"- Document public interfaces.\n\n"
            f"*Stub rules generated {context_note} (ref {fingerprint}).*"
        )


class OpenAIClient:
    """OpenAI-backed LLM client for real synthesis."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: float = 30.0,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Chat model name
            temperature: Sampling temperature
            max_tokens: Completion token limit
            timeout: Transport timeout in seconds
        """
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, *, system: str, user: str) -> str:
        """Generate completion using OpenAI API."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            # Provider bodies can echo prompt content; keep only the error class
            logger.error(f"OpenAI API call failed: {type(e).__name__}")
            raise RemoteServiceError("llm", type(e).__name__) from e

        if not response.choices:
            return ""

        content = response.choices[0].message.content or ""

        if len(content) > MAX_COMPLETION_CHARS:
            logger.warning(
                f"OpenAI response unexpectedly large ({len(content)} chars), "
                f"truncating to {MAX_COMPLETION_CHARS}"
            )
            content = content[:MAX_COMPLETION_CHARS]

        return content


_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Get process-wide LLM client based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    global _llm_client
    if _llm_client is None:
        api_key = settings.openai_api_key

        if api_key and api_key.get_secret_value():
            logger.info("Using OpenAI client for synthesis")
            _llm_client = OpenAIClient(
                api_key=api_key.get_secret_value(),
                model=settings.openai_model,
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                timeout=settings.remote_timeout_seconds,
            )
        else:
            logger.warning("No OpenAI API key configured, using deterministic stub client")
            _llm_client = DeterministicStubClient()
    return _llm_client
