"""Tests for the LLM and embedding clients.

All tests are deterministic and do not make real network calls.
"""

import math
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from backend.app.errors import RemoteServiceError
from backend.app.llm.client import (
    MAX_COMPLETION_CHARS,
    DeterministicStubClient,
    OpenAIClient,
    get_llm_client,
)
from backend.app.rag.embeddings import DeterministicEmbeddingClient, OpenAIEmbeddingClient


def _timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.test"))


@pytest.mark.asyncio
async def test_stub_client_is_deterministic() -> None:
    """Test stub returns identical output for identical prompts."""
    client = DeterministicStubClient()

    first = await client.complete(system="sys", user="query")
    second = await client.complete(system="sys", user="query")

    assert first == second
    assert first.startswith("# Coding Rules")


@pytest.mark.asyncio
async def test_stub_client_reports_missing_context() -> None:
    """Test stub output reflects whether context was retrieved."""
    client = DeterministicStubClient()

    without = await client.complete(system="s", user="No relevant context found in docs")
    with_ctx = await client.complete(system="s", user="retrieved chunk text")

    assert "without documentation context" in without
    assert "using retrieved documentation context" in with_ctx


@pytest.mark.asyncio
async def test_openai_client_returns_completion() -> None:
    """Test OpenAI client passes prompts through and returns the content."""
    client = OpenAIClient(api_key="sk-test", model="gpt-4o", temperature=0.2, max_tokens=50)

    mock_response = MagicMock()
    mock_response.choices = [MagicMock(message=MagicMock(content="- rule one"))]

    with patch.object(
        client.client.chat.completions, "create", new=AsyncMock(return_value=mock_response)
    ) as mock_create:
        result = await client.complete(system="sys", user="usr")

    assert result == "- rule one"
    kwargs = mock_create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 50
    assert kwargs["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "usr"},
    ]


@pytest.mark.asyncio
async def test_openai_client_truncates_oversized_output() -> None:
    """Test runaway completions are cut to the configured bound."""
    client = OpenAIClient(api_key="sk-test")

    mock_response = MagicMock()
    mock_response.choices = [MagicMock(message=MagicMock(content="x" * (MAX_COMPLETION_CHARS + 10)))]

    with patch.object(
        client.client.chat.completions, "create", new=AsyncMock(return_value=mock_response)
    ):
        result = await client.complete(system="s", user="u")

    assert len(result) == MAX_COMPLETION_CHARS


@pytest.mark.asyncio
async def test_openai_client_wraps_provider_errors() -> None:
    """Test provider failures surface as RemoteServiceError without the body."""
    client = OpenAIClient(api_key="sk-test")

    with patch.object(
        client.client.chat.completions, "create", new=AsyncMock(side_effect=_timeout_error())
    ):
        with pytest.raises(RemoteServiceError) as exc_info:
            await client.complete(system="s", user="u")

    assert exc_info.value.service == "llm"
    assert "APITimeoutError" in str(exc_info.value)


def test_get_llm_client_without_key_returns_stub() -> None:
    """Test factory falls back to the stub when no key is configured."""
    with (
        patch("backend.app.llm.client._llm_client", None),
        patch("backend.app.llm.client.settings") as mock_settings,
    ):
        mock_settings.openai_api_key = None
        assert isinstance(get_llm_client(), DeterministicStubClient)


@pytest.mark.asyncio
async def test_deterministic_embeddings_are_unit_length_and_stable() -> None:
    """Test hashing embedder output is normalized and repeatable."""
    client = DeterministicEmbeddingClient(dim=32)

    first = await client.embed("Use type hints everywhere")
    second = await client.embed("use TYPE hints everywhere")

    assert len(first) == 32
    assert first == second
    assert math.isclose(math.sqrt(sum(v * v for v in first)), 1.0)
    assert await client.embed("") == [0.0] * 32


@pytest.mark.asyncio
async def test_openai_embedding_client_checks_dimension() -> None:
    """Test a vector of the wrong size is rejected."""
    client = OpenAIEmbeddingClient(api_key="sk-test", dim=4)

    mock_response = MagicMock()
    mock_response.data = [MagicMock(embedding=[0.1, 0.2, 0.3])]

    with patch.object(client.client.embeddings, "create", new=AsyncMock(return_value=mock_response)):
        with pytest.raises(RemoteServiceError):
            await client.embed("text")

    mock_response.data = [MagicMock(embedding=[0.1, 0.2, 0.3, 0.4])]
    with patch.object(client.client.embeddings, "create", new=AsyncMock(return_value=mock_response)):
        assert await client.embed("text") == [0.1, 0.2, 0.3, 0.4]


@pytest.mark.asyncio
async def test_openai_embedding_client_wraps_provider_errors() -> None:
    """Test transport failures surface as RemoteServiceError."""
    client = OpenAIEmbeddingClient(api_key="sk-test")

    with patch.object(
        client.client.embeddings, "create", new=AsyncMock(side_effect=_timeout_error())
    ):
        with pytest.raises(RemoteServiceError) as exc_info:
            await client.embed("text")

    assert exc_info.value.service == "embedding"
