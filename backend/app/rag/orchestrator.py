"""RAG orchestrator - retrieve documentation context and synthesize rules."""

import logging
from uuid import UUID

from backend.app.config import settings
from backend.app.errors import GenerationError
from backend.app.llm.client import LLMClient, get_llm_client
from backend.app.rag.embeddings import EmbeddingClient, get_embedding_client
from backend.app.rag.indexer import DOCUMENTATION_TYPE
from backend.app.rag.vector_index import (
    VectorIndex,
    VectorMatch,
    get_vector_index,
    namespace_for_user,
)
from backend.app.utils.logging import StructuredIndexLogger

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"
NO_CONTEXT_MARKER = "No relevant context found in documentation files."

_index_logger = StructuredIndexLogger()

SYSTEM_PROMPT = """You are an expert at analyzing code repositories and generating comprehensive
coding rules and guidelines. Your task is to create detailed, actionable coding rules based on:
1. The user's selected repositories
2. Context retrieved from documentation files

Generate rules that are:
- Specific and actionable
- Based on patterns found in the repositories
- Aligned with best practices from the retrieved documentation context
- Well-structured and easy to follow
- Focused on code style, architecture, and best practices"""


def build_user_prompt(query: str, context: str) -> str:
    """Assemble the user message from the query and retrieved context."""
    return f"""Based on the following query and retrieved documentation context, generate
comprehensive coding rules:

## Query:
{query}

## Retrieved Context from Documentation:
{context or NO_CONTEXT_MARKER}

Please generate detailed coding rules that:
1. Reflect the coding patterns and preferences from the selected repositories
2. Incorporate best practices from the retrieved documentation context
3. Are specific and actionable
4. Include guidelines for code style, architecture, testing, and best practices
5. Are formatted clearly and are easy to follow

Return ONLY the rule content, no explanations or meta-commentary."""


def _in_repositories(match: VectorMatch, repository_ids: list[str]) -> bool:
    stored = match.metadata.get("repository_ids") or []
    if isinstance(stored, str):
        stored = [s for s in stored.split(",") if s]
    return any(repo_id in stored for repo_id in repository_ids)


async def retrieve_context(
    query: str,
    user_id: UUID,
    repository_ids: list[str],
    *,
    top_k: int,
    embedding_client: EmbeddingClient,
    vector_index: VectorIndex,
) -> list[str]:
    """Return up to top_k documentation previews from the user's namespace."""
    query_vector = await embedding_client.embed(query)

    matches = await vector_index.query(
        namespace_for_user(user_id),
        query_vector,
        top_k * 2,
        {"type": DOCUMENTATION_TYPE, "user_id": str(user_id)},
    )

    if repository_ids:
        filtered = [m for m in matches if _in_repositories(m, repository_ids)]
    else:
        filtered = matches

    logger.info(f"Found {len(matches)} matches, {len(filtered)} after repository filtering")

    previews = [m.metadata.get("content") for m in filtered[:top_k]]
    return [p for p in previews if isinstance(p, str)]


async def generate_rules_with_rag(
    query: str,
    user_id: UUID,
    repository_ids: list[str],
    top_k: int | None = None,
    *,
    embedding_client: EmbeddingClient | None = None,
    vector_index: VectorIndex | None = None,
    llm_client: LLMClient | None = None,
) -> str:
    """Generate a rules document grounded on the user's indexed documentation.

    When nothing relevant is indexed the LLM is still called, with an explicit
    no-context marker in place of the retrieved context.

    Args:
        query: Free-text generation request
        user_id: Owning user; retrieval never leaves their namespace
        repository_ids: Keep only chunks associated with one of these (empty keeps all)
        top_k: Number of context chunks (defaults to settings)
        embedding_client: Override for tests
        vector_index: Override for tests
        llm_client: Override for tests

    Returns:
        Trimmed completion text

    Raises:
        RemoteServiceError: If embedding, vector query or LLM call fails
        GenerationError: If the completion is empty
    """
    top_k = top_k if top_k is not None else settings.rag_top_k

    previews = await retrieve_context(
        query,
        user_id,
        repository_ids,
        top_k=top_k,
        embedding_client=embedding_client or get_embedding_client(),
        vector_index=vector_index or get_vector_index(),
    )
    context = CONTEXT_SEPARATOR.join(previews)

    llm_client = llm_client or get_llm_client()
    completion = await llm_client.complete(
        system=SYSTEM_PROMPT, user=build_user_prompt(query, context)
    )

    content = completion.strip()
    if not content:
        raise GenerationError("LLM returned empty rule content")

    _index_logger.log_generation(
        user_id=user_id,
        source="rag",
        context_chunks=len(previews),
        content_chars=len(content),
    )
    return content
