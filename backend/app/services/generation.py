"""Repository selection and rule generation service."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from backend.app.adapters.github import fetch_markdown_files
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RepositoryRecord, RepositoryStore, RuleRecord
from backend.app.errors import GenerationError, RemoteServiceError, ValidationError
from backend.app.llm.client import LLMClient
from backend.app.models.docs import DocumentFile, IndexingResult
from backend.app.models.repositories import GitHubRepo
from backend.app.rag.embeddings import EmbeddingClient
from backend.app.rag.indexer import index_documentation
from backend.app.rag.orchestrator import generate_rules_with_rag
from backend.app.rag.vector_index import VectorIndex
from backend.app.services.rules import RuleService
from backend.app.utils.logging import StructuredIndexLogger
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

GENERATED_RULE_NAME = "Generated Rules from Repositories"

MarkdownFetcher = Callable[[str, str, str], Awaitable[list[DocumentFile]]]

_index_logger = StructuredIndexLogger()


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of a generation run."""

    repositories: list[RepositoryRecord]
    rule: RuleRecord
    indexing: IndexingResult
    synthesis_source: Literal["rag", "fallback"]


def unique_languages(repositories: list[RepositoryRecord]) -> list[str]:
    """Repository languages in first-seen order, without duplicates."""
    seen: list[str] = []
    for repo in repositories:
        if repo.language and repo.language not in seen:
            seen.append(repo.language)
    return seen


def build_generation_query(repositories: list[RepositoryRecord]) -> str:
    """Retrieval query describing the selected repositories."""
    names = ", ".join(r.full_name for r in repositories)
    languages = ", ".join(unique_languages(repositories))
    return (
        f"Generate comprehensive coding rules based on these repositories: {names}. "
        f"Primary languages: {languages}."
    )


def build_fallback_rule(repositories: list[RepositoryRecord]) -> str:
    """Template rule built from repository languages alone."""
    languages = unique_languages(repositories)
    primary = languages[0] if languages else "TypeScript"
    joined = " and ".join(languages) if languages else primary

    return f"""Based on your selected repositories, here are your coding preferences:

Primary Languages: {", ".join(languages)}

Guidelines:
- Use {primary} for all new files
- Follow consistent code style across all repositories
- Maintain clean architecture and separation of concerns
- Write comprehensive tests for critical functionality
- Document complex logic and APIs
- Use modern best practices for {joined}

This rule was automatically generated based on your repository selection."""


class GenerationService:
    """Save selected repositories and generate a rule from their documentation."""

    def __init__(
        self,
        repositories: RepositoryStore,
        rule_service: RuleService,
        *,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndex,
        llm_client: LLMClient,
        markdown_fetcher: MarkdownFetcher = fetch_markdown_files,
    ) -> None:
        self._repositories = repositories
        self._rule_service = rule_service
        self._embedding_client = embedding_client
        self._vector_index = vector_index
        self._llm_client = llm_client
        self._markdown_fetcher = markdown_fetcher

    async def save_repositories(
        self, ctx: RequestContext, repos: list[GitHubRepo]
    ) -> list[RepositoryRecord]:
        """Upsert the selection and deactivate every other repository of the user.

        Raises:
            ValidationError: If no repositories are selected
        """
        if not repos:
            raise ValidationError("Select at least one repository")

        saved = [await self._repositories.upsert_repository(ctx, repo) for repo in repos]
        await self._repositories.deactivate_others(ctx, [r.repository_id for r in saved])

        logger.info(f"Saved {len(saved)} repositories for user {ctx.user_id}")
        return saved

    async def collect_documentation(
        self,
        repos: list[GitHubRepo],
        documents: list[DocumentFile],
        github_token: str | None,
    ) -> list[DocumentFile]:
        """Caller documents plus markdown fetched from public repositories."""
        collected = [d for d in documents if d.content]

        if not github_token:
            return collected

        for repo in repos:
            if repo.private:
                continue
            try:
                fetched = await self._markdown_fetcher(repo.owner.login, repo.name, github_token)
            except RemoteServiceError as e:
                logger.warning(f"Skipping documentation for {repo.full_name}: {e}")
                continue
            collected.extend(f for f in fetched if f.content)

        return collected

    async def generate_rules(
        self,
        ctx: RequestContext,
        repos: list[GitHubRepo],
        documents: list[DocumentFile],
        github_token: str | None = None,
    ) -> GenerationOutcome:
        """Save repositories, index their documentation and create a generated rule.

        RAG failures degrade to a template rule; the run itself only fails on
        invalid input or persistence errors.

        Raises:
            ValidationError: If no repositories are selected
        """
        saved = await self.save_repositories(ctx, repos)
        repository_ids = [str(r.repository_id) for r in saved]

        files = await self.collect_documentation(repos, documents, github_token)
        indexing = await index_documentation(
            files,
            ctx.user_id,
            repository_ids,
            embedding_client=self._embedding_client,
            vector_index=self._vector_index,
        )

        source: Literal["rag", "fallback"]
        try:
            content = await generate_rules_with_rag(
                build_generation_query(saved),
                ctx.user_id,
                repository_ids,
                embedding_client=self._embedding_client,
                vector_index=self._vector_index,
                llm_client=self._llm_client,
            )
            source = "rag"
        except (RemoteServiceError, GenerationError) as e:
            _index_logger.log_generation(
                user_id=ctx.user_id,
                source="fallback",
                context_chunks=0,
                content_chars=0,
                error_reason=type(e).__name__,
            )
            content = build_fallback_rule(saved)
            source = "fallback"

        metrics.inc_generation(source)

        rule = await self._rule_service.create(ctx, GENERATED_RULE_NAME, content)

        return GenerationOutcome(
            repositories=saved,
            rule=rule,
            indexing=indexing,
            synthesis_source=source,
        )
