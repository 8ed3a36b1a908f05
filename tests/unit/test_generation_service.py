"""Unit tests for repository selection and rule generation."""

import uuid
from datetime import datetime, timezone

import pytest

from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryRepositoryStore, InMemoryRuleRepository
from backend.app.db.repositories import RepositoryRecord
from backend.app.errors import RemoteServiceError, ValidationError
from backend.app.llm.client import DeterministicStubClient
from backend.app.models.docs import DocumentFile
from backend.app.models.repositories import GitHubOwner, GitHubRepo
from backend.app.rag.embeddings import DeterministicEmbeddingClient
from backend.app.rag.vector_index import InMemoryVectorIndex
from backend.app.services.generation import (
    GENERATED_RULE_NAME,
    GenerationService,
    build_fallback_rule,
    build_generation_query,
)
from backend.app.services.rules import RuleService


def make_repo(github_id: int, name: str, language: str | None, private: bool = False) -> GitHubRepo:
    return GitHubRepo(
        id=github_id,
        name=name,
        full_name=f"acme/{name}",
        owner=GitHubOwner(login="acme"),
        html_url=f"https://github.com/acme/{name}",
        language=language,
        private=private,
    )


class FailingLLM:
    async def complete(self, *, system: str, user: str) -> str:
        raise RemoteServiceError("llm", "APITimeoutError")


class FakeFetcher:
    """Records fetch calls and serves canned markdown."""

    def __init__(self, fail_for: str | None = None) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.fail_for = fail_for

    async def __call__(self, owner: str, repo: str, token: str) -> list[DocumentFile]:
        self.calls.append((owner, repo, token))
        if repo == self.fail_for:
            raise RemoteServiceError("github", "HTTP 404")
        return [DocumentFile(path=f"{owner}/{repo}/README.md", content=f"{repo} readme")]


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user_id=uuid.uuid4())


def make_service(llm_client: object, fetcher: FakeFetcher | None = None) -> GenerationService:
    embedder = DeterministicEmbeddingClient(dim=16)
    index = InMemoryVectorIndex()
    repositories = InMemoryRepositoryStore()
    rule_service = RuleService(InMemoryRuleRepository(), repositories, embedder, index)
    return GenerationService(
        repositories,
        rule_service,
        embedding_client=embedder,
        vector_index=index,
        llm_client=llm_client,  # type: ignore[arg-type]
        markdown_fetcher=fetcher or FakeFetcher(),
    )


def test_fallback_rule_lists_unique_languages() -> None:
    """The template names each language once and uses the first as primary."""
    now = datetime.now(timezone.utc)

    def record(language: str | None) -> RepositoryRecord:
        return RepositoryRecord(
            repository_id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            github_id=1,
            name="r",
            full_name="acme/r",
            owner="acme",
            description=None,
            language=language,
            stars=0,
            is_private=False,
            html_url="https://github.com/acme/r",
            is_active=True,
            created_at=now,
            updated_at=now,
        )

    records = [record("Python"), record("Go"), record("Python"), record(None)]

    content = build_fallback_rule(records)

    assert "Primary Languages: Python, Go" in content
    assert "Use Python for all new files" in content
    assert "Use modern best practices for Python and Go" in content
    assert "Primary languages: Python, Go." in build_generation_query(records)


@pytest.mark.asyncio
async def test_generate_rules_uses_rag_when_llm_succeeds(ctx: RequestContext) -> None:
    """A working LLM produces a rag-sourced rule version 1."""
    service = make_service(DeterministicStubClient())
    docs = [DocumentFile(path="CONTRIBUTING.md", content="Run the linters before pushing.")]

    outcome = await service.generate_rules(ctx, [make_repo(1, "api", "Python")], docs)

    assert outcome.synthesis_source == "rag"
    assert outcome.rule.name == GENERATED_RULE_NAME
    assert outcome.rule.version == 1
    assert outcome.rule.content.startswith("# Coding Rules")
    assert outcome.indexing.indexed == 1
    assert [r.full_name for r in outcome.repositories] == ["acme/api"]


@pytest.mark.asyncio
async def test_generate_rules_falls_back_when_llm_fails(ctx: RequestContext) -> None:
    """A failing LLM degrades to the language template instead of erroring."""
    service = make_service(FailingLLM())

    outcome = await service.generate_rules(
        ctx, [make_repo(1, "api", "Python"), make_repo(2, "web", "TypeScript")], []
    )

    assert outcome.synthesis_source == "fallback"
    assert "Primary Languages: Python, TypeScript" in outcome.rule.content


@pytest.mark.asyncio
async def test_generate_rules_requires_a_repository(ctx: RequestContext) -> None:
    """Empty selection fails before anything is saved."""
    service = make_service(DeterministicStubClient())

    with pytest.raises(ValidationError):
        await service.generate_rules(ctx, [], [])


@pytest.mark.asyncio
async def test_save_repositories_deactivates_previous_selection(ctx: RequestContext) -> None:
    """Only the latest selection stays active."""
    service = make_service(DeterministicStubClient())
    await service.save_repositories(ctx, [make_repo(1, "api", "Python")])
    await service.save_repositories(ctx, [make_repo(2, "web", "TypeScript")])

    listed = await service._repositories.list_repositories(ctx)

    assert [(r.name, r.is_active) for r in listed] == [("web", True), ("api", False)]


@pytest.mark.asyncio
async def test_collect_documentation_fetches_public_repos_only(ctx: RequestContext) -> None:
    """Private repositories are never fetched and fetch failures are skipped."""
    fetcher = FakeFetcher(fail_for="broken")
    service = make_service(DeterministicStubClient(), fetcher)
    repos = [
        make_repo(1, "api", "Python"),
        make_repo(2, "secret", "Python", private=True),
        make_repo(3, "broken", "Go"),
    ]

    files = await service.collect_documentation(repos, [], "gho_token")

    assert [c[1] for c in fetcher.calls] == ["api", "broken"]
    assert [f.path for f in files] == ["acme/api/README.md"]


@pytest.mark.asyncio
async def test_collect_documentation_without_token_skips_github(ctx: RequestContext) -> None:
    """Without a token only caller-supplied, non-empty documents are used."""
    fetcher = FakeFetcher()
    service = make_service(DeterministicStubClient(), fetcher)
    docs = [DocumentFile(path="a.md", content="text"), DocumentFile(path="b.md", content="")]

    files = await service.collect_documentation([make_repo(1, "api", "Python")], docs, None)

    assert fetcher.calls == []
    assert [f.path for f in files] == ["a.md"]


@pytest.mark.asyncio
async def test_same_github_repository_is_kept_per_user(ctx: RequestContext) -> None:
    """Two users selecting one GitHub repository each get their own record."""
    service = make_service(DeterministicStubClient())
    other = RequestContext(user_id=uuid.uuid4())

    mine = await service.save_repositories(ctx, [make_repo(42, "api", "Python")])
    await service.save_repositories(ctx, [make_repo(7, "web", "Go")])
    theirs = await service.save_repositories(other, [make_repo(42, "api", "Python")])

    assert theirs[0].user_id == other.user_id
    assert theirs[0].repository_id != mine[0].repository_id
    listed = await service._repositories.list_repositories(ctx)
    assert [(r.name, r.is_active) for r in listed] == [("web", True), ("api", False)]
    assert [r.repository_id for r in await service._repositories.list_repositories(other)] == [
        theirs[0].repository_id
    ]
