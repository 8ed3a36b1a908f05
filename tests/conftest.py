"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.api.dependencies import (
    get_repository_store,
    get_rule_repository,
    get_template_store,
    get_user_repository,
)
from backend.app.db.inmemory import (
    InMemoryRateLimiter,
    InMemoryRepositoryStore,
    InMemoryRuleRepository,
    InMemoryTemplateStore,
    InMemoryUserRepository,
)
from backend.app.db.models import Base
from backend.app.llm.client import DeterministicStubClient, get_llm_client
from backend.app.main import app
from backend.app.middleware.ratelimit import (
    RateLimitMiddleware,
    create_default_bucket_map,
    get_rate_limit_middleware,
)
from backend.app.rag.embeddings import DeterministicEmbeddingClient, get_embedding_client
from backend.app.rag.vector_index import InMemoryVectorIndex, get_vector_index
from backend.app.ratelimit import CRUD_BUCKET, GENERATION_BUCKET, MCP_BUCKET
from backend.app.services.rules import RuleService

TEST_EMBEDDING_DIM = 64


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def rule_repo() -> InMemoryRuleRepository:
    return InMemoryRuleRepository()


@pytest.fixture
def repo_store() -> InMemoryRepositoryStore:
    return InMemoryRepositoryStore()


@pytest.fixture
def template_store() -> InMemoryTemplateStore:
    return InMemoryTemplateStore()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def embedding_client() -> DeterministicEmbeddingClient:
    return DeterministicEmbeddingClient(dim=TEST_EMBEDDING_DIM)


@pytest.fixture
def llm_client() -> DeterministicStubClient:
    return DeterministicStubClient()


@pytest.fixture
def rule_service(
    rule_repo: InMemoryRuleRepository,
    repo_store: InMemoryRepositoryStore,
    embedding_client: DeterministicEmbeddingClient,
    vector_index: InMemoryVectorIndex,
) -> RuleService:
    return RuleService(rule_repo, repo_store, embedding_client, vector_index)


@pytest.fixture
def rate_limits() -> dict[str, int]:
    """Per-bucket quotas for the test app; override in a module to tighten."""
    return {GENERATION_BUCKET: 1000, CRUD_BUCKET: 1000, MCP_BUCKET: 1000}


@pytest.fixture
def client(
    user_repo: InMemoryUserRepository,
    rule_repo: InMemoryRuleRepository,
    repo_store: InMemoryRepositoryStore,
    template_store: InMemoryTemplateStore,
    vector_index: InMemoryVectorIndex,
    embedding_client: DeterministicEmbeddingClient,
    llm_client: DeterministicStubClient,
    rate_limits: dict[str, int],
) -> Iterator[TestClient]:
    """Test client wired to in-memory stores and deterministic providers."""
    middleware = RateLimitMiddleware(
        {bucket: InMemoryRateLimiter(max_requests=quota) for bucket, quota in rate_limits.items()},
        create_default_bucket_map(),
    )

    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_rule_repository] = lambda: rule_repo
    app.dependency_overrides[get_repository_store] = lambda: repo_store
    app.dependency_overrides[get_template_store] = lambda: template_store
    app.dependency_overrides[get_vector_index] = lambda: vector_index
    app.dependency_overrides[get_embedding_client] = lambda: embedding_client
    app.dependency_overrides[get_llm_client] = lambda: llm_client
    app.dependency_overrides[get_rate_limit_middleware] = lambda: middleware

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string
    with the pgvector extension available. Tests using this fixture should be
    marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    # Ensure it's a postgres URL
    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # Convert to async driver if needed
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(
        database_url,
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup: drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def postgres_session(postgres_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create async session for PostgreSQL integration tests."""
    async with AsyncSession(postgres_engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()
