"""FastAPI dependency providers for repositories and services.

Tests swap the SQL-backed providers for in-memory ones through
``app.dependency_overrides``.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.engine import get_session
from backend.app.db.repositories import (
    RepositoryStore,
    RuleRepository,
    TemplateStore,
    UserRepository,
)
from backend.app.db.sql_repositories import (
    SqlRepositoryStore,
    SqlRuleRepository,
    SqlTemplateStore,
    SqlUserRepository,
)
from backend.app.llm.client import LLMClient, get_llm_client
from backend.app.rag.embeddings import EmbeddingClient, get_embedding_client
from backend.app.rag.vector_index import VectorIndex, get_vector_index
from backend.app.services.generation import GenerationService
from backend.app.services.rules import RuleService
from backend.app.services.templates import TemplateService


def get_user_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserRepository:
    """SQL user repository bound to the request session."""
    return SqlUserRepository(session)


def get_rule_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RuleRepository:
    """SQL rule repository bound to the request session."""
    return SqlRuleRepository(session)


def get_repository_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RepositoryStore:
    """SQL repository store bound to the request session."""
    return SqlRepositoryStore(session)


def get_template_store(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> TemplateStore:
    """SQL template store bound to the request session."""
    return SqlTemplateStore(session)


def get_rule_service(
    rules: Annotated[RuleRepository, Depends(get_rule_repository)],
    repositories: Annotated[RepositoryStore, Depends(get_repository_store)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
    vector_index: Annotated[VectorIndex, Depends(get_vector_index)],
) -> RuleService:
    """Rule versioning service for the request."""
    return RuleService(rules, repositories, embedding_client, vector_index)


def get_generation_service(
    repositories: Annotated[RepositoryStore, Depends(get_repository_store)],
    rule_service: Annotated[RuleService, Depends(get_rule_service)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
    vector_index: Annotated[VectorIndex, Depends(get_vector_index)],
    llm_client: Annotated[LLMClient, Depends(get_llm_client)],
) -> GenerationService:
    """Repository/generation service for the request."""
    return GenerationService(
        repositories,
        rule_service,
        embedding_client=embedding_client,
        vector_index=vector_index,
        llm_client=llm_client,
    )


def get_template_service(
    templates: Annotated[TemplateStore, Depends(get_template_store)],
    rule_service: Annotated[RuleService, Depends(get_rule_service)],
) -> TemplateService:
    """Rule template service for the request."""
    return TemplateService(templates, rule_service)
