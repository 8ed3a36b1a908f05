"""Repository endpoints - list saved repositories and generate rules from a selection."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, SecretStr

from backend.app.api.dependencies import get_generation_service, get_repository_store
from backend.app.db.context import RequestContext
from backend.app.db.repositories import RepositoryStore
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.docs import DocumentFile, IndexingResult
from backend.app.models.repositories import GitHubRepo, RepositoryOut
from backend.app.models.rules import RuleOut
from backend.app.services.generation import GenerationService

router = APIRouter(prefix="/repositories", tags=["repositories"])


class RepositoryListResponse(BaseModel):
    """Response for GET /repositories."""

    repositories: list[RepositoryOut]


class ActiveRepositoryResponse(BaseModel):
    """Response for GET /repositories/active."""

    repository: RepositoryOut | None


class GenerateRulesRequest(BaseModel):
    """Request body for POST /repositories/generate."""

    repositories: list[GitHubRepo] = Field(..., max_length=100)
    documents: list[DocumentFile] = Field(default_factory=list)
    github_token: SecretStr | None = Field(
        None, description="OAuth token used to fetch markdown from public repositories"
    )


class GenerateRulesResponse(BaseModel):
    """Response for POST /repositories/generate."""

    repositories: list[RepositoryOut]
    rule: RuleOut
    indexing: IndexingResult
    synthesis_source: Literal["rag", "fallback"]


@router.get("", response_model=RepositoryListResponse)
async def list_repositories(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    store: Annotated[RepositoryStore, Depends(get_repository_store)],
) -> RepositoryListResponse:
    """List saved repositories, active first."""
    records = await store.list_repositories(ctx)
    return RepositoryListResponse(repositories=[RepositoryOut.from_record(r) for r in records])


@router.get("/active", response_model=ActiveRepositoryResponse)
async def get_active_repository(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    store: Annotated[RepositoryStore, Depends(get_repository_store)],
) -> ActiveRepositoryResponse:
    """Most recently updated active repository, or null when none is selected."""
    record = await store.get_active_repository(ctx)
    return ActiveRepositoryResponse(
        repository=RepositoryOut.from_record(record) if record is not None else None
    )


@router.post("/generate", response_model=GenerateRulesResponse)
async def generate_rules(
    request: GenerateRulesRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[GenerationService, Depends(get_generation_service)],
) -> GenerateRulesResponse:
    """Save the selection, index its documentation and generate a rule.

    Args:
        request: Selected repositories, extra documents and optional GitHub token
        ctx: Request context
        service: Generation service

    Returns:
        Saved repositories, the generated rule, indexing tally and synthesis source
    """
    token = request.github_token.get_secret_value() if request.github_token else None
    outcome = await service.generate_rules(ctx, request.repositories, request.documents, token)

    return GenerateRulesResponse(
        repositories=[RepositoryOut.from_record(r) for r in outcome.repositories],
        rule=RuleOut.from_record(outcome.rule),
        indexing=outcome.indexing,
        synthesis_source=outcome.synthesis_source,
    )
