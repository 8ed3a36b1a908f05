"""Rule endpoints - CRUD, history and search over versioned rules."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from backend.app.api.dependencies import get_rule_service
from backend.app.db.context import RequestContext
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.rules import CreateRuleRequest, RuleOut, RulePatch
from backend.app.services.rules import RuleService

router = APIRouter(prefix="/rules", tags=["rules"])


class RuleListResponse(BaseModel):
    """Response for rule listings, history and search."""

    rules: list[RuleOut]


@router.post("", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
async def create_rule(
    request: CreateRuleRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
) -> RuleOut:
    """Create version 1 of a new rule."""
    record = await service.create(ctx, request.name, request.content, request.repository_id)
    return RuleOut.from_record(record)


@router.get("", response_model=RuleListResponse)
async def list_rules(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
    repository_id: Annotated[UUID | None, Query()] = None,
) -> RuleListResponse:
    """List every rule version, newest first.

    Args:
        ctx: Request context
        service: Rule service
        repository_id: Optional repository filter

    Returns:
        Rule versions
    """
    records = await service.list_rules(ctx, repository_id)
    return RuleListResponse(rules=[RuleOut.from_record(r) for r in records])


@router.get("/search", response_model=RuleListResponse)
async def search_rules(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
    query: Annotated[str, Query(min_length=1, max_length=500)],
    repository_id: Annotated[UUID | None, Query()] = None,
    top_k: Annotated[int, Query(ge=1, le=20)] = 5,
) -> RuleListResponse:
    """Semantic rule search with substring fallback.

    Args:
        ctx: Request context
        service: Rule service
        query: Search text
        repository_id: Optional repository filter
        top_k: Maximum number of results (default 5, max 20)

    Returns:
        Matching rules; relevance_score is null for substring matches
    """
    hits = await service.search(ctx, query, repository_id, top_k)
    return RuleListResponse(rules=[RuleOut.from_record(r, score) for r, score in hits])


@router.get("/{rule_id}", response_model=RuleOut)
async def get_rule(
    rule_id: UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
) -> RuleOut:
    """Get one rule version."""
    return RuleOut.from_record(await service.get(ctx, rule_id))


@router.get("/{rule_id}/history", response_model=RuleListResponse)
async def get_rule_history(
    rule_id: UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
) -> RuleListResponse:
    """Version chain from this rule back to version 1."""
    records = await service.history(ctx, rule_id)
    return RuleListResponse(rules=[RuleOut.from_record(r) for r in records])


@router.patch("/{rule_id}", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
async def update_rule(
    rule_id: UUID,
    patch: RulePatch,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
) -> RuleOut:
    """Create the next version of a rule.

    Returns 201 with the new record; the targeted version is left unchanged.
    Updating a version that already has a successor returns 409.
    """
    return RuleOut.from_record(await service.update(ctx, rule_id, patch))


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[RuleService, Depends(get_rule_service)],
) -> Response:
    """Delete one rule version."""
    await service.delete(ctx, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
