"""Template endpoints - browse shared rule templates and copy them into rules."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from backend.app.api.dependencies import get_template_service
from backend.app.db.context import RequestContext
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.rules import RuleOut
from backend.app.models.templates import ApplyTemplateRequest, CreateTemplateRequest, TemplateOut
from backend.app.services.templates import TemplateService

router = APIRouter(prefix="/templates", tags=["templates"])


class TemplateListResponse(BaseModel):
    """Response for GET /templates."""

    templates: list[TemplateOut]


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[TemplateService, Depends(get_template_service)],
    category: Annotated[str | None, Query(max_length=100)] = None,
) -> TemplateListResponse:
    """List public templates, newest first."""
    records = await service.list_public(category)
    return TemplateListResponse(templates=[TemplateOut.from_record(r) for r in records])


@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: CreateTemplateRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> TemplateOut:
    """Add a shared template; names are unique."""
    record = await service.create(
        request.name,
        request.content,
        description=request.description,
        category=request.category,
        is_public=request.is_public,
    )
    return TemplateOut.from_record(record)


@router.get("/{template_id}", response_model=TemplateOut)
async def get_template(
    template_id: UUID,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> TemplateOut:
    return TemplateOut.from_record(await service.get(template_id))


@router.post(
    "/{template_id}/apply", response_model=RuleOut, status_code=status.HTTP_201_CREATED
)
async def apply_template(
    template_id: UUID,
    request: ApplyTemplateRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> RuleOut:
    """Create version 1 of a rule from a template.

    Args:
        template_id: Template to copy
        request: Optional repository for the new rule
        ctx: Request context
        service: Template service

    Returns:
        The new rule
    """
    record = await service.apply(ctx, template_id, request.repository_id)
    return RuleOut.from_record(record)
