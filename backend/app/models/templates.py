"""Rule template domain models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from backend.app.db.repositories import TemplateRecord


class CreateTemplateRequest(BaseModel):
    """Request body for POST /templates."""

    name: str = Field(..., min_length=1, max_length=200, description="Unique template name")
    content: str = Field(..., min_length=1, description="Rule text the template starts from")
    description: str | None = Field(None, max_length=500)
    category: str | None = Field(None, max_length=100)
    is_public: bool = True


class ApplyTemplateRequest(BaseModel):
    """Request body for POST /templates/{id}/apply."""

    repository_id: UUID | None = Field(None, description="Optional repository for the new rule")


class TemplateOut(BaseModel):
    """Rule template as exposed by the API."""

    id: UUID
    name: str
    description: str | None
    content: str
    category: str | None
    is_public: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: "TemplateRecord") -> "TemplateOut":
        """Build API model from a template record."""
        return cls(
            id=record.template_id,
            name=record.name,
            description=record.description,
            content=record.content,
            category=record.category,
            is_public=record.is_public,
            created_at=record.created_at,
        )
