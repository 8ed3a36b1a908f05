"""Rule domain models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from backend.app.db.repositories import RuleRecord


class CreateRuleRequest(BaseModel):
    """Request body for POST /rules."""

    name: str = Field(..., min_length=1, max_length=200, description="Rule name")
    content: str = Field(..., min_length=1, description="Rule text")
    repository_id: UUID | None = Field(None, description="Optional owning repository")


class RulePatch(BaseModel):
    """Partial update; omitted fields keep the previous version's values."""

    name: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    is_active: bool | None = None


class RuleOut(BaseModel):
    """Rule version as exposed by the API and the protocol endpoint."""

    id: UUID
    name: str
    content: str
    version: int
    is_active: bool
    repository_id: UUID | None
    parent_rule_id: UUID | None = None
    created_at: datetime
    relevance_score: float | None = None

    @classmethod
    def from_record(cls, record: "RuleRecord", score: float | None = None) -> "RuleOut":
        """Build API model from a rule record."""
        return cls(
            id=record.rule_id,
            name=record.name,
            content=record.content,
            version=record.version,
            is_active=record.is_active,
            repository_id=record.repository_id,
            parent_rule_id=record.parent_rule_id,
            created_at=record.created_at,
            relevance_score=score,
        )
