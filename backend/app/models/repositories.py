"""GitHub repository domain models."""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from backend.app.db.repositories import RepositoryRecord


class GitHubOwner(BaseModel):
    """Repository owner as returned by the GitHub API."""

    login: str = Field(..., min_length=1)
    avatar_url: str | None = None


class GitHubRepo(BaseModel):
    """Repository as returned by the GitHub API (subset)."""

    id: int = Field(..., description="GitHub numeric repository id")
    name: str = Field(..., min_length=1)
    full_name: str = Field(..., pattern=r"^[^/\s]+/[^/\s]+$")
    owner: GitHubOwner
    description: str | None = None
    html_url: str
    language: str | None = None
    stargazers_count: int = Field(0, ge=0)
    private: bool = False


class RepositoryOut(BaseModel):
    """Saved repository as exposed by the API."""

    id: UUID
    github_id: int
    name: str
    full_name: str
    owner: str
    description: str | None
    language: str | None
    stars: int
    is_private: bool
    html_url: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: "RepositoryRecord") -> "RepositoryOut":
        """Build API model from a repository record."""
        return cls(
            id=record.repository_id,
            github_id=record.github_id,
            name=record.name,
            full_name=record.full_name,
            owner=record.owner,
            description=record.description,
            language=record.language,
            stars=record.stars,
            is_private=record.is_private,
            html_url=record.html_url,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
