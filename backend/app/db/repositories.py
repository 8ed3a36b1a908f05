"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.models.repositories import GitHubRepo


@dataclass(frozen=True)
class UserRecord:
    """User data record."""

    user_id: UUID
    external_id: str
    mcp_token_id: str | None
    mcp_token_hash: str | None
    mcp_token_created_at: datetime | None


@dataclass(frozen=True)
class RuleRecord:
    """Immutable rule version record."""

    rule_id: UUID
    user_id: UUID
    repository_id: UUID | None
    name: str
    content: str
    version: int
    is_active: bool
    parent_rule_id: UUID | None
    created_at: datetime


@dataclass(frozen=True)
class RepositoryRecord:
    """Saved GitHub repository record."""

    repository_id: UUID
    user_id: UUID
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


@dataclass(frozen=True)
class TemplateRecord:
    """Shared rule template record."""

    template_id: UUID
    name: str
    description: str | None
    content: str
    category: str | None
    is_public: bool
    created_at: datetime


class UserRepository(Protocol):
    """Repository for user identity and protocol token operations."""

    async def get_or_create(self, external_id: str) -> UserRecord:
        """Get user by identity-provider subject, creating it on first sight."""
        ...

    async def get_by_external_id(self, external_id: str) -> UserRecord | None:
        """Get an existing user by identity-provider subject."""
        ...

    async def get_by_token_id(self, token_id: str) -> UserRecord | None:
        """Get user owning the protocol token with this public id."""
        ...

    async def set_token(
        self,
        user_id: UUID,
        *,
        token_id: str | None,
        token_hash: str | None,
        created_at: datetime | None,
    ) -> None:
        """Store (or clear, when all None) the user's protocol token."""
        ...


class RuleRepository(Protocol):
    """Repository for append-only rule versions."""

    async def insert_rule(
        self,
        ctx: RequestContext,
        *,
        name: str,
        content: str,
        version: int,
        is_active: bool = True,
        repository_id: UUID | None = None,
        parent_rule_id: UUID | None = None,
    ) -> RuleRecord:
        """Insert a new rule version.

        Raises:
            StaleVersionError: If parent_rule_id already has a successor
        """
        ...

    async def get_rule(self, rule_id: UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get rule by ID (enforces tenancy)."""
        ...

    async def get_successor(self, rule_id: UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get the version whose parent is rule_id, if any."""
        ...

    async def list_rules(
        self, ctx: RequestContext, repository_id: UUID | None = None
    ) -> list[RuleRecord]:
        """List rule records, newest-created first."""
        ...

    async def get_rules_by_ids(self, rule_ids: list[UUID], ctx: RequestContext) -> list[RuleRecord]:
        """Get owned rules among the given IDs (order unspecified)."""
        ...

    async def search_rules_text(
        self,
        ctx: RequestContext,
        query: str,
        repository_id: UUID | None = None,
        limit: int = 5,
    ) -> list[RuleRecord]:
        """Case-insensitive substring search over name and content, newest first."""
        ...

    async def delete_rule(self, rule_id: UUID, ctx: RequestContext) -> bool:
        """Delete a rule version; children lose their parent link.

        Returns:
            True if a record was deleted
        """
        ...


class RepositoryStore(Protocol):
    """Repository for saved GitHub repositories."""

    async def upsert_repository(self, ctx: RequestContext, repo: GitHubRepo) -> RepositoryRecord:
        """Insert or refresh the caller's copy of a repository, marking it active."""
        ...

    async def get_repository(
        self, ctx: RequestContext, repository_id: UUID
    ) -> RepositoryRecord | None:
        """Get repository by ID (enforces tenancy)."""
        ...

    async def get_active_repository(self, ctx: RequestContext) -> RepositoryRecord | None:
        """Most recently updated active repository, if any."""
        ...

    async def deactivate_others(self, ctx: RequestContext, keep_ids: list[UUID]) -> None:
        """Mark all of the user's repositories not in keep_ids inactive."""
        ...

    async def list_repositories(self, ctx: RequestContext) -> list[RepositoryRecord]:
        """List repositories, active first then most recently updated."""
        ...


class TemplateStore(Protocol):
    """Repository for shared rule templates."""

    async def save_template(
        self,
        *,
        name: str,
        content: str,
        description: str | None = None,
        category: str | None = None,
        is_public: bool = True,
    ) -> TemplateRecord:
        """Insert a template, or refresh the one with the same name."""
        ...

    async def get_template(self, template_id: UUID) -> TemplateRecord | None:
        """Get template by ID."""
        ...

    async def get_template_by_name(self, name: str) -> TemplateRecord | None:
        """Get template by its unique name."""
        ...

    async def list_public_templates(self, category: str | None = None) -> list[TemplateRecord]:
        """List public templates, newest first, optionally in one category."""
        ...


@dataclass
class RetryAfter:
    """Rate limit retry-after information."""

    seconds: int


class RateLimiter(Protocol):
    """Rate limiter interface."""

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        ...
