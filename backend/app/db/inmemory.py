"""In-memory implementations of repository interfaces."""

import itertools
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from backend.app.db.context import RequestContext
from backend.app.db.repositories import (
    RepositoryRecord,
    RetryAfter,
    RuleRecord,
    TemplateRecord,
    UserRecord,
)
from backend.app.errors import StaleVersionError
from backend.app.models.repositories import GitHubRepo


class InMemoryUserRepository:
    """In-memory implementation of UserRepository."""

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, UserRecord] = {}

    async def get_or_create(self, external_id: str) -> UserRecord:
        """Get or create user."""
        existing = await self.get_by_external_id(external_id)
        if existing is not None:
            return existing

        record = UserRecord(
            user_id=uuid.uuid4(),
            external_id=external_id,
            mcp_token_id=None,
            mcp_token_hash=None,
            mcp_token_created_at=None,
        )
        self._users[record.user_id] = record
        return record

    async def get_by_external_id(self, external_id: str) -> UserRecord | None:
        """Get user by external id."""
        for record in self._users.values():
            if record.external_id == external_id:
                return record
        return None

    async def get_by_token_id(self, token_id: str) -> UserRecord | None:
        """Get user by protocol token id."""
        for record in self._users.values():
            if record.mcp_token_id == token_id:
                return record
        return None

    async def set_token(
        self,
        user_id: uuid.UUID,
        *,
        token_id: str | None,
        token_hash: str | None,
        created_at: datetime | None,
    ) -> None:
        """Store or clear the user's protocol token."""
        record = self._users.get(user_id)
        if record is None:
            return

        self._users[user_id] = replace(
            record,
            mcp_token_id=token_id,
            mcp_token_hash=token_hash,
            mcp_token_created_at=created_at,
        )


class InMemoryRuleRepository:
    """In-memory implementation of RuleRepository."""

    def __init__(self) -> None:
        self._rules: dict[uuid.UUID, RuleRecord] = {}
        # Insertion sequence breaks created_at ties deterministically
        self._sequence: dict[uuid.UUID, int] = {}
        self._counter = itertools.count()

    def _owned(self, ctx: RequestContext) -> list[RuleRecord]:
        return [r for r in self._rules.values() if r.user_id == ctx.user_id]

    def _newest_first(self, records: list[RuleRecord]) -> list[RuleRecord]:
        return sorted(
            records,
            key=lambda r: (r.created_at, self._sequence[r.rule_id]),
            reverse=True,
        )

    async def insert_rule(
        self,
        ctx: RequestContext,
        *,
        name: str,
        content: str,
        version: int,
        is_active: bool = True,
        repository_id: uuid.UUID | None = None,
        parent_rule_id: uuid.UUID | None = None,
    ) -> RuleRecord:
        """Insert a new rule version."""
        if parent_rule_id is not None and any(
            r.parent_rule_id == parent_rule_id for r in self._rules.values()
        ):
            raise StaleVersionError(f"Rule {parent_rule_id} already has a newer version")

        record = RuleRecord(
            rule_id=uuid.uuid4(),
            user_id=ctx.user_id,
            repository_id=repository_id,
            name=name,
            content=content,
            version=version,
            is_active=is_active,
            parent_rule_id=parent_rule_id,
            created_at=datetime.now(timezone.utc),
        )
        self._sequence[record.rule_id] = next(self._counter)
        self._rules[record.rule_id] = record
        return record

    async def get_rule(self, rule_id: uuid.UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get rule by ID."""
        record = self._rules.get(rule_id)

        if record is None:
            return None

        # Enforce tenancy
        if record.user_id != ctx.user_id:
            return None

        return record

    async def get_successor(self, rule_id: uuid.UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get the version derived from rule_id."""
        for record in self._owned(ctx):
            if record.parent_rule_id == rule_id:
                return record
        return None

    async def list_rules(
        self, ctx: RequestContext, repository_id: uuid.UUID | None = None
    ) -> list[RuleRecord]:
        """List rules newest first."""
        records = self._owned(ctx)
        if repository_id is not None:
            records = [r for r in records if r.repository_id == repository_id]
        return self._newest_first(records)

    async def get_rules_by_ids(
        self, rule_ids: list[uuid.UUID], ctx: RequestContext
    ) -> list[RuleRecord]:
        """Get owned rules by IDs."""
        wanted = set(rule_ids)
        return [r for r in self._owned(ctx) if r.rule_id in wanted]

    async def search_rules_text(
        self,
        ctx: RequestContext,
        query: str,
        repository_id: uuid.UUID | None = None,
        limit: int = 5,
    ) -> list[RuleRecord]:
        """Substring search over name and content."""
        needle = query.lower()
        matches = [
            r
            for r in await self.list_rules(ctx, repository_id)
            if needle in r.name.lower() or needle in r.content.lower()
        ]
        return matches[:limit]

    async def delete_rule(self, rule_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete a rule version."""
        if await self.get_rule(rule_id, ctx) is None:
            return False

        del self._rules[rule_id]
        del self._sequence[rule_id]

        # Mirror ON DELETE SET NULL
        for other_id, other in list(self._rules.items()):
            if other.parent_rule_id == rule_id:
                self._rules[other_id] = replace(other, parent_rule_id=None)

        return True


class InMemoryRepositoryStore:
    """In-memory implementation of RepositoryStore."""

    def __init__(self) -> None:
        # (user_id, github_id) -> record
        self._repos: dict[tuple[uuid.UUID, int], RepositoryRecord] = {}

    async def upsert_repository(self, ctx: RequestContext, repo: GitHubRepo) -> RepositoryRecord:
        """Insert or refresh one of the caller's repositories."""
        now = datetime.now(timezone.utc)
        key = (ctx.user_id, repo.id)
        existing = self._repos.get(key)

        record = RepositoryRecord(
            repository_id=existing.repository_id if existing else uuid.uuid4(),
            user_id=ctx.user_id,
            github_id=repo.id,
            name=repo.name,
            full_name=repo.full_name,
            owner=repo.owner.login,
            description=repo.description,
            language=repo.language,
            stars=repo.stargazers_count,
            is_private=repo.private,
            html_url=repo.html_url,
            is_active=True,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._repos[key] = record
        return record

    async def get_repository(
        self, ctx: RequestContext, repository_id: uuid.UUID
    ) -> RepositoryRecord | None:
        """Get one of the caller's repositories."""
        for record in self._repos.values():
            if record.repository_id == repository_id and record.user_id == ctx.user_id:
                return record
        return None

    async def get_active_repository(self, ctx: RequestContext) -> RepositoryRecord | None:
        """Most recently updated active repository."""
        active = [r for r in await self.list_repositories(ctx) if r.is_active]
        return active[0] if active else None

    async def deactivate_others(self, ctx: RequestContext, keep_ids: list[uuid.UUID]) -> None:
        """Deactivate repositories not in keep_ids."""
        keep = set(keep_ids)
        for key, record in list(self._repos.items()):
            if record.user_id == ctx.user_id and record.repository_id not in keep:
                self._repos[key] = replace(record, is_active=False)

    async def list_repositories(self, ctx: RequestContext) -> list[RepositoryRecord]:
        """List repositories, active first."""
        records = [r for r in self._repos.values() if r.user_id == ctx.user_id]
        records.sort(key=lambda r: (r.is_active, r.updated_at), reverse=True)
        return records


class InMemoryTemplateStore:
    """In-memory implementation of TemplateStore."""

    def __init__(self) -> None:
        self._templates: dict[str, TemplateRecord] = {}
        self._sequence: dict[uuid.UUID, int] = {}
        self._counter = itertools.count()

    async def save_template(
        self,
        *,
        name: str,
        content: str,
        description: str | None = None,
        category: str | None = None,
        is_public: bool = True,
    ) -> TemplateRecord:
        """Insert or refresh a template by name."""
        existing = self._templates.get(name)
        if existing is not None:
            record = replace(
                existing,
                content=content,
                description=description,
                category=category,
                is_public=is_public,
            )
        else:
            record = TemplateRecord(
                template_id=uuid.uuid4(),
                name=name,
                description=description,
                content=content,
                category=category,
                is_public=is_public,
                created_at=datetime.now(timezone.utc),
            )
            self._sequence[record.template_id] = next(self._counter)

        self._templates[name] = record
        return record

    async def get_template(self, template_id: uuid.UUID) -> TemplateRecord | None:
        """Get template by ID."""
        for record in self._templates.values():
            if record.template_id == template_id:
                return record
        return None

    async def get_template_by_name(self, name: str) -> TemplateRecord | None:
        """Get template by name."""
        return self._templates.get(name)

    async def list_public_templates(self, category: str | None = None) -> list[TemplateRecord]:
        """List public templates newest first."""
        records = [
            r
            for r in self._templates.values()
            if r.is_public and (category is None or r.category == category)
        ]
        return sorted(
            records,
            key=lambda r: (r.created_at, self._sequence[r.template_id]),
            reverse=True,
        )


class InMemoryRateLimiter:
    """In-memory implementation of RateLimiter using fixed window."""

    def __init__(self, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._windows: dict[str, tuple[datetime, int]] = {}

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available."""
        # Get or create window
        if key in self._windows:
            window_start, count = self._windows[key]

            # Check if window expired
            if now >= window_start + timedelta(seconds=self._window_seconds):
                # New window
                self._windows[key] = (now, 1)
                return None

            # Within same window
            if count >= self._max_requests:
                # Over quota
                seconds_remaining = int(
                    (window_start + timedelta(seconds=self._window_seconds) - now).total_seconds()
                )
                return RetryAfter(seconds=max(1, seconds_remaining))

            # Increment count
            self._windows[key] = (window_start, count + 1)
            return None
        else:
            # First request
            self._windows[key] = (now, 1)
            return None
