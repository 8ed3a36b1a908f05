"""SQL implementations of repository interfaces."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.context import RequestContext
from backend.app.db.models import Repository, Rule, RuleTemplate, User
from backend.app.db.queries import select_repositories, select_rules
from backend.app.db.repositories import RepositoryRecord, RuleRecord, TemplateRecord, UserRecord
from backend.app.errors import StaleVersionError
from backend.app.models.repositories import GitHubRepo


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        user_id=user.user_id,
        external_id=user.external_id,
        mcp_token_id=user.mcp_token_id,
        mcp_token_hash=user.mcp_token_hash,
        mcp_token_created_at=user.mcp_token_created_at,
    )


def _rule_record(rule: Rule) -> RuleRecord:
    return RuleRecord(
        rule_id=rule.rule_id,
        user_id=rule.user_id,
        repository_id=rule.repository_id,
        name=rule.name,
        content=rule.content,
        version=rule.version,
        is_active=rule.is_active,
        parent_rule_id=rule.parent_rule_id,
        created_at=rule.created_at,
    )


def _template_record(template: RuleTemplate) -> TemplateRecord:
    return TemplateRecord(
        template_id=template.template_id,
        name=template.name,
        description=template.description,
        content=template.content,
        category=template.category,
        is_public=template.is_public,
        created_at=template.created_at,
    )


def _repository_record(repo: Repository) -> RepositoryRecord:
    return RepositoryRecord(
        repository_id=repo.repository_id,
        user_id=repo.user_id,
        github_id=repo.github_id,
        name=repo.name,
        full_name=repo.full_name,
        owner=repo.owner,
        description=repo.description,
        language=repo.language,
        stars=repo.stars,
        is_private=repo.is_private,
        html_url=repo.html_url,
        is_active=repo.is_active,
        created_at=repo.created_at,
        updated_at=repo.updated_at,
    )


class SqlUserRepository:
    """SQL implementation of UserRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_or_create(self, external_id: str) -> UserRecord:
        """Get or create user by external id."""
        existing = await self.get_by_external_id(external_id)
        if existing is not None:
            return existing

        user = User(user_id=uuid.uuid4(), external_id=external_id)
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError:
            # Concurrent first request created the row
            await self._session.rollback()
            existing = await self.get_by_external_id(external_id)
            if existing is None:
                raise
            return existing

        return _user_record(user)

    async def get_by_external_id(self, external_id: str) -> UserRecord | None:
        """Get user by external id."""
        result = await self._session.execute(select(User).where(User.external_id == external_id))
        user = result.scalar_one_or_none()
        return _user_record(user) if user is not None else None

    async def get_by_token_id(self, token_id: str) -> UserRecord | None:
        """Get user by protocol token id."""
        result = await self._session.execute(select(User).where(User.mcp_token_id == token_id))
        user = result.scalar_one_or_none()
        return _user_record(user) if user is not None else None

    async def set_token(
        self,
        user_id: uuid.UUID,
        *,
        token_id: str | None,
        token_hash: str | None,
        created_at: datetime | None,
    ) -> None:
        """Store or clear the user's protocol token."""
        await self._session.execute(
            update(User)
            .where(User.user_id == user_id)
            .values(
                mcp_token_id=token_id,
                mcp_token_hash=token_hash,
                mcp_token_created_at=created_at,
            )
        )
        await self._session.commit()


class SqlRuleRepository:
    """SQL implementation of RuleRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        rule = Rule(
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

        self._session.add(rule)
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            if parent_rule_id is not None:
                raise StaleVersionError(
                    f"Rule {parent_rule_id} already has a newer version"
                ) from e
            raise

        return _rule_record(rule)

    async def get_rule(self, rule_id: uuid.UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get rule by ID."""
        result = await self._session.execute(select_rules(ctx).where(Rule.rule_id == rule_id))
        rule = result.scalar_one_or_none()
        return _rule_record(rule) if rule is not None else None

    async def get_successor(self, rule_id: uuid.UUID, ctx: RequestContext) -> RuleRecord | None:
        """Get the version derived from rule_id."""
        result = await self._session.execute(
            select_rules(ctx).where(Rule.parent_rule_id == rule_id)
        )
        rule = result.scalar_one_or_none()
        return _rule_record(rule) if rule is not None else None

    async def list_rules(
        self, ctx: RequestContext, repository_id: uuid.UUID | None = None
    ) -> list[RuleRecord]:
        """List rules newest first."""
        stmt = select_rules(ctx)
        if repository_id is not None:
            stmt = stmt.where(Rule.repository_id == repository_id)
        stmt = stmt.order_by(Rule.created_at.desc(), Rule.version.desc())

        result = await self._session.execute(stmt)
        return [_rule_record(r) for r in result.scalars().all()]

    async def get_rules_by_ids(
        self, rule_ids: list[uuid.UUID], ctx: RequestContext
    ) -> list[RuleRecord]:
        """Get owned rules by IDs."""
        if not rule_ids:
            return []
        result = await self._session.execute(select_rules(ctx).where(Rule.rule_id.in_(rule_ids)))
        return [_rule_record(r) for r in result.scalars().all()]

    async def search_rules_text(
        self,
        ctx: RequestContext,
        query: str,
        repository_id: uuid.UUID | None = None,
        limit: int = 5,
    ) -> list[RuleRecord]:
        """Case-insensitive substring search over name and content."""
        pattern = f"%{query.lower()}%"
        stmt = select_rules(ctx).where(
            or_(func.lower(Rule.name).like(pattern), func.lower(Rule.content).like(pattern))
        )
        if repository_id is not None:
            stmt = stmt.where(Rule.repository_id == repository_id)
        stmt = stmt.order_by(Rule.created_at.desc()).limit(limit)

        result = await self._session.execute(stmt)
        return [_rule_record(r) for r in result.scalars().all()]

    async def delete_rule(self, rule_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete a rule version."""
        result = await self._session.execute(select_rules(ctx).where(Rule.rule_id == rule_id))
        rule = result.scalar_one_or_none()
        if rule is None:
            return False

        # Explicit for backends that do not enforce ON DELETE SET NULL (SQLite)
        await self._session.execute(
            update(Rule).where(Rule.parent_rule_id == rule_id).values(parent_rule_id=None)
        )
        await self._session.delete(rule)
        await self._session.commit()
        return True


class SqlRepositoryStore:
    """SQL implementation of RepositoryStore."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_repository(self, ctx: RequestContext, repo: GitHubRepo) -> RepositoryRecord:
        """Insert or refresh the caller's copy of a repository by github_id."""
        result = await self._session.execute(
            select_repositories(ctx).where(Repository.github_id == repo.id)
        )
        existing = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)

        if existing is None:
            existing = Repository(
                repository_id=uuid.uuid4(),
                user_id=ctx.user_id,
                github_id=repo.id,
                created_at=now,
            )
            self._session.add(existing)

        existing.name = repo.name
        existing.full_name = repo.full_name
        existing.owner = repo.owner.login
        existing.description = repo.description
        existing.language = repo.language
        existing.stars = repo.stargazers_count
        existing.is_private = repo.private
        existing.html_url = repo.html_url
        existing.is_active = True
        existing.updated_at = now

        await self._session.commit()
        return _repository_record(existing)

    async def get_repository(
        self, ctx: RequestContext, repository_id: uuid.UUID
    ) -> RepositoryRecord | None:
        """Get repository by ID."""
        result = await self._session.execute(
            select_repositories(ctx).where(Repository.repository_id == repository_id)
        )
        repo = result.scalar_one_or_none()
        return _repository_record(repo) if repo is not None else None

    async def get_active_repository(self, ctx: RequestContext) -> RepositoryRecord | None:
        """Most recently updated active repository."""
        result = await self._session.execute(
            select_repositories(ctx)
            .where(Repository.is_active.is_(True))
            .order_by(Repository.updated_at.desc())
            .limit(1)
        )
        repo = result.scalar_one_or_none()
        return _repository_record(repo) if repo is not None else None

    async def deactivate_others(self, ctx: RequestContext, keep_ids: list[uuid.UUID]) -> None:
        """Deactivate repositories not in keep_ids."""
        stmt = update(Repository).where(Repository.user_id == ctx.user_id)
        if keep_ids:
            stmt = stmt.where(Repository.repository_id.not_in(keep_ids))
        await self._session.execute(stmt.values(is_active=False))
        await self._session.commit()

    async def list_repositories(self, ctx: RequestContext) -> list[RepositoryRecord]:
        """List repositories, active first."""
        result = await self._session.execute(
            select_repositories(ctx).order_by(
                Repository.is_active.desc(), Repository.updated_at.desc()
            )
        )
        return [_repository_record(r) for r in result.scalars().all()]


class SqlTemplateStore:
    """SQL implementation of TemplateStore."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        result = await self._session.execute(select(RuleTemplate).where(RuleTemplate.name == name))
        template = result.scalar_one_or_none()

        if template is None:
            template = RuleTemplate(
                template_id=uuid.uuid4(),
                name=name,
                created_at=datetime.now(timezone.utc),
            )
            self._session.add(template)

        template.content = content
        template.description = description
        template.category = category
        template.is_public = is_public

        await self._session.commit()
        return _template_record(template)

    async def get_template(self, template_id: uuid.UUID) -> TemplateRecord | None:
        """Get template by ID."""
        result = await self._session.execute(
            select(RuleTemplate).where(RuleTemplate.template_id == template_id)
        )
        template = result.scalar_one_or_none()
        return _template_record(template) if template is not None else None

    async def get_template_by_name(self, name: str) -> TemplateRecord | None:
        """Get template by name."""
        result = await self._session.execute(select(RuleTemplate).where(RuleTemplate.name == name))
        template = result.scalar_one_or_none()
        return _template_record(template) if template is not None else None

    async def list_public_templates(self, category: str | None = None) -> list[TemplateRecord]:
        """List public templates newest first."""
        stmt = select(RuleTemplate).where(RuleTemplate.is_public.is_(True))
        if category is not None:
            stmt = stmt.where(RuleTemplate.category == category)
        stmt = stmt.order_by(RuleTemplate.created_at.desc(), RuleTemplate.name)

        result = await self._session.execute(stmt)
        return [_template_record(t) for t in result.scalars().all()]
