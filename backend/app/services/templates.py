"""Rule template service - shared starting points that users copy into rules."""

import logging
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.db.repositories import RuleRecord, TemplateRecord, TemplateStore
from backend.app.errors import NotFoundError, ValidationError
from backend.app.services.rules import RuleService

logger = logging.getLogger(__name__)


class TemplateService:
    """Create, browse and apply rule templates."""

    def __init__(self, templates: TemplateStore, rule_service: RuleService) -> None:
        self._templates = templates
        self._rule_service = rule_service

    async def create(
        self,
        name: str,
        content: str,
        description: str | None = None,
        category: str | None = None,
        is_public: bool = True,
    ) -> TemplateRecord:
        """Add a new template.

        Raises:
            ValidationError: If name or content is empty, or the name is taken
        """
        if not name.strip():
            raise ValidationError("Template name must not be empty")
        if not content.strip():
            raise ValidationError("Template content must not be empty")
        if await self._templates.get_template_by_name(name) is not None:
            raise ValidationError(f"Template {name!r} already exists")

        record = await self._templates.save_template(
            name=name,
            content=content,
            description=description,
            category=category,
            is_public=is_public,
        )
        logger.info(f"Created template {record.template_id} ({name})")
        return record

    async def list_public(self, category: str | None = None) -> list[TemplateRecord]:
        return await self._templates.list_public_templates(category)

    async def get(self, template_id: UUID) -> TemplateRecord:
        """Get one template.

        Raises:
            NotFoundError: If the template does not exist
        """
        record = await self._templates.get_template(template_id)
        if record is None:
            raise NotFoundError(f"Template {template_id} not found")
        return record

    async def apply(
        self,
        ctx: RequestContext,
        template_id: UUID,
        repository_id: UUID | None = None,
    ) -> RuleRecord:
        """Copy a template into version 1 of a new rule owned by the caller.

        Raises:
            NotFoundError: If the template or the repository does not exist
        """
        template = await self.get(template_id)
        return await self._rule_service.create(ctx, template.name, template.content, repository_id)
