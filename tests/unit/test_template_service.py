"""Unit tests for rule templates and the default seed."""

import uuid

import pytest

from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryTemplateStore
from backend.app.db.seed_templates import DEFAULT_TEMPLATES, seed_templates
from backend.app.errors import NotFoundError, ValidationError
from backend.app.services.rules import RuleService
from backend.app.services.templates import TemplateService


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext(user_id=uuid.uuid4())


@pytest.fixture
def template_service(
    template_store: InMemoryTemplateStore, rule_service: RuleService
) -> TemplateService:
    return TemplateService(template_store, rule_service)


@pytest.mark.asyncio
async def test_create_rejects_blank_and_duplicate_names(template_service: TemplateService) -> None:
    """Names must be non-blank and unique."""
    await template_service.create("Testing", "Write tests")

    with pytest.raises(ValidationError):
        await template_service.create("  ", "x")
    with pytest.raises(ValidationError):
        await template_service.create("Other", " ")
    with pytest.raises(ValidationError):
        await template_service.create("Testing", "again")


@pytest.mark.asyncio
async def test_list_public_filters_category_and_hides_private(
    template_service: TemplateService,
) -> None:
    """Private templates are never listed; the newest public one comes first."""
    first = await template_service.create("A", "a", category="Backend")
    second = await template_service.create("B", "b", category="Backend")
    await template_service.create("C", "c", category="Testing")
    await template_service.create("D", "d", category="Backend", is_public=False)

    listed = await template_service.list_public("Backend")

    assert [t.template_id for t in listed] == [second.template_id, first.template_id]
    assert len(await template_service.list_public()) == 3


@pytest.mark.asyncio
async def test_apply_creates_rule_version_one(
    template_service: TemplateService, rule_service: RuleService, ctx: RequestContext
) -> None:
    """Applying copies name and content into a new rule owned by the caller."""
    template = await template_service.create("Logging", "Use structured logging")

    rule = await template_service.apply(ctx, template.template_id)

    assert (rule.name, rule.content, rule.version) == ("Logging", "Use structured logging", 1)
    assert [r.rule_id for r in await rule_service.list_rules(ctx)] == [rule.rule_id]


@pytest.mark.asyncio
async def test_apply_unknown_template_or_foreign_repository_is_not_found(
    template_service: TemplateService, ctx: RequestContext
) -> None:
    """Missing templates and repositories the caller does not own are rejected."""
    template = await template_service.create("Logging", "Use structured logging")

    with pytest.raises(NotFoundError):
        await template_service.apply(ctx, uuid.uuid4())
    with pytest.raises(NotFoundError):
        await template_service.apply(ctx, template.template_id, uuid.uuid4())


@pytest.mark.asyncio
async def test_seed_is_idempotent(template_store: InMemoryTemplateStore) -> None:
    """Seeding twice refreshes templates by name instead of duplicating them."""
    first = await seed_templates(template_store)
    second = await seed_templates(template_store)

    assert [r.template_id for r in first] == [r.template_id for r in second]
    listed = await template_store.list_public_templates()
    assert {t.name for t in listed} == {t["name"] for t in DEFAULT_TEMPLATES}
