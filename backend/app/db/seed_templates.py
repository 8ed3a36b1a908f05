"""Seed the shared rule templates."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.engine import get_async_engine
from backend.app.db.repositories import TemplateRecord, TemplateStore
from backend.app.db.sql_repositories import SqlTemplateStore

DEFAULT_TEMPLATES: list[dict[str, str]] = [
    {
        "name": "Backend API Design Patterns",
        "description": "Conventions for robust HTTP APIs",
        "category": "Backend",
        "content": """# Backend API Design Patterns

## API Structure
- Use consistent RESTful conventions
- Version public APIs
- Return precise HTTP status codes
- Paginate list endpoints

## Error Handling
- Use one error response format everywhere
- Log failures server-side without leaking internals
- Validate every input at the boundary

## Performance
- Pool database connections
- Use transactions for multi-step writes""",
    },
    {
        "name": "TypeScript Advanced Patterns",
        "description": "Type-safe TypeScript for large codebases",
        "category": "TypeScript",
        "content": """# TypeScript Advanced Patterns

## Types
- Enable strict mode
- Prefer unknown over any
- Model variants with discriminated unions
- Derive types from runtime schemas instead of duplicating them

## Code Organization
- Keep modules small and single-purpose
- Export types next to the code that owns them""",
    },
    {
        "name": "Testing Strategies",
        "description": "A balanced approach to automated tests",
        "category": "Testing",
        "content": """# Testing Strategies

## Unit Tests
- Test behavior, not implementation details
- Keep tests fast and deterministic
- One reason to fail per test

## Integration Tests
- Exercise real persistence where it matters
- Replace remote services with in-process fakes

## Maintenance
- Delete flaky tests or fix them immediately""",
    },
    {
        "name": "Code Quality & Maintainability",
        "description": "Habits that keep a codebase easy to change",
        "category": "Best Practices",
        "content": """# Code Quality & Maintainability

## Code Organization
- Use meaningful names
- Keep functions small and focused
- Separate concerns

## Documentation
- Comment complex logic
- Document public APIs

## Refactoring
- Remove dead code
- Keep test coverage while refactoring""",
    },
]


async def seed_templates(store: TemplateStore) -> list[TemplateRecord]:
    """Insert or refresh every default template.

    This function is idempotent - templates are matched by name, so running it
    again updates their text instead of duplicating them.
    """
    return [await store.save_template(**template) for template in DEFAULT_TEMPLATES]


async def seed_default_templates() -> None:
    """Seed the default templates into the configured database."""
    async with AsyncSession(get_async_engine(), expire_on_commit=False) as session:
        records = await seed_templates(SqlTemplateStore(session))

    for record in records:
        print(f"Seeded template: {record.name}")
    print(f"✅ Seeded {len(records)} templates")


if __name__ == "__main__":
    asyncio.run(seed_default_templates())
