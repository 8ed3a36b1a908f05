"""Tenancy-safe query helpers."""

from sqlalchemy import Select, select

from backend.app.db.context import RequestContext
from backend.app.db.models import Repository, Rule


def select_rules(ctx: RequestContext) -> Select[tuple[Rule]]:
    """Select from rule table with user scoping enforced.

    Args:
        ctx: Request context with user_id

    Returns:
        Select statement filtered by user_id
    """
    return select(Rule).where(Rule.user_id == ctx.user_id)


def select_repositories(ctx: RequestContext) -> Select[tuple[Repository]]:
    """Select from repository table with user scoping enforced.

    Args:
        ctx: Request context with user_id

    Returns:
        Select statement filtered by user_id
    """
    return select(Repository).where(Repository.user_id == ctx.user_id)
