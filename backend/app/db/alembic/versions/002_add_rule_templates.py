"""Add rule templates

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Adds the shared rule_template table. Templates are global and unique by name
so the seed script can refresh them in place.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create rule_template table."""
    op.create_table(
        "rule_template",
        sa.Column("template_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("name", name="uq_rule_template_name"),
    )
    op.create_index("idx_rule_template_category", "rule_template", ["category", "is_public"])


def downgrade() -> None:
    """Drop rule_template table."""
    op.drop_index("idx_rule_template_category", table_name="rule_template")
    op.drop_table("rule_template")
