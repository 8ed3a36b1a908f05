"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates user, repository, rule and vector_record tables and enables the
pgvector extension.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

from backend.app.config import get_settings

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "user",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("mcp_token_id", sa.Text(), nullable=True),
        sa.Column("mcp_token_hash", sa.Text(), nullable=True),
        sa.Column("mcp_token_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("external_id", name="uq_user_external_id"),
        sa.UniqueConstraint("mcp_token_id", name="uq_user_mcp_token_id"),
    )

    op.create_table(
        "repository",
        sa.Column("repository_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("github_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("language", sa.Text(), nullable=True),
        sa.Column("stars", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("is_private", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("html_url", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"]),
        sa.UniqueConstraint("user_id", "github_id", name="uq_repository_user_github"),
    )
    op.create_index("idx_repository_user", "repository", ["user_id", "is_active"])

    op.create_table(
        "rule",
        sa.Column("rule_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("repository_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("parent_rule_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"]),
        sa.ForeignKeyConstraint(["repository_id"], ["repository.repository_id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["parent_rule_id"], ["rule.rule_id"], ondelete="SET NULL"),
        sa.UniqueConstraint("parent_rule_id", name="uq_rule_parent"),
    )
    op.create_index("idx_rule_user_created", "rule", ["user_id", "created_at"])

    op.create_table(
        "vector_record",
        sa.Column("namespace", sa.Text(), nullable=False),
        sa.Column("record_id", sa.Text(), nullable=False),
        sa.Column("embedding", Vector(get_settings().embedding_dim), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("namespace", "record_id"),
    )
    op.create_index("idx_vector_namespace", "vector_record", ["namespace"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_vector_namespace", table_name="vector_record")
    op.drop_table("vector_record")
    op.drop_index("idx_rule_user_created", table_name="rule")
    op.drop_table("rule")
    op.drop_index("idx_repository_user", table_name="repository")
    op.drop_table("repository")
    op.drop_table("user")
