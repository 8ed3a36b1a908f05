"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from backend.app.config import settings


def utcnow() -> datetime:
    """Timezone-aware current time; microsecond resolution keeps ordering stable."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class User(Base):
    """User table - one row per identity-provider subject."""

    __tablename__ = "user"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    external_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    mcp_token_id: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    mcp_token_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    mcp_token_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    repositories: Mapped[list["Repository"]] = relationship("Repository", back_populates="user")
    rules: Mapped[list["Rule"]] = relationship("Rule", back_populates="user")


class Repository(Base):
    """Repository table - GitHub repositories selected by a user.

    Each user keeps their own row per GitHub repository.
    """

    __tablename__ = "repository"
    __table_args__ = (
        UniqueConstraint("user_id", "github_id", name="uq_repository_user_github"),
        Index("idx_repository_user", "user_id", "is_active"),
    )

    repository_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("user.user_id"), nullable=False)
    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    language: Mapped[str | None] = mapped_column(Text, nullable=True)
    stars: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    html_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="repositories")


class Rule(Base):
    """Rule table - append-only versioned coding rules.

    A new version is a new row whose parent_rule_id points at the row it
    replaces. The unique constraint on parent_rule_id keeps each history a
    single linear chain.
    """

    __tablename__ = "rule"
    __table_args__ = (
        UniqueConstraint("parent_rule_id", name="uq_rule_parent"),
        Index("idx_rule_user_created", "user_id", "created_at"),
    )

    rule_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("user.user_id"), nullable=False)
    repository_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("repository.repository_id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_rule_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("rule.rule_id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="rules")


class VectorRecord(Base):
    """Vector record table - pgvector embeddings partitioned by namespace."""

    __tablename__ = "vector_record"
    __table_args__ = (Index("idx_vector_namespace", "namespace"),)

    namespace: Mapped[str] = mapped_column(Text, primary_key=True)
    record_id: Mapped[str] = mapped_column(Text, primary_key=True)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.embedding_dim), nullable=False
    )
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class RuleTemplate(Base):
    """Rule template table - shared starting points for new rules, unique by name."""

    __tablename__ = "rule_template"
    __table_args__ = (
        UniqueConstraint("name", name="uq_rule_template_name"),
        Index("idx_rule_template_category", "category", "is_public"),
    )

    template_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
