"""Namespaced vector index gateway.

Every query is scoped to a single namespace, so one user's chunks never
surface in another user's retrieval.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.config import settings
from backend.app.db.engine import get_async_engine
from backend.app.db.models import VectorRecord
from backend.app.errors import RemoteServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VectorMatch:
    """Query hit with cosine similarity score."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


def namespace_for_user(user_id: UUID | str) -> str:
    """Derive the per-user partition key."""
    return f"user_{user_id}"


class VectorIndex(Protocol):
    """Protocol for vector index implementations."""

    async def upsert(
        self, namespace: str, id: str, vector: list[float], metadata: dict[str, Any]
    ) -> None:
        """Insert or replace a record.

        Raises:
            RemoteServiceError: If the backend call fails
        """
        ...

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return up to top_k matches by descending similarity, ties by ascending id.

        Raises:
            RemoteServiceError: If the backend call fails
        """
        ...

    async def delete(self, namespace: str, ids: list[str]) -> None:
        """Delete records by id. Unknown ids are ignored.

        Raises:
            RemoteServiceError: If the backend call fails
        """
        ...


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


def _matches_filter(metadata: dict[str, Any], metadata_filter: dict[str, Any] | None) -> bool:
    if not metadata_filter:
        return True
    return all(metadata.get(key) == value for key, value in metadata_filter.items())


class InMemoryVectorIndex:
    """In-memory implementation of VectorIndex."""

    def __init__(self) -> None:
        self._namespaces: dict[str, dict[str, tuple[list[float], dict[str, Any]]]] = {}

    async def upsert(
        self, namespace: str, id: str, vector: list[float], metadata: dict[str, Any]
    ) -> None:
        """Insert or replace a record."""
        self._namespaces.setdefault(namespace, {})[id] = (list(vector), dict(metadata))

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Brute-force cosine search within one namespace."""
        if top_k <= 0:
            return []

        records = self._namespaces.get(namespace, {})
        matches = [
            VectorMatch(id=record_id, score=_cosine(vector, stored), metadata=dict(metadata))
            for record_id, (stored, metadata) in records.items()
            if _matches_filter(metadata, metadata_filter)
        ]
        matches.sort(key=lambda m: (-m.score, m.id))
        return matches[:top_k]

    async def delete(self, namespace: str, ids: list[str]) -> None:
        """Delete records by id."""
        records = self._namespaces.get(namespace, {})
        for record_id in ids:
            records.pop(record_id, None)


class PgVectorIndex:
    """PostgreSQL + pgvector implementation of VectorIndex."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def upsert(
        self, namespace: str, id: str, vector: list[float], metadata: dict[str, Any]
    ) -> None:
        """Insert or replace a record."""
        stmt = insert(VectorRecord).values(
            namespace=namespace,
            record_id=id,
            embedding=vector,
            metadata_=metadata,
            updated_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VectorRecord.namespace, VectorRecord.record_id],
            set_={
                "embedding": stmt.excluded.embedding,
                "metadata_": stmt.excluded.metadata_,
                "updated_at": stmt.excluded.updated_at,
            },
        )

        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise RemoteServiceError("vector_index", type(e).__name__) from e

    async def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Cosine search within one namespace."""
        if top_k <= 0:
            return []

        distance = VectorRecord.embedding.cosine_distance(vector)
        stmt = select(VectorRecord.record_id, VectorRecord.metadata_, distance.label("distance"))
        stmt = stmt.where(VectorRecord.namespace == namespace)
        # Filter values compare as text; callers filter on string fields
        for key, value in (metadata_filter or {}).items():
            stmt = stmt.where(VectorRecord.metadata_[key].as_string() == str(value))
        stmt = stmt.order_by(distance, VectorRecord.record_id).limit(top_k)

        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                rows = result.all()
        except SQLAlchemyError as e:
            raise RemoteServiceError("vector_index", type(e).__name__) from e

        return [
            VectorMatch(id=record_id, score=1.0 - float(dist), metadata=dict(metadata or {}))
            for record_id, metadata, dist in rows
        ]

    async def delete(self, namespace: str, ids: list[str]) -> None:
        """Delete records by id."""
        if not ids:
            return

        stmt = delete(VectorRecord).where(
            VectorRecord.namespace == namespace, VectorRecord.record_id.in_(ids)
        )
        try:
            async with self._engine.begin() as conn:
                await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise RemoteServiceError("vector_index", type(e).__name__) from e


_vector_index: VectorIndex | None = None


def get_vector_index() -> VectorIndex:
    """Get process-wide vector index.

    Returns:
        PgVectorIndex when vector_backend is "pgvector", InMemoryVectorIndex otherwise
    """
    global _vector_index
    if _vector_index is None:
        if settings.vector_backend == "pgvector":
            logger.info("Using pgvector index")
            _vector_index = PgVectorIndex(get_async_engine())
        else:
            logger.warning("Using in-memory vector index; contents are lost on restart")
            _vector_index = InMemoryVectorIndex()
    return _vector_index
