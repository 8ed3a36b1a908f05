"""Rule versioning service.

Rules are append-only: every update inserts a new version that points back
at the version it was derived from, so the history of a rule is a single
linear chain of records.
"""

import logging
from uuid import UUID

from backend.app.db.context import RequestContext
from backend.app.db.repositories import RepositoryStore, RuleRecord, RuleRepository
from backend.app.errors import NotFoundError, RemoteServiceError, StaleVersionError, ValidationError
from backend.app.models.rules import RulePatch
from backend.app.rag.embeddings import EmbeddingClient
from backend.app.rag.vector_index import VectorIndex, namespace_for_user
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

RULE_TYPE = "rule"


def rule_record_id(rule_id: UUID) -> str:
    """Vector index id of a rule version."""
    return f"rule_{rule_id}"


class RuleService:
    """Create, version, search and delete rules for the calling user."""

    def __init__(
        self,
        rules: RuleRepository,
        repositories: RepositoryStore,
        embedding_client: EmbeddingClient,
        vector_index: VectorIndex,
    ) -> None:
        self._rules = rules
        self._repositories = repositories
        self._embedding_client = embedding_client
        self._vector_index = vector_index

    async def create(
        self,
        ctx: RequestContext,
        name: str,
        content: str,
        repository_id: UUID | None = None,
    ) -> RuleRecord:
        """Insert version 1 of a new rule.

        Raises:
            ValidationError: If name or content is empty
            NotFoundError: If repository_id is not one of the caller's repositories
        """
        if not name.strip():
            raise ValidationError("Rule name must not be empty")
        if not content.strip():
            raise ValidationError("Rule content must not be empty")
        if repository_id is not None:
            if await self._repositories.get_repository(ctx, repository_id) is None:
                raise NotFoundError(f"Repository {repository_id} not found")

        record = await self._rules.insert_rule(
            ctx,
            name=name,
            content=content,
            version=1,
            repository_id=repository_id,
        )
        logger.info(f"Created rule {record.rule_id} for user {ctx.user_id}")

        await self._index_rule(ctx, record)
        return record

    async def update(self, ctx: RequestContext, rule_id: UUID, patch: RulePatch) -> RuleRecord:
        """Insert the next version of a rule; the previous record is left untouched.

        Fields omitted from the patch carry over from the previous version.

        Raises:
            NotFoundError: If the rule does not exist or belongs to another user
            StaleVersionError: If the rule already has a newer version
            ValidationError: If a provided name or content is empty
        """
        previous = await self._rules.get_rule(rule_id, ctx)
        if previous is None:
            raise NotFoundError(f"Rule {rule_id} not found")

        if patch.name is not None and not patch.name.strip():
            raise ValidationError("Rule name must not be empty")
        if patch.content is not None and not patch.content.strip():
            raise ValidationError("Rule content must not be empty")

        if await self._rules.get_successor(rule_id, ctx) is not None:
            raise StaleVersionError(f"Rule {rule_id} already has a newer version")

        record = await self._rules.insert_rule(
            ctx,
            name=patch.name if patch.name is not None else previous.name,
            content=patch.content if patch.content is not None else previous.content,
            version=previous.version + 1,
            is_active=patch.is_active if patch.is_active is not None else previous.is_active,
            repository_id=previous.repository_id,
            parent_rule_id=previous.rule_id,
        )
        logger.info(
            f"Rule {previous.rule_id} v{previous.version} -> {record.rule_id} v{record.version}"
        )

        await self._index_rule(ctx, record)
        return record

    async def get(self, ctx: RequestContext, rule_id: UUID) -> RuleRecord:
        """Get one rule version.

        Raises:
            NotFoundError: If the rule does not exist or belongs to another user
        """
        record = await self._rules.get_rule(rule_id, ctx)
        if record is None:
            raise NotFoundError(f"Rule {rule_id} not found")
        return record

    async def list_rules(
        self, ctx: RequestContext, repository_id: UUID | None = None
    ) -> list[RuleRecord]:
        """List every rule version, newest-created first."""
        return await self._rules.list_rules(ctx, repository_id)

    async def history(self, ctx: RequestContext, rule_id: UUID) -> list[RuleRecord]:
        """Walk parent links from rule_id back to version 1.

        Returns:
            Records from rule_id (newest) to the root (oldest)

        Raises:
            NotFoundError: If the starting rule does not exist
        """
        chain = [await self.get(ctx, rule_id)]
        seen = {rule_id}

        while chain[-1].parent_rule_id is not None:
            parent_id = chain[-1].parent_rule_id
            if parent_id in seen:
                break
            parent = await self._rules.get_rule(parent_id, ctx)
            if parent is None:
                break
            chain.append(parent)
            seen.add(parent_id)

        return chain

    async def delete(self, ctx: RequestContext, rule_id: UUID) -> None:
        """Delete a rule version and, best effort, its vector entry.

        Raises:
            NotFoundError: If the rule does not exist or belongs to another user
        """
        if not await self._rules.delete_rule(rule_id, ctx):
            raise NotFoundError(f"Rule {rule_id} not found")

        try:
            await self._vector_index.delete(
                namespace_for_user(ctx.user_id), [rule_record_id(rule_id)]
            )
        except RemoteServiceError as e:
            logger.warning(f"Failed to remove rule {rule_id} from vector index: {e}")

    async def search(
        self,
        ctx: RequestContext,
        query: str,
        repository_id: UUID | None = None,
        top_k: int = 5,
    ) -> list[tuple[RuleRecord, float | None]]:
        """Semantic search over the user's rules with substring fallback.

        The substring path runs when the vector path fails or finds nothing.

        Returns:
            (record, score) pairs; score is None for substring matches

        Raises:
            ValidationError: If query is empty or top_k is not positive
        """
        if not query.strip():
            raise ValidationError("Search query must not be empty")
        if top_k < 1:
            raise ValidationError("top_k must be at least 1")

        try:
            hits = await self._vector_search(ctx, query, repository_id, top_k)
        except RemoteServiceError as e:
            logger.warning(f"Vector rule search failed, using text search: {e}")
            hits = []

        if hits:
            return hits

        records = await self._rules.search_rules_text(ctx, query, repository_id, top_k)
        return [(record, None) for record in records]

    async def _vector_search(
        self,
        ctx: RequestContext,
        query: str,
        repository_id: UUID | None,
        top_k: int,
    ) -> list[tuple[RuleRecord, float | None]]:
        vector = await self._embedding_client.embed(query)

        metadata_filter: dict[str, object] = {"type": RULE_TYPE, "user_id": str(ctx.user_id)}
        if repository_id is not None:
            metadata_filter["repository_id"] = str(repository_id)

        matches = await self._vector_index.query(
            namespace_for_user(ctx.user_id), vector, top_k, metadata_filter
        )

        scores: dict[UUID, float] = {}
        for match in matches:
            raw_id = match.metadata.get("rule_id")
            try:
                scores[UUID(str(raw_id))] = match.score
            except ValueError:
                logger.warning(f"Skipping vector match {match.id} with malformed rule_id")

        records = await self._rules.get_rules_by_ids(list(scores), ctx)
        # Entries whose rule was deleted out from under the index drop out here
        records.sort(key=lambda r: (-scores[r.rule_id], str(r.rule_id)))
        return [(record, scores[record.rule_id]) for record in records]

    async def _index_rule(self, ctx: RequestContext, record: RuleRecord) -> None:
        """Embed and upsert a rule version; failures are logged, never raised."""
        metadata: dict[str, object] = {
            "type": RULE_TYPE,
            "user_id": str(ctx.user_id),
            "rule_id": str(record.rule_id),
            "name": record.name,
            "repository_id": str(record.repository_id) if record.repository_id else None,
            "version": record.version,
        }

        try:
            vector = await self._embedding_client.embed(f"{record.name}\n{record.content}")
            await self._vector_index.upsert(
                namespace_for_user(ctx.user_id), rule_record_id(record.rule_id), vector, metadata
            )
        except RemoteServiceError as e:
            metrics.inc_upsert(RULE_TYPE, "error")
            logger.warning(f"Failed to index rule {record.rule_id}: {e}")
            return

        metrics.inc_upsert(RULE_TYPE, "success")
