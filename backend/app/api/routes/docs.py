"""Documentation endpoints - POST /docs/index."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.app.db.context import RequestContext
from backend.app.errors import ValidationError
from backend.app.middleware.ratelimit import enforce_rate_limit
from backend.app.models.docs import DocumentFile, IndexingResult
from backend.app.rag.embeddings import EmbeddingClient, get_embedding_client
from backend.app.rag.indexer import index_documentation
from backend.app.rag.vector_index import VectorIndex, get_vector_index

router = APIRouter(prefix="/docs", tags=["docs"])


class IndexDocsRequest(BaseModel):
    """Request body for POST /docs/index."""

    documents: list[DocumentFile] = Field(..., max_length=500)
    repository_ids: list[UUID] = Field(
        default_factory=list, description="Repositories the documents belong to"
    )


@router.post("/index", response_model=IndexingResult)
async def index_docs(
    request: IndexDocsRequest,
    ctx: Annotated[RequestContext, Depends(enforce_rate_limit)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
    vector_index: Annotated[VectorIndex, Depends(get_vector_index)],
) -> IndexingResult:
    """Chunk, embed and index caller-supplied documentation.

    Args:
        request: Documents and their repository associations
        ctx: Request context
        embedding_client: Embedding client
        vector_index: Vector index

    Returns:
        Indexing tally with progress logs
    """
    if not request.documents:
        raise ValidationError("At least one document is required")

    return await index_documentation(
        request.documents,
        ctx.user_id,
        [str(r) for r in request.repository_ids],
        embedding_client=embedding_client,
        vector_index=vector_index,
    )
