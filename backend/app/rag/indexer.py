"""Bulk documentation indexer - chunk, embed and upsert into the user's namespace."""

import asyncio
import base64
import logging
import time
from uuid import UUID

from backend.app.config import settings
from backend.app.models.docs import DocumentFile, IndexingResult, IndexLogEntry
from backend.app.rag.chunker import chunk_text
from backend.app.rag.embeddings import EmbeddingClient, get_embedding_client
from backend.app.rag.vector_index import VectorIndex, get_vector_index, namespace_for_user
from backend.app.utils.logging import StructuredIndexLogger
from backend.app.utils.metrics import metrics

logger = logging.getLogger(__name__)

DOCUMENTATION_TYPE = "documentation"

_index_logger = StructuredIndexLogger()


def chunk_record_id(user_id: UUID | str, path: str, chunk_index: int) -> str:
    """Stable record id for a documentation chunk.

    Re-indexing the same file overwrites its previous chunks in place.
    """
    encoded_path = base64.urlsafe_b64encode(path.encode("utf-8")).decode("ascii").rstrip("=")
    return f"md_{user_id}_{encoded_path}_{chunk_index}"


class _RunLog:
    """Collects progress lines for the caller and mirrors them to the module logger."""

    def __init__(self) -> None:
        self.entries: list[IndexLogEntry] = []

    def add(self, level: str, message: str) -> None:
        self.entries.append(IndexLogEntry(level=level, message=message, timestamp=time.time()))
        logger.log(logging.getLevelName(level.upper()), message)


async def _index_chunk(
    *,
    embedding_client: EmbeddingClient,
    vector_index: VectorIndex,
    namespace: str,
    record_id: str,
    text: str,
    metadata: dict[str, object],
) -> None:
    vector = await embedding_client.embed(text)
    await vector_index.upsert(namespace, record_id, vector, metadata)


async def index_documentation(
    files: list[DocumentFile],
    user_id: UUID,
    repository_ids: list[str],
    *,
    embedding_client: EmbeddingClient | None = None,
    vector_index: VectorIndex | None = None,
    chunk_size: int | None = None,
    overlap: int | None = None,
    max_file_size: int | None = None,
    max_total_size: int | None = None,
    preview_chars: int | None = None,
) -> IndexingResult:
    """Chunk, embed and upsert documentation files for one user.

    Files over ``max_file_size`` bytes are skipped, and files are taken in
    order until ``max_total_size`` bytes would be exceeded. Every chunk is
    embedded and upserted concurrently; a failing chunk is counted and logged
    without cancelling the rest.

    Args:
        files: Documentation files to index
        user_id: Owning user
        repository_ids: Repositories the documentation is associated with
        embedding_client: Override for tests (defaults to process-wide client)
        vector_index: Override for tests (defaults to process-wide index)
        chunk_size: Characters per chunk (defaults to settings)
        overlap: Overlap between chunks (defaults to settings)
        max_file_size: Per-file byte cap (defaults to settings)
        max_total_size: Per-run byte cap (defaults to settings)
        preview_chars: Length of the content preview stored in metadata

    Returns:
        IndexingResult tally with progress logs
    """
    embedding_client = embedding_client or get_embedding_client()
    vector_index = vector_index or get_vector_index()
    chunk_size = chunk_size if chunk_size is not None else settings.chunk_size
    overlap = overlap if overlap is not None else settings.chunk_overlap
    max_file_size = max_file_size if max_file_size is not None else settings.max_file_size
    max_total_size = max_total_size if max_total_size is not None else settings.max_total_size
    preview_chars = preview_chars if preview_chars is not None else settings.preview_chars

    namespace = namespace_for_user(user_id)
    run_log = _RunLog()
    result = IndexingResult()

    run_log.add("info", f"Starting indexing for {len(files)} files")

    labels: list[str] = []
    tasks = []

    for file in files:
        size = file.byte_size()

        if size > max_file_size:
            run_log.add("warning", f"Skipping {file.path}: {size} bytes exceeds per-file limit")
            result.skipped_files += 1
            continue

        if result.total_bytes + size > max_total_size:
            run_log.add("warning", f"Skipping {file.path}: total size limit reached")
            result.skipped_files += 1
            continue

        chunks = list(chunk_text(file.content, chunk_size=chunk_size, overlap=overlap))
        if not chunks:
            run_log.add("warning", f"No chunks generated for file {file.path}, skipping")
            result.failed += 1
            continue

        result.total_bytes += size
        run_log.add("info", f"Processing file {file.path} ({len(chunks)} chunks)")

        for i, chunk in enumerate(chunks):
            metadata: dict[str, object] = {
                "user_id": str(user_id),
                "type": DOCUMENTATION_TYPE,
                "file_path": file.path,
                "chunk_index": i,
                "total_chunks": len(chunks),
                "repository_ids": list(repository_ids),
                "content": chunk[:preview_chars],
            }
            labels.append(f"chunk {i} of {file.path}")
            tasks.append(
                _index_chunk(
                    embedding_client=embedding_client,
                    vector_index=vector_index,
                    namespace=namespace,
                    record_id=chunk_record_id(user_id, file.path, i),
                    text=chunk,
                    metadata=metadata,
                )
            )

    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    for label, outcome in zip(labels, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            result.failed += 1
            metrics.inc_upsert(DOCUMENTATION_TYPE, "error")
            run_log.add("error", f"Error indexing {label}: {outcome}")
        else:
            result.indexed += 1
            metrics.inc_upsert(DOCUMENTATION_TYPE, "success")

    run_log.add("info", f"Indexing complete: {result.indexed} indexed, {result.failed} failed")
    result.logs = run_log.entries

    _index_logger.log_indexing(
        user_id=user_id,
        indexed=result.indexed,
        failed=result.failed,
        skipped_files=result.skipped_files,
        total_bytes=result.total_bytes,
    )

    return result
