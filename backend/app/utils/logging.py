"""Structured logging for indexing and generation runs."""

import logging
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)


class StructuredIndexLogger:
    """Structured logger for documentation indexing and rule generation."""

    def log_indexing(
        self,
        user_id: UUID,
        indexed: int,
        failed: int,
        skipped_files: int,
        total_bytes: int,
    ) -> None:
        """Log the tally of a bulk indexing run."""
        log_data: dict[str, Any] = {
            "user_id": str(user_id),
            "indexed": indexed,
            "failed": failed,
            "skipped_files": skipped_files,
            "total_bytes": total_bytes,
        }

        log_msg = f"Indexing complete: {indexed} indexed, {failed} failed"

        if failed == 0:
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

    def log_generation(
        self,
        user_id: UUID,
        source: str,
        context_chunks: int,
        content_chars: int,
        error_reason: str | None = None,
    ) -> None:
        """Log the outcome of a rule generation run."""
        log_data: dict[str, Any] = {
            "user_id": str(user_id),
            "source": source,
            "context_chunks": context_chunks,
            "content_chars": content_chars,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Rule generation: {source}"

        if source == "rag":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging for the API process."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
