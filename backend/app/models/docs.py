"""Documentation domain models."""

from pydantic import BaseModel, Field


class DocumentFile(BaseModel):
    """A documentation file to be chunked and indexed."""

    path: str = Field(..., min_length=1, description="Source identifier, e.g. owner/repo/README.md")
    content: str
    size: int = Field(0, ge=0, description="Size in bytes; derived from content when 0")

    def byte_size(self) -> int:
        """Size in bytes, falling back to the UTF-8 length of content."""
        return self.size or len(self.content.encode("utf-8"))


class IndexLogEntry(BaseModel):
    """Single progress line emitted during indexing."""

    level: str
    message: str
    timestamp: float


class IndexingResult(BaseModel):
    """Tally of a bulk indexing run."""

    indexed: int = 0
    failed: int = 0
    skipped_files: int = 0
    total_bytes: int = 0
    logs: list[IndexLogEntry] = Field(default_factory=list)
