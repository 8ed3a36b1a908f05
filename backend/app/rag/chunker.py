"""Document chunker - fixed-size overlapping windows over raw text."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


@dataclass(frozen=True)
class TextChunks:
    """Lazy, restartable sequence of overlapping text windows.

    Each call to ``iter()`` walks the text from the start again, so the same
    instance can be consumed any number of times and always yields the same
    chunks in the same order.

    Misconfigured parameters are clamped on construction so the walk always
    terminates:

    - ``chunk_size < 1`` is raised to 1
    - ``overlap < 0`` is raised to 0
    - ``overlap >= chunk_size`` is lowered to ``chunk_size - 1``

    Invariants:
        - every chunk is at most ``chunk_size`` characters
        - consecutive chunks share exactly ``overlap`` characters
        - ``chunks[0] + "".join(c[overlap:] for c in chunks[1:]) == text``
    """

    text: str
    chunk_size: int
    overlap: int

    def __post_init__(self) -> None:
        safe_size = max(1, self.chunk_size)
        safe_overlap = min(max(0, self.overlap), safe_size - 1)

        if safe_size != self.chunk_size or safe_overlap != self.overlap:
            logger.warning(
                "Clamped chunker parameters: chunk_size %d -> %d, overlap %d -> %d",
                self.chunk_size,
                safe_size,
                self.overlap,
                safe_overlap,
            )
            object.__setattr__(self, "chunk_size", safe_size)
            object.__setattr__(self, "overlap", safe_overlap)

    def __iter__(self) -> Iterator[str]:
        text_len = len(self.text)
        if text_len == 0:
            return

        stride = self.chunk_size - self.overlap
        start = 0
        while True:
            end = min(start + self.chunk_size, text_len)
            yield self.text[start:end]
            if end == text_len:
                return
            start += stride

    def __len__(self) -> int:
        text_len = len(self.text)
        if text_len == 0:
            return 0
        if text_len <= self.chunk_size:
            return 1
        stride = self.chunk_size - self.overlap
        # ceil((text_len - chunk_size) / stride) extra windows after the first
        return 1 + -(-(text_len - self.chunk_size) // stride)


def chunk_text(
    text: str,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> TextChunks:
    """Split text into fixed-size windows that overlap by ``overlap`` characters.

    Pure function with no I/O. Parameters are clamped as described on
    ``TextChunks`` rather than rejected.

    Args:
        text: Raw document text
        chunk_size: Maximum characters per chunk (default 1000)
        overlap: Characters shared by consecutive chunks (default 200)

    Returns:
        TextChunks iterable. Empty text yields nothing; text no longer than
        chunk_size yields exactly one chunk equal to the input.
    """
    return TextChunks(text=text, chunk_size=chunk_size, overlap=overlap)
