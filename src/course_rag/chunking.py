"""Character-based text chunking at natural break points.

Chunks are cut at the best sentence, paragraph, line, or word boundary found in
the second half of the chunk window; text without any boundary is cut hard.
All chunking is deterministic: same input + config -> same chunks.
"""

from dataclasses import dataclass

from course_rag.errors import ValidationError

# Priority order: the first marker found in the second half of the window wins.
BREAK_MARKERS: tuple[str, ...] = (". ", ".\n", "\n\n", "\n", " ")


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for text chunking.

    Attributes:
        chunk_size: Maximum chunk window in characters
        overlap: Number of characters shared between consecutive chunks
    """

    chunk_size: int = 1000
    overlap: int = 200

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.chunk_size <= 0:
            raise ValidationError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0:
            raise ValidationError(f"overlap must be non-negative, got {self.overlap}")
        if self.overlap >= self.chunk_size:
            raise ValidationError(
                f"overlap ({self.overlap}) must be less than chunk_size ({self.chunk_size})"
            )


@dataclass(frozen=True)
class Chunk:
    """A single text chunk with position information.

    Attributes:
        text: Chunk text, stripped of surrounding whitespace
        start: Character offset of the window start in the original text
        end: Character offset one past the window end
        chunk_index: 0-indexed position in the list of chunks
    """

    text: str
    start: int
    end: int
    chunk_index: int

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("Chunk text cannot be empty")
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid offsets: start={self.start}, end={self.end}")
        if self.chunk_index < 0:
            raise ValueError(f"chunk_index must be non-negative, got {self.chunk_index}")


class BoundaryChunker:
    """Splits text into overlapping windows ending at natural break points."""

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or ChunkingConfig()

    def _find_cut(self, text: str, start: int) -> int:
        """Return the end offset of the window beginning at ``start``."""
        size = self.config.chunk_size
        end = start + size
        if end >= len(text):
            return len(text)

        midpoint = start + size / 2
        for marker in BREAK_MARKERS:
            position = text.rfind(marker, start, end)
            if position > midpoint:
                return position + len(marker)
        return end

    def chunk(self, text: str) -> list[Chunk]:
        """Split text into overlapping chunks.

        Args:
            text: Input text to chunk

        Returns:
            List of Chunk objects in order, never empty

        Raises:
            ValidationError: If input text is empty or whitespace only
        """
        if not text or not text.strip():
            raise ValidationError("Input text cannot be empty")

        chunks: list[Chunk] = []
        start = 0
        while start < len(text):
            end = self._find_cut(text, start)
            piece = text[start:end].strip()
            if piece:
                chunks.append(Chunk(text=piece, start=start, end=end, chunk_index=len(chunks)))
            if end >= len(text):
                break

            next_start = end - self.config.overlap
            # start must strictly increase or the loop never terminates
            start = next_start if next_start > start else end

        return chunks


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Convenience function returning only the chunk strings.

    Example:
        >>> chunk_text("First sentence. Second sentence.", chunk_size=20, overlap=0)
        ['First sentence.', 'Second sentence.']
    """
    chunker = BoundaryChunker(ChunkingConfig(chunk_size=chunk_size, overlap=overlap))
    return [chunk.text for chunk in chunker.chunk(text)]
