"""Pydantic models for course RAG data structures.

All data flowing through the pipeline is validated against these schemas.
Payload fields use the camelCase names stored in the vector database
(``lessonId``, ``moduleId``, ...) as aliases, while Python code uses
snake_case attribute names.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _PayloadModel(BaseModel):
    """Base for models serialized with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CourseDocument(_PayloadModel):
    """A single lesson document to be indexed.

    Attributes:
        lesson_id: Lesson identifier (also the chunk id prefix)
        module_id: Identifier of the module the lesson belongs to
        title: Human-readable lesson title
        content: Lesson body text
    """

    lesson_id: str = Field(alias="lessonId", min_length=1)
    module_id: str = Field(alias="moduleId", min_length=1)
    title: str
    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Reject documents with no indexable text."""
        if not v.strip():
            raise ValueError("content must contain non-whitespace text")
        return v


class ChunkMetadata(_PayloadModel):
    """Metadata attached to every chunk of a lesson."""

    lesson_id: str = Field(alias="lessonId")
    module_id: str = Field(alias="moduleId")
    title: str
    chunk_index: int = Field(alias="chunkIndex", ge=0)
    total_chunks: int = Field(alias="totalChunks", ge=1)


class DocumentChunk(_PayloadModel):
    """A chunk of a lesson document ready for embedding.

    Attributes:
        id: Chunk identifier with format ``{lesson_id}-chunk-{chunk_index}``
        content: Chunk text
        metadata: Lesson metadata and position of the chunk
    """

    id: str
    content: str = Field(min_length=1)
    metadata: ChunkMetadata


class CoursePayload(_PayloadModel):
    """Payload stored alongside each vector.

    ``chunk_id`` keeps the human-readable chunk id, since the stored point id
    is a UUID derived from it.
    """

    chunk_id: str = Field(alias="chunkId")
    lesson_id: str = Field(alias="lessonId")
    module_id: str = Field(alias="moduleId")
    title: str
    content: str
    chunk_index: int = Field(alias="chunkIndex", ge=0)
    total_chunks: int = Field(alias="totalChunks", ge=1)
    created_at: datetime = Field(alias="createdAt")


class VectorPoint(BaseModel):
    """A point to upsert into the vector store."""

    id: str
    vector: list[float] = Field(min_length=1)
    payload: CoursePayload


class SearchResult(BaseModel):
    """A single search hit.

    Attributes:
        id: Chunk id of the matched point
        score: Cosine similarity clamped to 0.0-1.0 (higher is better)
        payload: Stored payload of the point
    """

    id: str
    score: float = Field(ge=0.0, le=1.0)
    payload: CoursePayload


class SearchFilters(BaseModel):
    """Optional metadata scope for a search; set fields are AND-ed."""

    lesson_id: str | None = None
    module_id: str | None = None


class RetrievedSnippet(BaseModel):
    """A ranked snippet returned to prompt assembly."""

    chunk_id: str
    score: float
    lesson_id: str
    module_id: str
    title: str
    content: str


class ChatAnswer(BaseModel):
    """Response of the course assistant.

    Attributes:
        message: Assistant reply
        sources: Snippets the reply was grounded on
        session_id: Echo of the caller's session id, ``"default"`` if absent
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str
    sources: list[RetrievedSnippet] = Field(default_factory=list)
    session_id: str = Field(default="default", alias="sessionId")


class IndexStatus(str, Enum):
    """Outcome of indexing a single document."""

    INDEXED = "indexed"
    SKIPPED = "skipped"
    FAILED = "failed"


class DocumentIndexResult(BaseModel):
    """Per-document indexing outcome."""

    lesson_id: str
    status: IndexStatus
    chunk_count: int = Field(default=0, ge=0)
    error: str | None = None


class IndexReport(BaseModel):
    """Summary of an indexing run."""

    results: list[DocumentIndexResult] = Field(default_factory=list)

    def _count(self, status: IndexStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def indexed(self) -> int:
        return self._count(IndexStatus.INDEXED)

    @property
    def skipped(self) -> int:
        return self._count(IndexStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(IndexStatus.FAILED)

    @property
    def total_chunks(self) -> int:
        return sum(r.chunk_count for r in self.results if r.status == IndexStatus.INDEXED)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class CollectionStats(BaseModel):
    """Statistics about the vector collection.

    Attributes:
        collection_name: Name of the collection
        points_count: Number of stored points (0 if the collection is absent)
        status: Collection status reported by the store, ``"missing"`` if absent
    """

    collection_name: str
    points_count: int = Field(ge=0)
    status: str


class IndexManifest(BaseModel):
    """Record of the last successful indexing run.

    Attributes:
        built_at: When the manifest was last written
        config_fingerprint: Hash of the chunking/embedding/index configuration
        embedding_model: Embedding model used for the stored vectors
        collection_name: Collection the vectors were written to
        lessons: Content hash per indexed lesson id
    """

    built_at: datetime
    config_fingerprint: str
    embedding_model: str
    collection_name: str
    lessons: dict[str, str] = Field(default_factory=dict)
