"""End-to-end course indexing workflow.

Combines chunking, embedding, and vector storage for lesson documents.
"""

import asyncio
from datetime import UTC, datetime

from loguru import logger

from course_rag.chunking import BoundaryChunker, ChunkingConfig
from course_rag.embedding import EmbeddingClient, EmbeddingPurpose
from course_rag.errors import ConfigError, UpstreamError, ValidationError
from course_rag.index import VectorStore
from course_rag.models import (
    ChunkMetadata,
    CourseDocument,
    CoursePayload,
    DocumentChunk,
    DocumentIndexResult,
    IndexReport,
    IndexStatus,
    VectorPoint,
)


def chunk_id(lesson_id: str, chunk_index: int) -> str:
    """Return the id of a lesson chunk."""
    return f"{lesson_id}-chunk-{chunk_index}"


class CourseIndexer:
    """Indexes lesson documents into the vector store.

    Handles the complete workflow per document:
    1. Chunk the lesson text
    2. Embed all chunks in one call
    3. Delete the lesson's previous points
    4. Upsert the new points

    Deleting before upserting removes stale chunk ids when a lesson shrinks.
    Re-running a lesson after a partial failure is safe because points are
    keyed by chunk id.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        chunking_config: ChunkingConfig | None = None,
        concurrency: int = 4,
    ):
        """Initialize course indexer.

        Args:
            embedding_client: Client for generating embeddings
            vector_store: Vector store for storage
            chunking_config: Configuration for text chunking (uses defaults if None)
            concurrency: Maximum number of documents indexed at once
        """
        if concurrency < 1:
            raise ValidationError(f"concurrency must be positive, got {concurrency}")
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.chunker = BoundaryChunker(chunking_config or ChunkingConfig())
        self.concurrency = concurrency

    def prepare_document_chunks(self, document: CourseDocument) -> list[DocumentChunk]:
        """Split a document into chunks tagged with lesson metadata."""
        chunks = self.chunker.chunk(document.content)
        return [
            DocumentChunk(
                id=chunk_id(document.lesson_id, chunk.chunk_index),
                content=chunk.text,
                metadata=ChunkMetadata(
                    lesson_id=document.lesson_id,
                    module_id=document.module_id,
                    title=document.title,
                    chunk_index=chunk.chunk_index,
                    total_chunks=len(chunks),
                ),
            )
            for chunk in chunks
        ]

    @staticmethod
    def build_points(
        chunks: list[DocumentChunk], vectors: list[list[float]], created_at: datetime
    ) -> list[VectorPoint]:
        """Pair chunks with their vectors."""
        if len(chunks) != len(vectors):
            raise UpstreamError(f"Expected {len(chunks)} embeddings, got {len(vectors)}")

        return [
            VectorPoint(
                id=chunk.id,
                vector=vector,
                payload=CoursePayload(
                    chunk_id=chunk.id,
                    lesson_id=chunk.metadata.lesson_id,
                    module_id=chunk.metadata.module_id,
                    title=chunk.metadata.title,
                    content=chunk.content,
                    chunk_index=chunk.metadata.chunk_index,
                    total_chunks=chunk.metadata.total_chunks,
                    created_at=created_at,
                ),
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

    async def index_document(self, document: CourseDocument) -> DocumentIndexResult:
        """Index a single lesson, replacing any previously stored chunks.

        Args:
            document: Lesson to index

        Returns:
            Result with the number of chunks written

        Raises:
            ValidationError: If the document has no indexable text
            UpstreamError: For embedding or vector store failures
        """
        chunks = self.prepare_document_chunks(document)
        logger.info(
            f"Indexing lesson '{document.title}' (ID: {document.lesson_id}) "
            f"from module '{document.module_id}' as {len(chunks)} chunks"
        )

        vectors = await self.embedding_client.embed(
            [chunk.content for chunk in chunks], EmbeddingPurpose.DOCUMENT
        )
        points = self.build_points(chunks, vectors, datetime.now(UTC))

        await self.vector_store.delete_by_lesson_id(document.lesson_id)
        await self.vector_store.upsert(points)

        return DocumentIndexResult(
            lesson_id=document.lesson_id, status=IndexStatus.INDEXED, chunk_count=len(points)
        )

    async def index_documents(
        self,
        documents: list[CourseDocument],
        skipped: list[CourseDocument] | None = None,
        failed: list[DocumentIndexResult] | None = None,
    ) -> IndexReport:
        """Index many lessons concurrently.

        The collection is ensured once up front. A failure in one document is
        recorded in the report and does not stop the others. A missing credential
        (``ConfigError``) affects every document and aborts the run.

        Args:
            documents: Lessons to index
            skipped: Lessons left untouched (reported as skipped)
            failed: Results for lessons that failed before indexing, e.g. while loading

        Returns:
            Report with one result per document, in input order, followed by
            skipped and failed results

        Raises:
            ValidationError: If lesson ids are not unique
            ConfigError: If a required credential is missing
        """
        lesson_ids = [document.lesson_id for document in documents]
        if len(set(lesson_ids)) != len(lesson_ids):
            raise ValidationError("Lesson ids must be unique within an indexing run")

        await self.vector_store.ensure_collection()

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run(document: CourseDocument) -> DocumentIndexResult:
            async with semaphore:
                try:
                    return await self.index_document(document)
                except ConfigError:
                    raise
                except Exception as e:
                    # one failing lesson must not abort the run
                    logger.error(f"Failed to index lesson {document.lesson_id!r}: {e}")
                    return DocumentIndexResult(
                        lesson_id=document.lesson_id, status=IndexStatus.FAILED, error=str(e)
                    )

        results = list(await asyncio.gather(*(_run(document) for document in documents)))
        results.extend(
            DocumentIndexResult(lesson_id=document.lesson_id, status=IndexStatus.SKIPPED)
            for document in skipped or []
        )
        results.extend(failed or [])

        report = IndexReport(results=results)
        logger.info(
            f"Indexed {report.indexed} lessons ({report.total_chunks} chunks), "
            f"skipped {report.skipped}, failed {report.failed}"
        )
        return report
