"""Vector store management and search operations.

Provides an abstract store interface and its Qdrant implementation with:
- Idempotent collection setup with keyword payload indexes
- Upsert and filter delete that wait for acknowledgment
- Semantic search with AND-ed metadata filters and a score threshold
- Bounded retries for transient failures

Qdrant accepts only unsigned integers and UUIDs as point ids, so chunk ids are
mapped to deterministic UUIDv5 values; the chunk id is kept in the payload.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from course_rag.errors import ConfigError, UpstreamError, ValidationError
from course_rag.models import (
    CollectionStats,
    CoursePayload,
    SearchFilters,
    SearchResult,
    VectorPoint,
)

T = TypeVar("T")

POINT_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "course-rag/points")

# Payload fields with keyword indexes for filtered search
FILTER_FIELDS = ("lessonId", "moduleId")


class IndexConfig(BaseModel):
    """Vector store configuration.

    Attributes:
        collection_name: Name of the Qdrant collection
        dimensions: Vector size; must match the embedding dimensions
        distance: Distance metric name
        url: URL of the Qdrant server
        api_key: API key for Qdrant Cloud
        location: Alternative to ``url``; ``":memory:"`` runs an in-process store
        timeout_seconds: Request timeout
        max_retries: Maximum attempts for transient failures
        retry_backoff_seconds: Base delay for exponential backoff
    """

    collection_name: str = "course_content"
    dimensions: int = Field(default=1024, ge=1)
    distance: str = Field(default="Cosine", pattern="^(Cosine|Dot|Euclid|Manhattan)$")
    url: str | None = None
    api_key: str | None = None
    location: str | None = None
    timeout_seconds: int = Field(default=30, ge=1, le=300)
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0.0, le=60.0)


def point_uuid(chunk_id: str) -> str:
    """Map a chunk id to the UUID used as the Qdrant point id."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, chunk_id))


def build_filter(filters: SearchFilters | None) -> models.Filter | None:
    """Build a Qdrant filter whose conditions must all match.

    Returns:
        Filter, or None when no filter field is set
    """
    if filters is None:
        return None

    must: list[models.Condition] = []
    if filters.lesson_id:
        must.append(
            models.FieldCondition(key="lessonId", match=models.MatchValue(value=filters.lesson_id))
        )
    if filters.module_id:
        must.append(
            models.FieldCondition(key="moduleId", match=models.MatchValue(value=filters.module_id))
        )
    return models.Filter(must=must) if must else None


class VectorStore(ABC):
    """Abstract base class for vector store implementations."""

    @abstractmethod
    async def ensure_collection(self) -> None:
        """Create the collection and its payload indexes if absent."""
        ...

    @abstractmethod
    async def upsert(self, points: list[VectorPoint]) -> None:
        """Insert or overwrite points by id.

        Args:
            points: Points to upsert; an empty list is a no-op

        Raises:
            ValidationError: If a vector has the wrong dimension
            UpstreamError: For store failures
        """
        ...

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        filters: SearchFilters | None = None,
        score_threshold: float = 0.7,
    ) -> list[SearchResult]:
        """Return up to ``limit`` results scoring at least ``score_threshold``.

        Results are ordered by descending score.
        """
        ...

    @abstractmethod
    async def delete_by_lesson_id(self, lesson_id: str) -> None:
        """Delete every point of a lesson. Deleting an unknown lesson is a no-op."""
        ...

    @abstractmethod
    async def stats(self) -> CollectionStats:
        """Get collection statistics."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        ...

    async def aclose(self) -> None:
        """Release network resources."""


class QdrantStore(VectorStore):
    """Qdrant vector store implementation."""

    def __init__(self, config: IndexConfig, client: AsyncQdrantClient | None = None):
        """Initialize Qdrant collection client.

        Args:
            config: Vector store configuration
            client: Optional preconfigured client

        Raises:
            ConfigError: If neither a client, a location, nor a URL is available
        """
        self.config = config
        self.collection_name = config.collection_name
        if client is not None:
            self.client = client
        elif config.location:
            self.client = AsyncQdrantClient(location=config.location)
        elif config.url:
            self.client = AsyncQdrantClient(
                url=config.url, api_key=config.api_key, timeout=config.timeout_seconds
            )
        else:
            raise ConfigError("QDRANT_URL is required for vector storage")

    async def aclose(self) -> None:
        await self.client.close()

    async def _call(self, operation: str, func: Callable[..., Awaitable[T]], **kwargs: Any) -> T:
        """Run a client call, retrying transport errors, 429 and 5xx responses."""
        attempts = self.config.max_retries
        for attempt in range(attempts):
            try:
                return await func(**kwargs)
            except UnexpectedResponse as e:
                status = e.status_code
                transient = status is not None and (status == 429 or status >= 500)
                if transient and attempt < attempts - 1:
                    logger.warning(
                        f"Qdrant {operation} returned {status} (attempt {attempt + 1}/{attempts})"
                    )
                    await self._backoff(attempt)
                    continue
                detail = e.content.decode(errors="replace") if e.content else e.reason_phrase
                raise UpstreamError(f"Qdrant {operation} failed: {detail}", status=status) from e
            except ResponseHandlingException as e:
                if attempt < attempts - 1:
                    logger.warning(
                        f"Qdrant {operation} failed (attempt {attempt + 1}/{attempts}): {e}"
                    )
                    await self._backoff(attempt)
                    continue
                raise UpstreamError(f"Qdrant {operation} failed: {e}") from e
            except ValueError as e:
                # In-process client (location=":memory:") reports missing or duplicate
                # collections as ValueError
                status = 404 if "not found" in str(e) else 400
                raise UpstreamError(f"Qdrant {operation} failed: {e}", status=status) from e

        raise UpstreamError(f"Qdrant {operation}: exhausted all retry attempts")

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self.config.retry_backoff_seconds * 2**attempt)

    async def _exists(self) -> bool:
        return await self._call(
            "collection_exists",
            self.client.collection_exists,
            collection_name=self.collection_name,
        )

    async def ensure_collection(self) -> None:
        """Create the collection if it does not exist and ensure its payload indexes.

        Payload indexes are created on every call, so collections created by
        other writers get them too. The existence check and the create are not
        atomic. When a concurrent caller creates the collection first, the
        failed create is ignored as long as the collection exists afterwards.
        """
        if await self._exists():
            logger.debug(f"Qdrant collection {self.collection_name!r} already exists")
        else:
            await self._create_collection()

        for field_name in FILTER_FIELDS:
            await self._call(
                "create_payload_index",
                self.client.create_payload_index,
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=models.PayloadSchemaType.KEYWORD,
                wait=True,
            )

    async def _create_collection(self) -> None:
        try:
            await self._call(
                "create_collection",
                self.client.create_collection,
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=self.config.dimensions,
                    distance=models.Distance(self.config.distance),
                ),
                optimizers_config=models.OptimizersConfigDiff(default_segment_number=2),
                replication_factor=1,
            )
            logger.info(f"Created Qdrant collection: {self.collection_name}")
        except UpstreamError as e:
            if not await self._exists():
                raise
            logger.debug(f"Collection {self.collection_name!r} was created concurrently: {e}")

    def _check_dimensions(self, vector: list[float], label: str) -> None:
        if len(vector) != self.config.dimensions:
            raise ValidationError(
                f"{label} has {len(vector)} dimensions, collection "
                f"{self.collection_name!r} expects {self.config.dimensions}"
            )

    async def upsert(self, points: list[VectorPoint]) -> None:
        """Insert or overwrite points in Qdrant and wait for acknowledgment."""
        if not points:
            return

        structs = []
        for point in points:
            self._check_dimensions(point.vector, f"Vector for {point.id!r}")
            structs.append(
                models.PointStruct(
                    id=point_uuid(point.id),
                    vector=point.vector,
                    payload=point.payload.model_dump(by_alias=True, mode="json"),
                )
            )

        await self._call(
            "upsert",
            self.client.upsert,
            collection_name=self.collection_name,
            points=structs,
            wait=True,
        )
        logger.debug(f"Upserted {len(structs)} points into {self.collection_name!r}")

    async def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        filters: SearchFilters | None = None,
        score_threshold: float = 0.7,
    ) -> list[SearchResult]:
        """Search the Qdrant collection.

        A missing collection is reported as an empty result with a warning.
        """
        if limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")
        self._check_dimensions(query_vector, "Query vector")

        try:
            response = await self._call(
                "search",
                self.client.query_points,
                collection_name=self.collection_name,
                query=query_vector,
                limit=limit,
                query_filter=build_filter(filters),
                score_threshold=score_threshold,
                with_payload=True,
            )
        except UpstreamError as e:
            if e.status == 404:
                logger.warning(f"Collection {self.collection_name!r} not found; no results")
                return []
            raise

        results = []
        for point in response.points:
            try:
                payload = CoursePayload.model_validate(point.payload)
            except PydanticValidationError as e:
                raise UpstreamError(f"Malformed payload for point {point.id}: {e}") from e
            # Cosine scores can drift slightly above 1.0 due to float precision
            score = min(1.0, max(0.0, point.score))
            results.append(SearchResult(id=payload.chunk_id, score=score, payload=payload))
        return results

    async def delete_by_lesson_id(self, lesson_id: str) -> None:
        """Delete every point whose payload ``lessonId`` matches."""
        selector = models.FilterSelector(filter=build_filter(SearchFilters(lesson_id=lesson_id)))
        try:
            await self._call(
                "delete",
                self.client.delete,
                collection_name=self.collection_name,
                points_selector=selector,
                wait=True,
            )
        except UpstreamError as e:
            if e.status != 404:
                raise
            logger.debug(f"Collection {self.collection_name!r} not found; nothing to delete")
            return
        logger.debug(f"Deleted points of lesson {lesson_id!r}")

    async def stats(self) -> CollectionStats:
        """Get Qdrant collection statistics."""
        if not await self._exists():
            return CollectionStats(
                collection_name=self.collection_name, points_count=0, status="missing"
            )

        info = await self._call(
            "get_collection", self.client.get_collection, collection_name=self.collection_name
        )
        status = info.status.value if hasattr(info.status, "value") else str(info.status)
        return CollectionStats(
            collection_name=self.collection_name,
            points_count=info.points_count or 0,
            status=status,
        )

    async def health_check(self) -> bool:
        """Check Qdrant connectivity by listing collections."""
        try:
            await self._call("get_collections", self.client.get_collections)
            return True
        except UpstreamError as e:
            logger.warning(f"Qdrant health check failed: {e}")
            return False
