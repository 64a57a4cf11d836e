"""Embedding client for the Cohere embed API.

Document chunks and user questions are embedded with different input types,
as required by Cohere's v3 models. Calls are batched, bounded by a timeout,
and retried with exponential backoff on transient failures.
"""

import asyncio
from enum import Enum
from typing import Any, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from course_rag.errors import ConfigError, UpstreamError


class EmbeddingPurpose(str, Enum):
    """Cohere input type for an embedding call."""

    DOCUMENT = "search_document"
    QUERY = "search_query"


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        model: Cohere model identifier
        dimensions: Expected embedding dimensionality
        batch_size: Maximum number of texts per API call (Cohere allows 96)
        max_retries: Maximum attempts for transient failures
        timeout_seconds: API request timeout
        retry_backoff_seconds: Base delay for exponential backoff
        base_url: API root URL
        api_key: Cohere API key (set via env var)
    """

    model: str = "embed-english-v3.0"
    dimensions: int = Field(default=1024, ge=128, le=4096)
    batch_size: int = Field(default=96, ge=1, le=96)
    max_retries: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    retry_backoff_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    base_url: str = "https://api.cohere.ai"
    api_key: str | None = None


class _TypedEmbeddings(BaseModel):
    float_: list[list[float]] = Field(alias="float")


class EmbedResponse(BaseModel):
    """Decoded body of an embed response.

    Cohere returns ``embeddings`` either as a list of float vectors or, when
    embedding types are requested, as an object keyed by type. Only the
    ``float`` type is accepted; any other shape fails validation.
    """

    embeddings: list[list[float]] | _TypedEmbeddings

    @property
    def vectors(self) -> list[list[float]]:
        if isinstance(self.embeddings, _TypedEmbeddings):
            return self.embeddings.float_
        return self.embeddings


def decode_embed_response(data: Any, expected_count: int, dimensions: int) -> list[list[float]]:
    """Decode and validate an embed response body.

    Args:
        data: Parsed JSON body
        expected_count: Number of texts that were sent
        dimensions: Expected length of every vector

    Returns:
        One vector per input text, in input order

    Raises:
        UpstreamError: If the body does not match the expected contract
    """
    try:
        vectors = EmbedResponse.model_validate(data).vectors
    except PydanticValidationError as e:
        raise UpstreamError(f"Unexpected embedding response format: {e}") from e

    if len(vectors) != expected_count:
        raise UpstreamError(f"Expected {expected_count} embeddings, got {len(vectors)}")
    for i, vector in enumerate(vectors):
        if len(vector) != dimensions:
            raise UpstreamError(
                f"Expected {dimensions} dimensions, got {len(vector)} for text {i}"
            )
    return vectors


class EmbeddingClient(Protocol):
    """Protocol for embedding client implementations."""

    async def embed(
        self, texts: list[str], purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT
    ) -> list[list[float]]:
        """Generate one embedding per text, in input order."""
        ...

    async def embed_query(self, text: str) -> list[float]:
        """Generate the query embedding for a single text."""
        ...


class CohereEmbedding:
    """Cohere embedding client with retry logic and batching."""

    def __init__(self, config: EmbeddingConfig, client: httpx.AsyncClient | None = None):
        """Initialize the client.

        Args:
            config: Embedding configuration
            client: Optional preconfigured HTTP client (owned by the caller)
        """
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url, timeout=config.timeout_seconds
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def embed(
        self, texts: list[str], purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT
    ) -> list[list[float]]:
        """Generate embeddings for texts.

        Inputs longer than ``batch_size`` are sent as consecutive batches.

        Args:
            texts: Input texts
            purpose: Whether the texts are documents or search queries

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            ConfigError: If no API key is configured
            UpstreamError: For API failures after all retries or malformed responses
        """
        if not self.config.api_key:
            raise ConfigError("COHERE_API_KEY is required for generating embeddings")

        if not texts:
            return []

        vectors: list[list[float]] = []
        size = self.config.batch_size
        for offset in range(0, len(texts), size):
            vectors.extend(await self._embed_batch(texts[offset : offset + size], purpose))
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Generate the embedding for a single search query."""
        vectors = await self.embed([text], EmbeddingPurpose.QUERY)
        return vectors[0]

    async def _embed_batch(self, texts: list[str], purpose: EmbeddingPurpose) -> list[list[float]]:
        payload = {
            "texts": texts,
            "model": self.config.model,
            "input_type": purpose.value,
            "truncate": "END",
        }
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        attempts = self.config.max_retries

        for attempt in range(attempts):
            try:
                response = await self._client.post("/v1/embed", json=payload, headers=headers)
            except httpx.TransportError as e:
                # TimeoutException is a TransportError
                logger.warning(f"Embedding request failed (attempt {attempt + 1}/{attempts}): {e}")
                if attempt < attempts - 1:
                    await self._backoff(attempt)
                    continue
                raise UpstreamError(f"Embedding request failed: {e}") from e

            if response.status_code == 429 or response.status_code >= 500:
                logger.warning(
                    f"Embedding API returned {response.status_code} "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                if attempt < attempts - 1:
                    await self._backoff(attempt)
                    continue
                raise UpstreamError(
                    f"Cohere API error: {response.text}", status=response.status_code
                )

            if response.is_error:
                # Non-retryable HTTP error
                logger.error(f"Embedding API returned {response.status_code}: {response.text}")
                raise UpstreamError(
                    f"Cohere API error: {response.text}", status=response.status_code
                )

            try:
                data = response.json()
            except ValueError as e:
                raise UpstreamError("Embedding response is not valid JSON") from e

            vectors = decode_embed_response(data, len(texts), self.config.dimensions)
            logger.debug(
                f"Embedded {len(texts)} texts with {self.config.model} "
                f"as {purpose.value} (attempt {attempt + 1}/{attempts})"
            )
            return vectors

        raise UpstreamError("Exhausted all retry attempts")

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self.config.retry_backoff_seconds * 2**attempt)
