"""Unit tests for embedding generation."""

import json

import httpx
import pytest
import respx
from httpx import Response

from course_rag.embedding import (
    CohereEmbedding,
    EmbeddingConfig,
    EmbeddingPurpose,
    decode_embed_response,
)
from course_rag.errors import ConfigError, UpstreamError

EMBED_URL = "https://api.cohere.ai/v1/embed"


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    """Standard embedding configuration for tests."""
    return EmbeddingConfig(
        model="embed-english-v3.0",
        dimensions=1024,
        batch_size=96,
        max_retries=3,
        timeout_seconds=10.0,
        retry_backoff_seconds=0.0,
        api_key="co-test-key",
    )


def embed_body(*values: float, dimensions: int = 1024) -> dict:
    return {"id": "abc", "embeddings": [[v] * dimensions for v in values], "texts": []}


class TestEmbeddingConfig:
    """Tests for EmbeddingConfig validation."""

    def test_defaults(self) -> None:
        config = EmbeddingConfig()
        assert config.model == "embed-english-v3.0"
        assert config.dimensions == 1024
        assert config.api_key is None

    def test_invalid_dimensions(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingConfig(dimensions=50)

        with pytest.raises(ValueError):
            EmbeddingConfig(dimensions=5000)

    def test_batch_size_capped_at_cohere_limit(self) -> None:
        with pytest.raises(ValueError):
            EmbeddingConfig(batch_size=0)

        with pytest.raises(ValueError):
            EmbeddingConfig(batch_size=97)


class TestDecodeEmbedResponse:
    """Tests for the typed response decoder."""

    def test_list_of_vectors(self) -> None:
        vectors = decode_embed_response({"embeddings": [[0.1, 0.2], [0.3, 0.4]]}, 2, 2)
        assert vectors == [[0.1, 0.2], [0.3, 0.4]]

    def test_typed_float_object(self) -> None:
        data = {"embeddings": {"float": [[0.5, 0.6]]}, "response_type": "embeddings_by_type"}
        assert decode_embed_response(data, 1, 2) == [[0.5, 0.6]]

    def test_unexpected_shape_raises(self) -> None:
        with pytest.raises(UpstreamError, match="Unexpected embedding response format"):
            decode_embed_response({"embeddings": {"int8": [[1, 2]]}}, 1, 2)

        with pytest.raises(UpstreamError, match="Unexpected embedding response format"):
            decode_embed_response({"vectors": [[0.1, 0.2]]}, 1, 2)

    def test_count_mismatch_raises(self) -> None:
        with pytest.raises(UpstreamError, match="Expected 2 embeddings, got 1"):
            decode_embed_response({"embeddings": [[0.1, 0.2]]}, 2, 2)

    def test_dimension_mismatch_raises(self) -> None:
        with pytest.raises(UpstreamError, match="Expected 3 dimensions, got 2"):
            decode_embed_response({"embeddings": [[0.1, 0.2]]}, 1, 3)


class TestCohereEmbedding:
    """Tests for the Cohere embedding client."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_embed_preserves_order(self, embedding_config) -> None:
        route = respx.post(EMBED_URL).mock(return_value=Response(200, json=embed_body(0.1, 0.2, 0.3)))

        client = CohereEmbedding(embedding_config)
        vectors = await client.embed(["Text 1", "Text 2", "Text 3"])
        await client.aclose()

        assert len(vectors) == 3
        assert all(len(v) == 1024 for v in vectors)
        assert [v[0] for v in vectors] == [0.1, 0.2, 0.3]

        request = route.calls.last.request
        body = json.loads(request.content)
        assert body == {
            "texts": ["Text 1", "Text 2", "Text 3"],
            "model": "embed-english-v3.0",
            "input_type": "search_document",
            "truncate": "END",
        }
        assert request.headers["Authorization"] == "Bearer co-test-key"

    @pytest.mark.asyncio
    @respx.mock
    async def test_embed_query_uses_query_input_type(self, embedding_config) -> None:
        route = respx.post(EMBED_URL).mock(return_value=Response(200, json=embed_body(0.7)))

        client = CohereEmbedding(embedding_config)
        vector = await client.embed_query("What is a servo?")

        assert len(vector) == 1024
        body = json.loads(route.calls.last.request.content)
        assert body["input_type"] == EmbeddingPurpose.QUERY.value
        assert body["texts"] == ["What is a servo?"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_nested_float_response(self, embedding_config) -> None:
        respx.post(EMBED_URL).mock(
            return_value=Response(200, json={"embeddings": {"float": [[0.4] * 1024]}})
        )

        client = CohereEmbedding(embedding_config)
        vectors = await client.embed(["Text"])

        assert vectors == [[0.4] * 1024]

    @pytest.mark.asyncio
    async def test_missing_api_key_raises_config_error(self) -> None:
        client = CohereEmbedding(EmbeddingConfig(api_key=None))

        with pytest.raises(ConfigError, match="COHERE_API_KEY"):
            await client.embed(["Text"])

    @pytest.mark.asyncio
    async def test_empty_batch_returns_empty(self, embedding_config) -> None:
        """Empty input should return empty list without API call."""
        client = CohereEmbedding(embedding_config)
        assert await client.embed([]) == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_large_input_split_into_batches(self, embedding_config) -> None:
        def reply(request: httpx.Request) -> Response:
            texts = json.loads(request.content)["texts"]
            return Response(200, json={"embeddings": [[float(t)] * 1024 for t in texts]})

        route = respx.post(EMBED_URL).mock(side_effect=reply)
        embedding_config.batch_size = 2

        client = CohereEmbedding(embedding_config)
        vectors = await client.embed(["1", "2", "3", "4", "5"])

        assert route.call_count == 3
        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_on_rate_limit(self, embedding_config) -> None:
        """Rate limit (429) should trigger retry with backoff."""
        route = respx.post(EMBED_URL).mock(
            side_effect=[
                Response(429, json={"message": "Rate limit exceeded"}),
                Response(200, json=embed_body(0.1)),
            ]
        )

        client = CohereEmbedding(embedding_config)
        vector = await client.embed_query("Test")

        assert len(vector) == 1024
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_on_timeout(self, embedding_config) -> None:
        route = respx.post(EMBED_URL).mock(
            side_effect=[httpx.ConnectTimeout("timed out"), Response(200, json=embed_body(0.1))]
        )

        client = CohereEmbedding(embedding_config)
        await client.embed(["Test"])

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_exhausted_retries_raises(self, embedding_config) -> None:
        route = respx.post(EMBED_URL).mock(return_value=Response(503, text="unavailable"))
        embedding_config.max_retries = 2

        client = CohereEmbedding(embedding_config)
        with pytest.raises(UpstreamError) as exc_info:
            await client.embed(["Test"])

        assert exc_info.value.status == 503
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_not_retried(self, embedding_config) -> None:
        route = respx.post(EMBED_URL).mock(
            return_value=Response(400, json={"message": "invalid input_type"})
        )

        client = CohereEmbedding(embedding_config)
        with pytest.raises(UpstreamError, match="invalid input_type") as exc_info:
            await client.embed(["Test"])

        assert exc_info.value.status == 400
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_dimension_mismatch_raises(self, embedding_config) -> None:
        respx.post(EMBED_URL).mock(return_value=Response(200, json=embed_body(0.1, dimensions=768)))

        client = CohereEmbedding(embedding_config)
        with pytest.raises(UpstreamError, match="Expected 1024 dimensions"):
            await client.embed(["Test"])

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body_raises(self, embedding_config) -> None:
        respx.post(EMBED_URL).mock(return_value=Response(200, text="<html>oops</html>"))

        client = CohereEmbedding(embedding_config)
        with pytest.raises(UpstreamError, match="not valid JSON"):
            await client.embed(["Test"])
