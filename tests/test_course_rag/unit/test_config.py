"""Unit tests for configuration loading.

Tests cover:
- Hydra config loading from YAML
- Environment variable interpolation
- Config validation
- Override mechanism
"""

import pytest

from course_rag.config import (
    CourseRagConfig,
    IndexingConfig,
    RetrievalConfig,
    create_default_config,
    load_config,
)
from course_rag.errors import ValidationError


class TestConfigCreation:
    """Tests for default config creation."""

    def test_create_default_config(self) -> None:
        config_dict = create_default_config()

        assert config_dict["chunking"]["chunk_size"] == 1000
        assert config_dict["chunking"]["overlap"] == 200
        assert config_dict["embedding"]["model"] == "embed-english-v3.0"
        assert config_dict["index"]["distance"] == "Cosine"

    def test_default_config_has_all_sections(self) -> None:
        config_dict = create_default_config()

        required_sections = ["chunking", "embedding", "index", "retrieval", "indexing", "chat"]
        assert all(section in config_dict for section in required_sections)


class TestConfigModels:
    """Tests for config model validation."""

    def test_defaults_are_consistent(self) -> None:
        config = CourseRagConfig()

        assert config.embedding.dimensions == config.index.dimensions == 1024
        assert config.retrieval.limit == 5
        assert config.retrieval.score_threshold == 0.7

    def test_dimension_mismatch_rejected(self) -> None:
        with pytest.raises(ValueError, match="must equal index.dimensions"):
            CourseRagConfig.model_validate(
                {"embedding": {"dimensions": 1024}, "index": {"dimensions": 768}}
            )

    def test_chunking_from_mapping(self) -> None:
        config = CourseRagConfig.model_validate({"chunking": {"chunk_size": 500, "overlap": 50}})
        assert config.chunking.chunk_size == 500

    def test_retrieval_threshold_range(self) -> None:
        with pytest.raises(ValueError):
            RetrievalConfig(score_threshold=1.5)

    def test_indexing_concurrency_range(self) -> None:
        with pytest.raises(ValueError):
            IndexingConfig(concurrency=0)

    def test_index_distance_validated(self) -> None:
        with pytest.raises(ValueError):
            CourseRagConfig.model_validate({"index": {"distance": "Hamming"}})


class TestConfigLoading:
    """Tests for loading config from Hydra YAML."""

    def test_load_default_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("QDRANT_COLLECTION_NAME", raising=False)
        config = load_config("default")

        assert isinstance(config, CourseRagConfig)
        assert config.chunking.chunk_size == 1000
        assert config.embedding.model == "embed-english-v3.0"
        assert config.index.collection_name == "course_content"

    def test_load_config_with_overrides(self) -> None:
        config = load_config(
            "default",
            overrides=["chunking.chunk_size=500", "retrieval.limit=10"],
        )

        assert config.chunking.chunk_size == 500
        assert config.retrieval.limit == 10

    def test_load_config_env_var_interpolation(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COHERE_API_KEY", "co-test-123")
        monkeypatch.setenv("QDRANT_URL", "http://qdrant.local:6333")

        config = load_config("default")

        assert config.embedding.api_key == "co-test-123"
        assert config.index.url == "http://qdrant.local:6333"

    def test_missing_env_vars_become_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GROQ_API_KEY", raising=False)

        config = load_config("default")

        assert config.chat.api_key is None

    def test_load_config_missing_dir_raises(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_config("nonexistent", config_path="/nonexistent/path")

    def test_invalid_override_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError, match="Invalid configuration"):
            load_config("default", overrides=["chunking.overlap=1000"])

    def test_dimension_override_mismatch(self) -> None:
        with pytest.raises(ValidationError, match="index.dimensions"):
            load_config("default", overrides=["index.dimensions=768"])
