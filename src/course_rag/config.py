"""Configuration management for the course RAG pipeline using Hydra.

All configuration is loaded from YAML files in conf/course_rag/.
This module provides typed config objects and validation.
"""

from pathlib import Path
from typing import Any

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, field_validator, model_validator

from course_rag.chunking import ChunkingConfig
from course_rag.embedding import EmbeddingConfig
from course_rag.errors import ValidationError
from course_rag.index import IndexConfig


class RetrievalConfig(BaseModel):
    """Defaults for similarity search.

    Attributes:
        limit: Maximum number of snippets per query
        score_threshold: Minimum cosine similarity for a snippet to count
    """

    limit: int = Field(default=5, ge=1, le=100)
    score_threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class IndexingConfig(BaseModel):
    """Configuration for indexing runs.

    Attributes:
        concurrency: Number of documents indexed at the same time
        manifest_file: Path of the JSON manifest of the last run
    """

    concurrency: int = Field(default=4, ge=1, le=64)
    manifest_file: str = "data/.index_manifest.json"


class ChatConfig(BaseModel):
    """Configuration for the chat LLM (OpenAI-compatible API).

    Attributes:
        model: Chat model identifier
        base_url: API root URL
        api_key: API key (set via env var)
        max_tokens: Completion length limit
        temperature: Sampling temperature
        timeout_seconds: API request timeout
        max_retries: Retries performed by the SDK
    """

    model: str = "llama-3.1-8b-instant"
    base_url: str = "https://api.groq.com/openai/v1"
    api_key: str | None = None
    max_tokens: int = Field(default=1024, ge=1, le=8192)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)
    max_retries: int = Field(default=2, ge=0, le=10)


class CourseRagConfig(BaseModel):
    """Top-level configuration for the course RAG system.

    Attributes:
        chunking: Text chunking configuration
        embedding: Embedding model configuration
        index: Vector store configuration
        retrieval: Search defaults
        indexing: Indexing run configuration
        chat: Chat LLM configuration
    """

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)

    @field_validator("chunking", mode="before")
    @classmethod
    def build_chunking(cls, v: Any) -> Any:
        """Build the frozen dataclass from a mapping."""
        if isinstance(v, dict):
            return ChunkingConfig(**v)
        return v

    @model_validator(mode="after")
    def check_dimensions(self) -> "CourseRagConfig":
        """Embedding and collection dimensions must agree."""
        if self.embedding.dimensions != self.index.dimensions:
            raise ValueError(
                f"embedding.dimensions ({self.embedding.dimensions}) must equal "
                f"index.dimensions ({self.index.dimensions})"
            )
        return self


def default_config_path() -> Path:
    """Return conf/course_rag/ relative to the repo root."""
    repo_root = Path(__file__).parent.parent.parent
    return repo_root / "conf" / "course_rag"


def load_config(
    config_name: str = "default",
    config_path: str | Path | None = None,
    overrides: list[str] | None = None,
) -> CourseRagConfig:
    """Load configuration from Hydra YAML files.

    Args:
        config_name: Name of config file (without .yaml extension)
        config_path: Path to config directory (defaults to conf/course_rag/)
        overrides: List of config overrides (e.g., ["retrieval.limit=10"])

    Returns:
        Validated configuration object

    Raises:
        FileNotFoundError: If the config directory does not exist
        ValidationError: If the composed configuration is invalid

    Example:
        >>> config = load_config("default", overrides=["chunking.chunk_size=800"])
        >>> config.chunking.chunk_size
        800
    """
    config_path = Path(config_path or default_config_path()).resolve()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config directory not found: {config_path}\n" f"Create it with: mkdir -p {config_path}"
        )

    with initialize_config_dir(config_dir=str(config_path), version_base=None, job_name="course_rag"):
        cfg: DictConfig = compose(config_name=config_name, overrides=overrides or [])

    # Convert OmegaConf to dict and validate with Pydantic
    config_dict = OmegaConf.to_container(cfg, resolve=True)
    try:
        return CourseRagConfig.model_validate(config_dict)
    except ValueError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e


def create_default_config() -> dict[str, dict[str, object]]:
    """Create a default configuration dictionary for bootstrapping.

    Returns:
        Dictionary suitable for writing to YAML

    Example:
        >>> import yaml
        >>> config = create_default_config()
        >>> with open("conf/course_rag/default.yaml", "w") as f:
        ...     yaml.dump(config, f)
    """
    return {
        "chunking": {
            "chunk_size": 1000,
            "overlap": 200,
        },
        "embedding": {
            "model": "embed-english-v3.0",
            "dimensions": 1024,
            "batch_size": 96,
            "max_retries": 3,
            "timeout_seconds": 30.0,
            "retry_backoff_seconds": 1.0,
            "base_url": "https://api.cohere.ai",
            "api_key": "${oc.env:COHERE_API_KEY,null}",
        },
        "index": {
            "collection_name": "${oc.env:QDRANT_COLLECTION_NAME,course_content}",
            "dimensions": 1024,
            "distance": "Cosine",
            "url": "${oc.env:QDRANT_URL,null}",
            "api_key": "${oc.env:QDRANT_API_KEY,null}",
            "location": None,
            "timeout_seconds": 30,
            "max_retries": 3,
            "retry_backoff_seconds": 0.5,
        },
        "retrieval": {
            "limit": 5,
            "score_threshold": 0.7,
        },
        "indexing": {
            "concurrency": 4,
            "manifest_file": "data/.index_manifest.json",
        },
        "chat": {
            "model": "llama-3.1-8b-instant",
            "base_url": "https://api.groq.com/openai/v1",
            "api_key": "${oc.env:GROQ_API_KEY,null}",
            "max_tokens": 1024,
            "temperature": 0.7,
            "timeout_seconds": 60.0,
            "max_retries": 2,
        },
    }
