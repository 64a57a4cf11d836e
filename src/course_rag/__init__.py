"""Retrieval-augmented generation backend for the robotics course site.

This package indexes course lessons into a vector store and retrieves
relevant snippets for the course chatbot.

Architecture:
    - chunking: Character-based splitting at natural break points
    - embedding: Cohere embedding client (document vs. query input types)
    - index: Qdrant vector store with lesson/module payload filters
    - content: Lesson loading from a Markdown/MDX docs tree
    - indexer: Chunk -> embed -> replace-by-lesson indexing workflow
    - manifest: Incremental re-indexing bookkeeping
    - retrieval: Question embedding and filtered similarity search
    - answering: Course assistant grounded on retrieved snippets
    - models: Pydantic schemas for chunks, points, and results

Usage:
    >>> from course_rag import load_config
    >>> config = load_config("default")
    >>> config.retrieval.score_threshold
    0.7
"""

__version__ = "0.1.0"

from course_rag.config import CourseRagConfig, load_config
from course_rag.errors import ConfigError, CourseRagError, UpstreamError, ValidationError
from course_rag.models import CourseDocument, DocumentChunk, SearchResult, VectorPoint

__all__ = [
    "ConfigError",
    "CourseDocument",
    "CourseRagConfig",
    "CourseRagError",
    "DocumentChunk",
    "SearchResult",
    "UpstreamError",
    "ValidationError",
    "VectorPoint",
    "load_config",
]
