"""Index manifest tracking for incremental re-indexing.

Stores a compact record of the last successful indexing run (configuration
fingerprint plus a content hash per lesson) so callers can skip lessons whose
content and configuration are unchanged.

Use the path configured at CourseRagConfig.indexing.manifest_file to store the
record (defaults to "data/.index_manifest.json").
"""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from course_rag.config import CourseRagConfig
from course_rag.models import CourseDocument, IndexManifest, IndexReport, IndexStatus


def _safe_subset(config: CourseRagConfig) -> dict[str, Any]:
    """Extract a deterministic, non-secret subset of configuration for hashing."""
    # Only fields that change what ends up in the collection
    return {
        "chunking": {
            "chunk_size": config.chunking.chunk_size,
            "overlap": config.chunking.overlap,
        },
        "embedding": {
            "model": config.embedding.model,
            "dimensions": config.embedding.dimensions,
        },
        "index": {
            "collection_name": config.index.collection_name,
            "distance": config.index.distance,
            "url": config.index.url,
            "location": config.index.location,
        },
    }


def compute_config_fingerprint(config: CourseRagConfig) -> str:
    """Compute a stable fingerprint for the current configuration.

    Returns a hex-encoded SHA256 hash of a canonical JSON representation
    of a secret-free subset of the configuration.
    """
    subset = _safe_subset(config)
    payload = json.dumps(subset, sort_keys=True, separators=(",", ":")).encode()
    return hashlib.sha256(payload).hexdigest()


def content_hash(document: CourseDocument) -> str:
    """Hash everything about a document that ends up in its points."""
    parts = [document.lesson_id, document.module_id, document.title, document.content]
    return hashlib.sha256("\x1f".join(parts).encode()).hexdigest()


def load_manifest(path: Path) -> IndexManifest | None:
    """Load the manifest from path if it exists and is valid, else return None."""
    if not path.exists():
        return None
    try:
        return IndexManifest.model_validate_json(path.read_text())
    except (OSError, PydanticValidationError) as e:
        logger.warning(f"Ignoring unreadable index manifest {path}: {e}")
        return None


def save_manifest(path: Path, manifest: IndexManifest) -> None:
    """Persist the manifest to path (create parent directory if needed)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(manifest.model_dump_json(indent=2))


def select_changed_documents(
    manifest: IndexManifest | None,
    documents: list[CourseDocument],
    fingerprint: str,
    *,
    force: bool = False,
) -> tuple[list[CourseDocument], list[CourseDocument]]:
    """Split documents into those needing indexing and those unchanged.

    Everything is re-indexed when there is no manifest, when ``force`` is set,
    or when the configuration fingerprint differs.

    Returns:
        Tuple of (documents to index, unchanged documents)
    """
    if force or manifest is None or manifest.config_fingerprint != fingerprint:
        return list(documents), []

    changed: list[CourseDocument] = []
    unchanged: list[CourseDocument] = []
    for document in documents:
        if manifest.lessons.get(document.lesson_id) == content_hash(document):
            unchanged.append(document)
        else:
            changed.append(document)
    return changed, unchanged


def update_manifest(
    manifest: IndexManifest | None,
    config: CourseRagConfig,
    documents: list[CourseDocument],
    report: IndexReport,
) -> IndexManifest:
    """Return a manifest recording the successfully indexed documents.

    Lessons carried over from a previous manifest are kept only when the
    configuration fingerprint is unchanged. Failed lessons are dropped so
    they are retried on the next run.
    """
    fingerprint = compute_config_fingerprint(config)
    lessons: dict[str, str] = {}
    if manifest is not None and manifest.config_fingerprint == fingerprint:
        lessons.update(manifest.lessons)

    by_id = {document.lesson_id: document for document in documents}
    for result in report.results:
        if result.status == IndexStatus.FAILED:
            lessons.pop(result.lesson_id, None)
            continue
        document = by_id.get(result.lesson_id)
        if document is not None:
            lessons[result.lesson_id] = content_hash(document)

    return IndexManifest(
        built_at=datetime.now(UTC),
        config_fingerprint=fingerprint,
        embedding_model=config.embedding.model,
        collection_name=config.index.collection_name,
        lessons=lessons,
    )
