"""Course content loading utilities.

Reads lesson documents (Markdown or MDX with optional YAML front matter) from
a docs directory and prepares them for vector indexing.

Layout conventions:
    docs/
        intro.md                 -> lesson "intro", module "intro"
        module-1/lesson-1-1.md   -> lesson "lesson-1-1", module "module-1"

Front matter keys ``id``, ``module`` and ``title`` override the derived values.
"""

import re
from pathlib import Path
from typing import Any

import yaml
from bs4 import BeautifulSoup
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from course_rag.errors import CourseRagError, ValidationError
from course_rag.models import CourseDocument, DocumentIndexResult, IndexStatus

DOC_SUFFIXES = {".md", ".mdx"}

_FRONT_MATTER = re.compile(r"\A---\s*\n(.*?)\n---\s*(?:\n|\Z)", re.DOTALL)
_MDX_STATEMENT = re.compile(r"^(import|export)\s.*$", re.MULTILINE)
_HEADING = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Separate YAML front matter from the document body.

    Returns:
        Tuple of (front matter mapping, body text)

    Raises:
        ValidationError: If the front matter is not a YAML mapping
    """
    match = _FRONT_MATTER.match(text)
    if not match:
        return {}, text

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid front matter: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("Front matter must be a mapping")
    return data, text[match.end() :]


def clean_markdown(text: str) -> str:
    """Strip MDX statements and inline HTML/JSX tags, keeping the text.

    Example:
        >>> clean_markdown("import X from './x';\\n\\nUse a <b>servo</b> motor.")
        'Use a servo motor.'
    """
    if not text or not text.strip():
        return ""

    text = _MDX_STATEMENT.sub("", text)
    if "<" in text:
        text = BeautifulSoup(text, "html.parser").get_text()

    # Collapse runs of blank lines but keep paragraph breaks for the chunker
    lines = [line.rstrip() for line in text.strip().splitlines()]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines))


def should_index_file(path: Path) -> bool:
    """Determine if a file is a lesson document.

    Files and directories starting with ``_`` or ``.`` are partials or hidden.
    """
    if path.suffix.lower() not in DOC_SUFFIXES:
        return False
    return not any(part.startswith(("_", ".")) for part in path.parts)


def load_document(path: Path, docs_root: Path) -> CourseDocument | None:
    """Read a lesson document.

    Args:
        path: Document file
        docs_root: Root of the docs tree, used to derive the module id

    Returns:
        CourseDocument, or None if the document has no text
    """
    front_matter, body = split_front_matter(path.read_text(encoding="utf-8"))
    content = clean_markdown(body)
    if not content:
        return None

    lesson_id = str(front_matter.get("id") or path.stem)

    relative = path.relative_to(docs_root)
    module_id = front_matter.get("module")
    if not module_id:
        module_id = relative.parts[0] if len(relative.parts) > 1 else lesson_id

    title = front_matter.get("title")
    if not title:
        heading = _HEADING.search(content)
        title = heading.group(1) if heading else lesson_id.replace("-", " ").title()

    return CourseDocument(
        lesson_id=lesson_id, module_id=str(module_id), title=str(title), content=content
    )


def load_documents(
    docs_dir: str | Path,
) -> tuple[list[CourseDocument], list[DocumentIndexResult]]:
    """Load every lesson document below a docs directory.

    A file that cannot be decoded or parsed is reported as a failed result
    (keyed by its file stem) and does not stop the others from loading.

    Args:
        docs_dir: Root of the docs tree

    Returns:
        Tuple of (documents ordered by file path, failed results)

    Raises:
        FileNotFoundError: If the directory does not exist
        ValidationError: If two files share a lesson id
    """
    root = Path(docs_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Docs directory not found: {root}")

    documents: list[CourseDocument] = []
    failures: list[DocumentIndexResult] = []
    seen: dict[str, Path] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file() or not should_index_file(path.relative_to(root)):
            continue

        try:
            document = load_document(path, root)
        except (CourseRagError, UnicodeDecodeError, PydanticValidationError) as e:
            logger.error(f"Failed to load {path.relative_to(root)}: {e}")
            failures.append(
                DocumentIndexResult(lesson_id=path.stem, status=IndexStatus.FAILED, error=str(e))
            )
            continue
        if document is None:
            logger.info(f"Skipped {path.relative_to(root)} (no text content)")
            continue
        if document.lesson_id in seen:
            raise ValidationError(
                f"Duplicate lesson id {document.lesson_id!r} in {path} and {seen[document.lesson_id]}"
            )
        seen[document.lesson_id] = path
        documents.append(document)

    logger.info(
        f"Loaded {len(documents)} lesson documents from {root} ({len(failures)} failed)"
    )
    return documents, failures
