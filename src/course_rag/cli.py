"""Command line interface for indexing and querying course content.

Usage:
    course-rag index docs/
    course-rag search "How does a PID controller work?" --module module-3
    course-rag ask "Which sensor should I use for obstacle avoidance?"
    course-rag stats
"""

import asyncio
import sys
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import click
from loguru import logger

from course_rag.answering import CourseAssistant
from course_rag.config import CourseRagConfig, load_config
from course_rag.content import load_documents
from course_rag.embedding import CohereEmbedding
from course_rag.errors import CourseRagError
from course_rag.index import QdrantStore
from course_rag.indexer import CourseIndexer
from course_rag.manifest import (
    compute_config_fingerprint,
    load_manifest,
    save_manifest,
    select_changed_documents,
    update_manifest,
)
from course_rag.retrieval import CourseRetriever

T = TypeVar("T")


def configure_logging(level: str) -> None:
    """Send log output to stderr at the requested level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="<level>{message}</level>")


@asynccontextmanager
async def open_clients(config: CourseRagConfig) -> AsyncIterator[tuple[CohereEmbedding, QdrantStore]]:
    """Create the embedding client and vector store, closing both on exit."""
    embedding = CohereEmbedding(config.embedding)
    try:
        store = QdrantStore(config.index)
    except CourseRagError:
        await embedding.aclose()
        raise
    try:
        yield embedding, store
    finally:
        await embedding.aclose()
        await store.aclose()


async def run_index(config: CourseRagConfig, docs_dir: Path, force: bool) -> bool:
    """Index a docs directory, returning True if every lesson succeeded."""
    documents, load_failures = load_documents(docs_dir)
    manifest_path = Path(config.indexing.manifest_file)
    manifest = load_manifest(manifest_path)
    to_index, unchanged = select_changed_documents(
        manifest, documents, compute_config_fingerprint(config), force=force
    )

    async with open_clients(config) as (embedding, store):
        indexer = CourseIndexer(
            embedding, store, config.chunking, concurrency=config.indexing.concurrency
        )
        report = await indexer.index_documents(
            to_index, skipped=unchanged, failed=load_failures
        )

    save_manifest(manifest_path, update_manifest(manifest, config, documents, report))

    for result in report.results:
        line = f"{result.status.value:8} {result.lesson_id}"
        if result.chunk_count:
            line += f" ({result.chunk_count} chunks)"
        if result.error:
            line += f": {result.error}"
        click.echo(line)
    click.echo(
        f"indexed={report.indexed} skipped={report.skipped} failed={report.failed} "
        f"chunks={report.total_chunks}"
    )
    return report.ok


async def run_search(
    config: CourseRagConfig,
    question: str,
    lesson_id: str | None,
    module_id: str | None,
    limit: int | None,
    min_score: float | None,
) -> None:
    async with open_clients(config) as (embedding, store):
        retriever = CourseRetriever(embedding, store, config.retrieval)
        snippets = await retriever.retrieve(
            question, lesson_id=lesson_id, module_id=module_id, limit=limit, score_threshold=min_score
        )

    if not snippets:
        click.echo("No relevant course content found.")
        return
    for rank, snippet in enumerate(snippets, start=1):
        click.echo(f"{rank}. [{snippet.score:.3f}] {snippet.title} ({snippet.chunk_id})")
        preview = snippet.content if len(snippet.content) <= 300 else snippet.content[:300] + "..."
        click.echo(f"   {preview}")


async def run_ask(
    config: CourseRagConfig, question: str, lesson_id: str | None, module_id: str | None
) -> None:
    async with open_clients(config) as (embedding, store):
        assistant = CourseAssistant(CourseRetriever(embedding, store, config.retrieval), config.chat)
        try:
            answer = await assistant.answer(question, lesson_id=lesson_id, module_id=module_id)
        finally:
            await assistant.aclose()

    click.echo(answer.message)
    if answer.sources:
        click.echo("\nSources:")
        for number, source in enumerate(answer.sources, start=1):
            click.echo(f"  [{number}] {source.title} ({source.chunk_id})")


async def run_stats(config: CourseRagConfig) -> None:
    async with open_clients(config) as (_, store):
        stats = await store.stats()
    click.echo(f"collection={stats.collection_name} status={stats.status} points={stats.points_count}")


@click.group()
@click.option("--config-name", default="default", show_default=True, help="Config file name.")
@click.option(
    "--config-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Config directory (defaults to conf/course_rag/).",
)
@click.option("-o", "--override", "overrides", multiple=True, help="Hydra override, e.g. retrieval.limit=10.")
@click.option("--log-level", default="INFO", show_default=True, help="Log level.")
@click.pass_context
def main(
    ctx: click.Context,
    config_name: str,
    config_path: Path | None,
    overrides: tuple[str, ...],
    log_level: str,
) -> None:
    """Index and query course content for the RAG chatbot."""
    configure_logging(log_level)
    try:
        ctx.obj = load_config(config_name, config_path=config_path, overrides=list(overrides))
    except (CourseRagError, FileNotFoundError) as e:
        raise click.ClickException(str(e)) from e


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except CourseRagError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.argument("docs_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Re-index lessons even if unchanged.")
@click.pass_obj
def index(config: CourseRagConfig, docs_dir: Path, force: bool) -> None:
    """Index every lesson document below DOCS_DIR."""
    if not _run(run_index(config, docs_dir, force)):
        sys.exit(1)


@main.command()
@click.argument("question")
@click.option("--lesson", "lesson_id", default=None, help="Restrict to a lesson id.")
@click.option("--module", "module_id", default=None, help="Restrict to a module id.")
@click.option("--limit", type=int, default=None, help="Maximum number of results.")
@click.option("--min-score", type=float, default=None, help="Minimum similarity score.")
@click.pass_obj
def search(
    config: CourseRagConfig,
    question: str,
    lesson_id: str | None,
    module_id: str | None,
    limit: int | None,
    min_score: float | None,
) -> None:
    """Search course content for QUESTION."""
    _run(run_search(config, question, lesson_id, module_id, limit, min_score))


@main.command()
@click.argument("question")
@click.option("--lesson", "lesson_id", default=None, help="Restrict to a lesson id.")
@click.option("--module", "module_id", default=None, help="Restrict to a module id.")
@click.pass_obj
def ask(config: CourseRagConfig, question: str, lesson_id: str | None, module_id: str | None) -> None:
    """Ask the course assistant QUESTION."""
    _run(run_ask(config, question, lesson_id, module_id))


@main.command()
@click.pass_obj
def stats(config: CourseRagConfig) -> None:
    """Show vector collection statistics."""
    _run(run_stats(config))


if __name__ == "__main__":
    main()
