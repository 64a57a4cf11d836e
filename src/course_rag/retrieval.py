"""Question answering retrieval over the indexed course content."""

from loguru import logger

from course_rag.config import RetrievalConfig
from course_rag.embedding import EmbeddingClient
from course_rag.errors import ValidationError
from course_rag.index import VectorStore
from course_rag.models import RetrievedSnippet, SearchFilters


class CourseRetriever:
    """Embeds a question and returns the most similar course snippets.

    An empty result is a valid outcome: it means nothing in scope passed the
    relevance threshold.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        config: RetrievalConfig | None = None,
    ):
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.config = config or RetrievalConfig()

    async def retrieve(
        self,
        question: str,
        lesson_id: str | None = None,
        module_id: str | None = None,
        limit: int | None = None,
        score_threshold: float | None = None,
    ) -> list[RetrievedSnippet]:
        """Retrieve ranked snippets for a question.

        Args:
            question: Natural language question
            lesson_id: Restrict results to one lesson
            module_id: Restrict results to one module
            limit: Maximum number of snippets (defaults to config)
            score_threshold: Minimum similarity (defaults to config)

        Returns:
            Snippets ordered by descending score

        Raises:
            ValidationError: If the question is blank
        """
        if not question or not question.strip():
            raise ValidationError("Question cannot be empty")

        limit = limit if limit is not None else self.config.limit
        threshold = score_threshold if score_threshold is not None else self.config.score_threshold

        vector = await self.embedding_client.embed_query(question.strip())
        results = await self.vector_store.search(
            vector,
            limit=limit,
            filters=SearchFilters(lesson_id=lesson_id, module_id=module_id),
            score_threshold=threshold,
        )
        logger.debug(
            f"Retrieved {len(results)} snippets (lesson={lesson_id}, module={module_id}, "
            f"threshold={threshold})"
        )

        return [
            RetrievedSnippet(
                chunk_id=result.id,
                score=result.score,
                lesson_id=result.payload.lesson_id,
                module_id=result.payload.module_id,
                title=result.payload.title,
                content=result.payload.content,
            )
            for result in results
        ]


def format_context(snippets: list[RetrievedSnippet]) -> str:
    """Render snippets as numbered source blocks for a prompt.

    Example:
        >>> format_context([])
        ''
    """
    blocks = []
    for number, snippet in enumerate(snippets, start=1):
        blocks.append(
            f"[{number}] {snippet.title} (lesson: {snippet.lesson_id}, "
            f"module: {snippet.module_id})\n{snippet.content}"
        )
    return "\n\n".join(blocks)
