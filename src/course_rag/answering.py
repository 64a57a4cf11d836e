"""Course assistant answering student questions with retrieved context.

The chat model is reached through an OpenAI-compatible chat completions API
(Groq by default).
"""

from loguru import logger
from openai import APIError, APIStatusError, AsyncOpenAI

from course_rag.config import ChatConfig
from course_rag.errors import ConfigError, UpstreamError, ValidationError
from course_rag.models import ChatAnswer, RetrievedSnippet
from course_rag.retrieval import CourseRetriever, format_context

SYSTEM_PROMPT = """You are an expert teaching assistant for the "Physical AI & Humanoid Robotics" course. Your role is to help students understand robotics concepts, from basic hardware to advanced AI integration.

Key guidelines:
1. Be encouraging and supportive - this course is for beginners to intermediate learners
2. Explain technical concepts in simple terms, using analogies when helpful
3. If a question is outside the scope of robotics/AI, acknowledge this and redirect to relevant topics
4. Encourage hands-on learning and experimentation
5. For code examples, use Python as the primary language, but also mention Arduino/C++ for hardware
6. Always prioritize safety when discussing physical robotics projects
7. Be concise but thorough - aim for clear, actionable answers

If you don't know something specific to this course, provide general robotics/AI knowledge and suggest the student explore the relevant module."""

CONTEXT_TEMPLATE = """Relevant course material, most relevant first:

{context}

Base your answer on this material when it applies and cite sources by their number, e.g. [1]."""

FALLBACK_MESSAGE = "I apologize, I could not generate a response."


def build_messages(message: str, snippets: list[RetrievedSnippet]) -> list[dict[str, str]]:
    """Assemble the chat messages for a question and its retrieved snippets."""
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    if snippets:
        messages.append(
            {"role": "system", "content": CONTEXT_TEMPLATE.format(context=format_context(snippets))}
        )
    messages.append({"role": "user", "content": message})
    return messages


class CourseAssistant:
    """Answers questions about the course using retrieved snippets."""

    def __init__(
        self,
        retriever: CourseRetriever,
        config: ChatConfig,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize the assistant.

        Args:
            retriever: Retriever used to ground answers
            config: Chat model configuration
            client: Optional preconfigured OpenAI-compatible client
        """
        self.retriever = retriever
        self.config = config
        self._client = client
        if self._client is None and config.api_key:
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
                max_retries=config.max_retries,
            )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def answer(
        self,
        message: str,
        lesson_id: str | None = None,
        module_id: str | None = None,
        session_id: str | None = None,
    ) -> ChatAnswer:
        """Answer a student question.

        Args:
            message: Student question
            lesson_id: Restrict retrieval to one lesson
            module_id: Restrict retrieval to one module
            session_id: Caller's chat session id

        Returns:
            Answer with the snippets it was grounded on

        Raises:
            ValidationError: If the message is blank
            ConfigError: If no chat API key is configured
            UpstreamError: For chat API failures
        """
        if not message or not message.strip():
            raise ValidationError("Message is required")
        if self._client is None:
            raise ConfigError("GROQ_API_KEY is required for the chat assistant")

        snippets = await self.retriever.retrieve(
            message, lesson_id=lesson_id, module_id=module_id
        )

        try:
            completion = await self._client.chat.completions.create(
                model=self.config.model,
                messages=build_messages(message.strip(), snippets),  # type: ignore[arg-type]
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except APIStatusError as e:
            logger.error(f"Chat API returned {e.status_code}: {e.message}")
            raise UpstreamError(f"Chat API error: {e.message}", status=e.status_code) from e
        except APIError as e:
            logger.error(f"Chat API request failed: {e}")
            raise UpstreamError(f"Chat API request failed: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        logger.debug(f"Answered with {len(snippets)} sources using {self.config.model}")

        return ChatAnswer(
            message=content or FALLBACK_MESSAGE,
            sources=snippets,
            session_id=session_id or "default",
        )
