"""Shared fixtures for course_rag tests."""

import hashlib
import math
import re

import pytest

from course_rag.embedding import EmbeddingPurpose
from course_rag.models import CourseDocument


class KeywordEmbedding:
    """Deterministic bag-of-words embedding used as a test double.

    Each word is hashed into one of ``dimensions`` buckets, so texts sharing
    words have a high cosine similarity.
    """

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions
        self.calls: list[tuple[list[str], EmbeddingPurpose]] = []

    def vector(self, text: str) -> list[float]:
        values = [0.0] * self.dimensions
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimensions
            values[bucket] += 1.0
        if not any(values):
            values[0] = 1.0
        norm = math.sqrt(sum(v * v for v in values))
        return [v / norm for v in values]

    async def embed(
        self, texts: list[str], purpose: EmbeddingPurpose = EmbeddingPurpose.DOCUMENT
    ) -> list[list[float]]:
        self.calls.append((list(texts), purpose))
        return [self.vector(text) for text in texts]

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self.embed([text], EmbeddingPurpose.QUERY)
        return vectors[0]


@pytest.fixture
def keyword_embedding() -> KeywordEmbedding:
    return KeywordEmbedding()


@pytest.fixture
def sample_documents() -> list[CourseDocument]:
    """A few short lessons from two modules."""
    return [
        CourseDocument(
            lesson_id="lesson-2-1",
            module_id="module-2",
            title="Sensor Types and Selection",
            content=(
                "Sensors are the eyes and ears of robots. Common types include distance "
                "sensors such as ultrasonic, infrared and LiDAR, plus IMUs and cameras."
            ),
        ),
        CourseDocument(
            lesson_id="lesson-3-1",
            module_id="module-3",
            title="Motors and Servo Control",
            content=(
                "DC motors provide continuous rotation and are controlled via PWM. Servo "
                "motors provide precise angular positioning. PID control tunes motor speed."
            ),
        ),
        CourseDocument(
            lesson_id="lesson-3-2",
            module_id="module-3",
            title="Kinematics Fundamentals",
            content=(
                "Forward kinematics calculates end-effector position from joint angles. "
                "Inverse kinematics finds joint angles for a desired position."
            ),
        ),
    ]
