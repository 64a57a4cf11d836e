"""Exception classes for the course RAG pipeline.

Three kinds of failure are distinguished so callers can decide what to retry:

- ``ConfigError``: a credential or endpoint is missing. Never retried.
- ``UpstreamError``: a remote service answered with an error status or a
  payload that does not match the expected shape.
- ``ValidationError``: the caller handed us malformed input or configuration.
"""


class CourseRagError(Exception):
    """Base exception for all course RAG errors."""


class ConfigError(CourseRagError):
    """Raised when a required credential or endpoint is not configured."""


class UpstreamError(CourseRagError):
    """Raised when a remote call fails or returns an unexpected payload.

    Attributes:
        status: HTTP status code of the failed response, if there was one
        message: Human-readable description of the failure
    """

    def __init__(self, message: str, status: int | None = None):
        self.message = message
        self.status = status
        prefix = f"[{status}] " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class ValidationError(CourseRagError, ValueError):
    """Raised for malformed documents, queries, or configuration values."""
