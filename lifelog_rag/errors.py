"""
Typed failures raised by the query pipeline.

Every failure is terminal for the current request. None of them are
retried inside the engine; callers decide on retries using the upstream
status and message carried on the exception.
"""

from typing import Optional


class RAGError(Exception):
    """Base class for pipeline failures."""

    stage = "rag"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.cause = cause

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "stage": self.stage,
            "message": self.message,
            "upstream_status": self.upstream_status,
        }


class EmbeddingFailure(RAGError):
    """The query text could not be vectorized."""

    stage = "embedding"


class RetrievalFailure(RAGError):
    """The vector index call errored. Zero matches is not a failure."""

    stage = "retrieval"


class CompletionFailure(RAGError):
    """The generation call errored."""

    stage = "completion"
