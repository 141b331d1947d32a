"""
Exception hierarchy for ReelRecall.

Errors fall into three groups:

- Transient external failures (embedding, vector store, language model,
  video analysis). These are retried by the embedding client and the
  ingestion queue, except inputs the provider can never accept
  (``EmbeddingInputError``).
- Configuration errors (missing credentials, dimension mismatch). Fatal,
  never retried.
- Everything else is a programming error and propagates unchanged.

Malformed language-model output is not represented here: the query
enhancer and answer generator recover from it locally.
"""

from typing import Any, Dict, Optional


class ReelRecallError(Exception):
    """Base exception for all ReelRecall errors."""

    error_code = "reelrecall_error"
    # Whether the ingestion queue schedules another attempt
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API error envelope."""
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ReelRecallError):
    """Missing credentials, dimension mismatch and similar startup faults."""

    error_code = "configuration_error"


class TransientServiceError(ReelRecallError):
    """An external call failed in a way that may succeed on retry."""

    error_code = "service_unavailable"
    retryable = True


class EmbeddingError(TransientServiceError):
    error_code = "embedding_error"


class EmbeddingInputError(EmbeddingError):
    """The provider cannot embed this input (too long, rejected request)."""

    error_code = "embedding_input_error"
    retryable = False


class RateLimitExceeded(EmbeddingError):
    """Raised by a non-blocking rate limiter when the window is full."""

    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message, details={"retry_after": round(retry_after, 3)})
        self.retry_after = retry_after


class VectorStoreError(TransientServiceError):
    error_code = "vector_store_error"


class LanguageModelError(TransientServiceError):
    error_code = "language_model_error"


class VideoAnalysisError(TransientServiceError):
    error_code = "video_analysis_error"


class NotificationError(TransientServiceError):
    error_code = "notification_error"
