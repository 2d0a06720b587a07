"""
Error taxonomy for the generation pipeline.

Three families:
- transient service errors (TextServiceError and subclasses, ClassificationError,
  EmptyGenerationError), retried with bounded backoff before surfacing
- programmer/contract errors (ContractViolationError), fatal and never retried
- PipelineError, the only error the pipeline boundary raises, carrying one of a
  closed set of codes

Malformed generator output is not an error anywhere: RecoveryEngine absorbs it.
"""

from enum import Enum
from typing import Optional


class TextServiceError(Exception):
    """Base class for failures reported by the text-generation capability."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TextServiceTransportError(TextServiceError):
    """Network failure, timeout, or unexpected HTTP status."""


class TextServiceQuotaError(TextServiceError):
    """Quota exhausted (RESOURCE_EXHAUSTED)."""


class TextServiceRateLimitError(TextServiceError):
    """Request was rate limited (HTTP 429)."""


class ClassificationError(Exception):
    """Classifier exhausted its attempt budget without a usable answer."""

    def __init__(self, topic: str, attempts: int, last_error: Optional[BaseException] = None):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"Classification failed after {attempts} attempts{detail}")
        self.topic = topic
        self.attempts = attempts
        self.last_error = last_error


class EmptyGenerationError(Exception):
    """Generator received an empty or near-empty response."""

    def __init__(self, length: int, min_length: int):
        super().__init__(
            f"Text service returned {length} characters (minimum {min_length})"
        )
        self.length = length
        self.min_length = min_length


class ContractViolationError(Exception):
    """A bug upstream of the boundary where this is caught. Never retried."""


class UnknownStrategyError(ContractViolationError):
    """Strategy id is not in the registry."""

    def __init__(self, strategy_id: str):
        super().__init__(f"Unknown strategy id: {strategy_id!r}")
        self.strategy_id = strategy_id


class InvalidGeometryError(ContractViolationError, ValueError):
    """Layer geometry outside the normalized 0-100 range."""


class RecordAlreadyWrittenError(ContractViolationError):
    """A write-once PipelineRecord field was written twice."""

    def __init__(self, field_name: str):
        super().__init__(f"PipelineRecord.{field_name} is write-once and already set")
        self.field_name = field_name


class PipelineErrorCode(str, Enum):
    """Closed set of user-visible pipeline failure reasons."""
    CLASSIFICATION_EXHAUSTED = "classification_exhausted"
    SERVICE_UNAVAILABLE = "service_unavailable"
    EMPTY_GENERATION = "empty_generation"


class PipelineError(Exception):
    """The only failure a pipeline run surfaces to its caller."""

    def __init__(self, code: PipelineErrorCode, message: str, record=None):
        super().__init__(message)
        self.code = code
        self.message = message
        # PipelineRecord of the failed run, for diagnosis
        self.record = record

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}
