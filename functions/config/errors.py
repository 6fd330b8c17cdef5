"""Scope estimator error handling.

Custom exceptions and error codes for the estimation pipeline.

Propagation policy:
- ClassificationDegraded never leaves the intent classifier; it only
  describes why the default classification was used.
- NoMatchingStandardError never leaves the orchestrator; it becomes a
  clarification inside the generated scope.
- ValidationError, PersistenceError and LLMError propagate to the caller.
"""

from typing import Optional, Dict, Any


class ErrorCode:
    """Error code constants."""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    EMPTY_REQUEST_TEXT = "EMPTY_REQUEST_TEXT"
    UNKNOWN_QUESTION = "UNKNOWN_QUESTION"
    INVALID_ANSWER = "INVALID_ANSWER"

    # Classification (degraded, never surfaced as failures)
    CLASSIFICATION_DEGRADED = "CLASSIFICATION_DEGRADED"

    # Estimation
    NO_MATCHING_STANDARD = "NO_MATCHING_STANDARD"
    SESSION_NOT_READY = "SESSION_NOT_READY"
    SCOPE_NOT_FOUND = "SCOPE_NOT_FOUND"

    # Persistence
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    PERSISTENCE_WRITE_FAILED = "PERSISTENCE_WRITE_FAILED"
    JOB_ALREADY_RECORDED = "JOB_ALREADY_RECORDED"

    # LLM Errors
    LLM_ERROR = "LLM_ERROR"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"


class EstimatorError(Exception):
    """Base exception for scope estimator errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(EstimatorError):
    """Malformed request text, unknown question, or an invalid answer."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: str = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class ClassificationDegraded(EstimatorError):
    """Oracle failure or timeout that was resolved with the default classification."""

    def __init__(self, reason: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.CLASSIFICATION_DEGRADED,
            message=message,
            details={**(details or {}), "reason": reason}
        )
        self.reason = reason


class NoMatchingStandardError(EstimatorError):
    """No production standard row covers the classified service."""

    def __init__(self, service_type: str, subcategory: str, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.NO_MATCHING_STANDARD,
            message=f"No production standard found for {service_type} / {subcategory}",
            details={**(details or {}), "service_type": service_type, "subcategory": subcategory}
        )
        self.service_type = service_type
        self.subcategory = subcategory


class PersistenceError(EstimatorError):
    """Store read or write failure."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.PERSISTENCE_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)


class LLMError(EstimatorError):
    """Language model transport or response failure."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.LLM_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(code=code, message=message, details=details)
