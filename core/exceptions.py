"""
Custom exceptions for the order ETL pipeline with structured error context.

Each exception carries context information for debugging and monitoring.
Per-order failures are recorded in the run result, fetch failures abort a
single platform's pull, and nothing escapes the scheduler cycle.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError / RateLimitError (retryable)
    │       └── AuthenticationError / ResourceNotFoundError /
    │           MalformedResponseError (non-retryable)
    ├── TransformationError
    │   ├── ValidationError
    │   └── MappingError
    ├── LoadError
    │   ├── DatabaseError
    │   └── UpsertError
    ├── CheckpointError
    ├── SchedulerError
    │   ├── PlatformNotFoundError
    │   └── PlatformDisabledError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (platform, order id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a platform API pull fails.

    Context should include:
        - platform: Platform name
        - api_url: The API endpoint that failed
        - status_code: HTTP status code (if applicable)
        - page: Page being fetched
        - retry_count: Number of retries attempted
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for data transformation failures."""
    pass


class ValidationError(TransformationError):
    """
    Exception raised when a raw order fails validation.

    Context should include:
        - field_name: Name of the field that failed validation
        - field_value: Value that failed validation
        - order_id: Platform order id
    """
    pass


class MappingError(TransformationError):
    """
    Exception raised when a raw order cannot be mapped to canonical entities.

    Context should include:
        - platform: Platform name
        - order_id: Platform order id
        - field_errors: Dictionary of field-level errors
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, UPSERT, NEXTVAL)
        - entity: Name of the entity
    """
    pass


class UpsertError(LoadError):
    """
    Exception raised when an upsert operation fails.

    Context should include:
        - entity: Name of the entity
        - natural_key: Key of the record being upserted
    """
    pass


# ============================================================================
# Checkpoint Errors
# ============================================================================

class CheckpointError(ETLException):
    """
    Exception raised when watermark management fails.

    Context should include:
        - platform: Platform name
        - checkpoint_value: The watermark that failed
        - operation: Operation that failed (read, write)
    """
    pass


# ============================================================================
# Scheduler Errors
# ============================================================================

class SchedulerError(ETLException):
    """Base exception for scheduler-level failures."""
    pass


class PlatformNotFoundError(SchedulerError):
    """Raised when a trigger names a platform with no registered pipeline."""
    pass


class PlatformDisabledError(SchedulerError):
    """Raised when a trigger names a platform disabled by configuration."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(ETLException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Malformed response bodies
    - Resource not found (HTTP 404)
    """
    pass


# ============================================================================
# Specific Retryable Errors
# ============================================================================

class NetworkError(RetryableError, APIExtractionError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


# ============================================================================
# Specific Non-Retryable Errors
# ============================================================================

class AuthenticationError(NonRetryableError, APIExtractionError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class ResourceNotFoundError(NonRetryableError, APIExtractionError):
    """Resource not found errors (HTTP 404) that should not be retried."""
    pass


class MalformedResponseError(NonRetryableError, APIExtractionError):
    """Response body is not valid JSON or lacks the expected envelope."""
    pass
