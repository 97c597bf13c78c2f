"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

HTTP-facing errors are mapped to status codes in exception_handlers.py.
Event pipeline errors are raised inside the consumer worker, where raising
means "leave the message unacknowledged so the transport redelivers it".
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict | None = None,
        code: str = "VAL_VALIDATION_ERROR",
    ) -> None:
        self.details = details or {}
        super().__init__(message, code=code)


class DatabaseError(ApplicationError):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")


# =============================================================================
# Event pipeline
# =============================================================================


class PublishError(ApplicationError):
    """Raised when the queue transport is unreachable or rejects a message."""

    def __init__(self, message: str = "Event publish failed") -> None:
        super().__init__(message, code="EVT_PUBLISH_FAILED")


class MalformedEventError(ApplicationError):
    """Raised when a queued payload cannot be deserialized into an event.

    Poison message: redelivery will not fix it, so it ends up in the
    transport's dead-letter handling.
    """

    def __init__(
        self,
        message: str = "Malformed event payload",
        message_id: str | None = None,
    ) -> None:
        self.message_id = message_id
        super().__init__(message, code="EVT_MALFORMED")


class EventValidationError(ValidationError):
    """Raised when an event deserializes but its user snapshot is missing or empty."""

    def __init__(
        self,
        message: str = "Event failed validation",
        details: dict | None = None,
        message_id: str | None = None,
    ) -> None:
        self.message_id = message_id
        super().__init__(message, details=details, code="EVT_INVALID")


class ProcessingError(ApplicationError):
    """Raised when downstream processing of a valid event fails."""

    def __init__(
        self,
        message: str = "Event processing failed",
        event_id: str | None = None,
    ) -> None:
        self.event_id = event_id
        super().__init__(message, code="EVT_PROCESSING_FAILED")


class RedeliveryExhaustedError(ApplicationError):
    """Raised when a pending delivery has been attempted too many times."""

    def __init__(
        self,
        message: str = "Delivery attempts exhausted",
        message_id: str | None = None,
        deliveries: int | None = None,
    ) -> None:
        self.message_id = message_id
        self.deliveries = deliveries
        super().__init__(message, code="EVT_REDELIVERY_EXHAUSTED")
