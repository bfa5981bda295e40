"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ValidationException(AppException):
    """Malformed input rejected before any I/O."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class StructuralException(AppException):
    """Raw storage record could not be turned into an appointment."""

    def __init__(self, message: str = "Malformed record", field: str | None = None):
        """Initialize with 500 status code and the offending field, if known."""
        self.field = field
        super().__init__(message, status_code=500)


class InvalidTransitionException(AppException):
    """Requested status is not reachable from the current one."""

    def __init__(self, current: str, requested: str):
        """Initialize with 409 status code, naming both states."""
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change appointment status from '{current}' to '{requested}'",
            status_code=409,
        )


class StorageException(AppException):
    """Opaque backend failure. Safe to retry at the caller's discretion."""

    def __init__(self, message: str = "Storage backend failure"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
