"""
Custom exceptions for Giya business logic.

Services raise these instead of returning error tuples. Each carries the
HTTP status it maps to, and the app-level error handler renders them in
the standard error envelope (see utils/errors.py).
"""


class GiyaError(Exception):
    """Base exception for all Giya business logic errors."""

    status_code = 400

    def __init__(self, message: str, code: str = "GIYA_ERROR", status_code: int = None, extra: dict = None):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


class NotFoundError(GiyaError):
    """Resource not found."""

    status_code = 404

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        code = resource.upper().replace(' ', '_') + "_NOT_FOUND"
        super().__init__(message, code)


class ValidationError(GiyaError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None, extra: dict = None):
        self.field = field
        code = "MISSING_FIELD" if message.endswith('is required') else "VALIDATION_ERROR"
        super().__init__(message, code, extra=extra)


class AuthenticationError(GiyaError):
    """Missing, expired or invalid credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication required", code: str = "AUTH_REQUIRED"):
        super().__init__(message, code)


class AuthorizationError(GiyaError):
    """User not authorized for this operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized for this operation", code: str = "PERMISSION_DENIED", extra: dict = None):
        super().__init__(message, code, extra=extra)


class DuplicateError(GiyaError):
    """Resource already exists."""

    status_code = 409

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message, "DUPLICATE_ENTRY", status_code=status_code)


class InsufficientPointsError(GiyaError):
    """Not enough points for the operation."""

    def __init__(self, available: int, required: int, message: str = None):
        self.available = available
        self.required = required
        if message is None:
            message = f"Insufficient points. Required: {required}, Available: {available}"
        super().__init__(message, "INSUFFICIENT_POINTS", extra={
            'required': required,
            'available': available,
        })


class LimitExceededError(GiyaError):
    """A redemption or usage limit has been reached."""

    def __init__(self, message: str):
        super().__init__(message, "LIMIT_EXCEEDED")


class InvalidStatusTransitionError(GiyaError):
    """Invalid status transition for a resource."""

    status_code = 409

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ConcurrencyError(GiyaError):
    """A guarded update lost a race with another request."""

    status_code = 409

    def __init__(self, message: str, extra: dict = None):
        super().__init__(message, "STATE_CONFLICT", extra=extra)


class FeatureDisabledError(GiyaError):
    """Feature switched off by configuration."""

    status_code = 403

    def __init__(self, feature: str):
        super().__init__(f"{feature} is currently disabled", "FEATURE_DISABLED")


class ExternalServiceError(GiyaError):
    """Error communicating with an external provider (OCR, push)."""

    status_code = 502

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "EXTERNAL_SERVICE_ERROR")


class ConfigurationError(GiyaError):
    """Application configuration error."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
