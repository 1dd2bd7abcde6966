"""Custom exception classes for the application.

Defines domain-specific exceptions raised by the generation pipelines, the
plan stores and the request guards. Each carries an HTTP status and a
machine-readable `code` so the exception handlers can turn a typed failure
into a specific rejection reason.
"""

from typing import Optional, Any, Dict, List


class AppException(Exception):
    """Base exception class for all application exceptions.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error details.
        code: Stable rejection reason string for clients.
    """

    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code:
            self.code = code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Exception raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        """Initialize not found error.

        Args:
            resource: Type of resource (e.g., 'User', 'DietPlan').
            identifier: ID or identifier that was not found.
        """
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, status_code=404, details={"resource": resource, "id": identifier})


class ValidationError(AppException):
    """Exception raised when input validation fails."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=400, details=details)


class DatabaseError(AppException):
    """Exception raised when database operations fail."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, status_code=500, details=details)


class ConfigurationError(AppException):
    """Exception raised when application configuration is invalid."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, status_code=500, details=details)


class IncompleteProfileError(AppException):
    """Raised when a profile lacks the biometrics needed for generation.

    Retrying cannot succeed until the profile is corrected.
    """

    code = "INCOMPLETE_PROFILE"

    def __init__(self, missing_fields: List[str]):
        self.missing_fields = list(missing_fields)
        message = "User profile incomplete. Please update age, weight, and height."
        super().__init__(message, status_code=400, details={"missing_fields": self.missing_fields})


class UpstreamError(AppException):
    """Raised when the LLM provider fails or returns an unusable body."""

    code = "AI_UNAVAILABLE"

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        self.upstream_status = upstream_status
        details = {"upstream_status": upstream_status} if upstream_status is not None else {}
        super().__init__(message, status_code=503, details=details)


class ParseError(AppException):
    """Raised when the AI response holds no usable JSON object."""

    code = "AI_PARSE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=502, details=details)


class InvalidStructureError(ParseError):
    """Raised when parsed AI JSON does not have the expected shape."""

    code = "AI_INVALID_STRUCTURE"


class ConflictError(AppException):
    """Raised for a duplicate diet plan or an overlapping workout cycle."""

    code = "CONFLICT"

    def __init__(self, message: str, existing_id: Optional[Any] = None):
        details = {"existing_id": existing_id} if existing_id is not None else {}
        super().__init__(message, status_code=409, details=details)


class RateLimitExceededError(AppException):
    """Raised when a caller exceeds a sliding-window quota."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, code: Optional[str] = None, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        details = {"retry_after": retry_after} if retry_after is not None else {}
        super().__init__(message, status_code=429, details=details, code=code)


class UnauthorizedError(AppException):
    """Raised when a request carries no valid identity."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class ForbiddenError(AppException):
    """Raised when an identity lacks the required role."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, status_code=403)


class SubscriptionRequiredError(AppException):
    """Raised when a non-admin identity has no active subscription."""

    code = "SUBSCRIPTION_REQUIRED"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=403, details=details, code=code)
