"""
Application error taxonomy.

Every failure a chat operation can produce maps onto one of these classes.
Each class knows the HTTP status it surfaces as, so views and the HTTP
client can translate in both directions without a lookup table of their own.

Exception Hierarchy:
    BaseApplicationError (base, 400)
    ├── UnauthorizedError - No valid session (401)
    ├── PermissionDeniedError - Valid session, not allowed (403)
    ├── NotFoundError - Stale or unknown id (404)
    ├── ConflictError - State conflicts, e.g. invalid poll option (409)
    ├── ValidationError - Malformed payload (422)
    ├── RateLimitError - Too many requests (429)
    └── ExternalServiceError - Network/timeout/5xx, retryable (502)

Usage:
    from core.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Message not found", error_code="NOT_FOUND")

    raise ValidationError(
        "Poll needs between 2 and 10 options",
        error_code="INVALID_POLL",
        details={"options": ["Too few options"]},
    )

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, etc.)
        http_status: Status code the error is rendered with
        retryable: Whether a client may retry the same request unchanged
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to the API error body.

        Returns:
            Dict with error and error_code keys, plus details when present

        Example:
            {
                "error": "Option index out of range",
                "error_code": "INVALID_OPTION",
                "details": {"option_index": 4}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class UnauthorizedError(BaseApplicationError):
    """
    Raised when the caller has no valid session.

    Server side this is produced by DRF authentication; the chat client raises
    it when the gateway answers 401 so the application can re-authenticate.
    """

    default_error_code: str = "UNAUTHORIZED"
    http_status: int = 401


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when an authenticated user may not perform an operation.

    Covers both "not a member of this conversation" (NOT_MEMBER) and
    "member, but neither author nor admin" (FORBIDDEN).
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class NotFoundError(BaseApplicationError):
    """Raised when a conversation or message id does not resolve."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Poll option index out of range (INVALID_OPTION)
    - Mutating a tombstoned message (MESSAGE_DELETED)
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ValidationError(BaseApplicationError):
    """
    Raised when a payload is malformed.

    Use for empty messages, malformed polls and attachments, and
    requests against a message that has no poll.

    Note:
        DRF serializer errors are handled by DRF. This class is for
        service-layer validation.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 422


class RateLimitError(BaseApplicationError):
    """
    Raised when rate limit is exceeded.

    Include retry_after in details when it is known.
    """

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    http_status: int = 429
    retryable: bool = True


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a remote call fails for transient reasons.

    The chat client raises this for transport errors, timeouts and 5xx
    responses. These are the only failures a pending send offers to retry.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
    retryable: bool = True


ERROR_CLASSES_BY_STATUS: dict[int, type[BaseApplicationError]] = {
    401: UnauthorizedError,
    403: PermissionDeniedError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}


def error_for_status(
    status_code: int,
    message: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> BaseApplicationError:
    """
    Build the exception matching an HTTP status code.

    Statuses >= 500 map to ExternalServiceError. Other unknown 4xx statuses
    fall back to BaseApplicationError.
    """
    if status_code >= 500:
        error_class: type[BaseApplicationError] = ExternalServiceError
    else:
        error_class = ERROR_CLASSES_BY_STATUS.get(status_code, BaseApplicationError)
    return error_class(message, error_code=error_code, details=details)
