"""
Service layer primitives.

- ServiceResult: explicit success/failure wrapper returned by services
- BaseService: logging and transaction helpers shared by service classes

Services encapsulate chat rules separate from views and models. Views handle
HTTP, models hold data, services decide.

Failure style:
    - Lower-level components (MessageStore, ReadStateTracker) raise
      core.exceptions subclasses.
    - The gateway catches those and returns ServiceResult.failure(...) so
      that views only ever branch on ``result.success``.

Usage:
    from core.services import BaseService, ServiceResult

    class ConversationGateway(BaseService):
        @classmethod
        def mark_read(cls, user, conversation_id) -> ServiceResult[None]:
            try:
                ReadStateTracker.mark_read(user, conversation_id)
            except BaseApplicationError as exc:
                return ServiceResult.from_error(exc)
            return ServiceResult.success(None)

    result = ConversationGateway.mark_read(request.user, conversation_id)
    if not result.success:
        return Response(result.to_response(), status=result.status_code)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        status_code: HTTP status a view should render a failure with
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    status_code: int = 200

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        status_code: int = 400,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code
            errors: Field-level errors (for validation failures)
            status_code: HTTP status for the failure

        Example:
            return ServiceResult.failure(
                "You are not a member of this conversation",
                error_code="NOT_MEMBER",
                status_code=403,
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            status_code=status_code,
        )

    @classmethod
    def from_error(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """
        Convert a raised application error into a failed result.

        The error's code and HTTP status carry over. ``details`` become the
        field-level ``errors`` when they are shaped like field errors.
        """
        errors = None
        if exc.details and all(isinstance(v, list) for v in exc.details.values()):
            errors = exc.details
        return cls.failure(
            exc.message,
            error_code=exc.error_code,
            errors=errors,
            status_code=exc.http_status,
        )

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """Create a failed result from an arbitrary exception."""
        if isinstance(exc, BaseApplicationError):
            return cls.from_error(exc)
        return cls.failure(
            str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
            status_code=500,
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert a failure into the API error body.

        Returns:
            {"error": ..., "error_code": ..., "errors": {...}?}
        """
        response: dict[str, Any] = {"error": self.error}
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for stateless service classes.

    Services expose classmethods only. Expected failures are returned as
    ServiceResult; unexpected ones are logged through handle_exception.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        The logger is named ``<module>.<ClassName>`` so log lines can be
        filtered per service.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute the block inside a database transaction.

        Thin wrapper around ``django.db.transaction.atomic`` that keeps
        transaction boundaries visible in service code.
        """
        from django.db import transaction

        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Log an exception and convert it into a failed ServiceResult.

        Application errors are logged without a traceback at WARNING since
        they are expected outcomes.
        """
        logger = cls.get_logger()
        message = f"{context}: {exc}" if context else str(exc)
        if isinstance(exc, BaseApplicationError):
            logger.warning(message)
            return ServiceResult.from_error(exc)
        logger.log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)

    @classmethod
    def validate_required(cls, **kwargs: Any) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns:
            ServiceResult.failure if any value is None or blank, else None
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
                status_code=422,
            )
        return None
