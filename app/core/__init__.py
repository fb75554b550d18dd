"""
Core Application - shared infrastructure for the chat service.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Tombstone support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its subclasses, each carrying an HTTP status

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
    core.exceptions has no Django dependency and is shared with the
    chat_client package.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "RateLimitError",
    "ExternalServiceError",
    "UnauthorizedError",
]
