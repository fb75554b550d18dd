"""
Tests for the application error taxonomy.
"""

import pytest

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
    error_for_status,
)


class TestBaseApplicationError:
    def test_defaults(self):
        error = NotFoundError("Message not found")

        assert error.error_code == "NOT_FOUND"
        assert error.details == {}
        assert error.http_status == 404
        assert str(error) == "[NOT_FOUND] Message not found"

    def test_to_dict_includes_details_only_when_present(self):
        bare = ConflictError("Option out of range", error_code="INVALID_OPTION")
        detailed = ConflictError(
            "Option out of range",
            error_code="INVALID_OPTION",
            details={"option_index": 4},
        )

        assert bare.to_dict() == {
            "error": "Option out of range",
            "error_code": "INVALID_OPTION",
        }
        assert detailed.to_dict()["details"] == {"option_index": 4}

    def test_only_transient_errors_are_retryable(self):
        assert ExternalServiceError("down").retryable
        assert RateLimitError("slow down").retryable
        assert not ValidationError("bad").retryable
        assert not PermissionDeniedError("no").retryable


class TestErrorForStatus:
    @pytest.mark.parametrize(
        "status_code,error_class",
        [
            (401, UnauthorizedError),
            (403, PermissionDeniedError),
            (404, NotFoundError),
            (409, ConflictError),
            (422, ValidationError),
            (429, RateLimitError),
            (500, ExternalServiceError),
            (504, ExternalServiceError),
        ],
    )
    def test_maps_known_statuses(self, status_code, error_class):
        error = error_for_status(status_code, "boom")

        assert type(error) is error_class
        assert error.message == "boom"

    def test_unknown_client_error_falls_back_to_base(self):
        error = error_for_status(418, "teapot", error_code="TEAPOT")

        assert type(error) is BaseApplicationError
        assert error.error_code == "TEAPOT"
