"""
Tests for API error response models and exception types.
"""

import pytest

from service_common.core.exceptions import (
    BusinessException,
    ClientException,
    HardDeleteNotAllowedError,
    InvalidRequestException,
    ResourceNotFoundException,
    ServiceException,
    ServiceUnavailableException,
)
from service_common.models.api_error import (
    ApiErrorResponse,
    ApiErrorType,
    FieldError,
    error_type_for_status,
)


class TestApiErrorResponse:
    """Test ApiErrorResponse serialization."""

    def test_minimal_response_omits_optional_fields(self) -> None:
        """Test code and fieldErrors are omitted when unset."""
        response = ApiErrorResponse(type=ApiErrorType.NOT_FOUND, message="Transaction 42 not found")

        assert response.to_content() == {"type": "NOT_FOUND", "message": "Transaction 42 not found"}

    def test_business_error_includes_code(self) -> None:
        """Test APPLICATION_ERROR carries its code."""
        response = ApiErrorResponse(
            type=ApiErrorType.APPLICATION_ERROR,
            message="CSV format: fake-bank not supported",
            code="CSV_PARSING_ERROR",
        )

        content = response.to_content()
        assert content["type"] == "APPLICATION_ERROR"
        assert content["code"] == "CSV_PARSING_ERROR"
        assert "fieldErrors" not in content

    def test_field_errors_use_camel_case(self) -> None:
        """Test field errors serialize rejectedValue, including null values."""
        response = ApiErrorResponse(
            type=ApiErrorType.VALIDATION_ERROR,
            message="Validation failed for 2 fields",
            field_errors=[
                FieldError.of("amount", "Amount must be positive", -100),
                FieldError.of("email", "Field required", None),
            ],
        )

        content = response.to_content()
        assert content["fieldErrors"] == [
            {"field": "amount", "message": "Amount must be positive", "rejectedValue": -100},
            {"field": "email", "message": "Field required", "rejectedValue": None},
        ]

    def test_alias_dump(self) -> None:
        """Test model_dump by alias produces camelCase keys."""
        response = ApiErrorResponse(type=ApiErrorType.VALIDATION_ERROR, message="x", field_errors=[])

        dumped = response.model_dump(by_alias=True)
        assert "fieldErrors" in dumped
        assert dumped["type"] == "VALIDATION_ERROR"


class TestErrorTypeForStatus:
    """Test HTTP status to error type mapping."""

    @pytest.mark.parametrize(
        "status_code,expected",
        [
            (400, ApiErrorType.INVALID_REQUEST),
            (404, ApiErrorType.NOT_FOUND),
            (422, ApiErrorType.APPLICATION_ERROR),
            (503, ApiErrorType.SERVICE_UNAVAILABLE),
            (405, ApiErrorType.INVALID_REQUEST),
            (409, ApiErrorType.INVALID_REQUEST),
            (500, ApiErrorType.INTERNAL_ERROR),
            (502, ApiErrorType.INTERNAL_ERROR),
        ],
    )
    def test_mapping(self, status_code: int, expected: ApiErrorType) -> None:
        assert error_type_for_status(status_code) == expected


class TestServiceExceptions:
    """Test the exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_class,status_code,error_type",
        [
            (ServiceException, 500, ApiErrorType.INTERNAL_ERROR),
            (InvalidRequestException, 400, ApiErrorType.INVALID_REQUEST),
            (ResourceNotFoundException, 404, ApiErrorType.NOT_FOUND),
            (ClientException, 503, ApiErrorType.SERVICE_UNAVAILABLE),
            (ServiceUnavailableException, 503, ApiErrorType.SERVICE_UNAVAILABLE),
        ],
    )
    def test_status_and_type(self, exc_class, status_code: int, error_type: ApiErrorType) -> None:
        exc = exc_class("failure")

        assert isinstance(exc, ServiceException)
        assert exc.status_code == status_code
        assert exc.error_type == error_type
        assert exc.message == "failure"
        assert exc.code is None

    def test_business_exception_code(self) -> None:
        """Test BusinessException exposes its code and maps to 422."""
        exc = BusinessException("Budget exceeded", "BUDGET_EXCEEDED")

        assert exc.status_code == 422
        assert exc.error_type == ApiErrorType.APPLICATION_ERROR
        assert exc.code == "BUDGET_EXCEEDED"
        assert str(exc) == "Budget exceeded"

    def test_cause_is_preserved(self) -> None:
        """Test raise-from keeps the underlying cause."""
        with pytest.raises(ClientException) as exc_info:
            try:
                raise ConnectionError("refused")
            except ConnectionError as e:
                raise ClientException("Currency service failed") from e

        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_hard_delete_error_is_not_implemented(self) -> None:
        assert issubclass(HardDeleteNotAllowedError, NotImplementedError)
