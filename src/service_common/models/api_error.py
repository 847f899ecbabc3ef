"""
Standard API error response models used across all services.

Example JSON representation:

    {
      "type": "VALIDATION_ERROR",
      "message": "Validation failed for 1 field",
      "fieldErrors": [
        {"field": "amount", "message": "Amount must be positive", "rejectedValue": "-100"}
      ]
    }
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiErrorType(str, Enum):
    """
    Error categories returned to clients.

    INVALID_REQUEST and VALIDATION_ERROR map to 400, NOT_FOUND to 404,
    APPLICATION_ERROR to 422, SERVICE_UNAVAILABLE to 503 and INTERNAL_ERROR to 500.
    """

    INVALID_REQUEST = "INVALID_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS_TO_TYPE = {
    400: ApiErrorType.INVALID_REQUEST,
    404: ApiErrorType.NOT_FOUND,
    422: ApiErrorType.APPLICATION_ERROR,
    503: ApiErrorType.SERVICE_UNAVAILABLE,
}


def error_type_for_status(status_code: int) -> ApiErrorType:
    """Map an HTTP status code to the error type clients should expect."""
    if status_code in _STATUS_TO_TYPE:
        return _STATUS_TO_TYPE[status_code]
    if 400 <= status_code < 500:
        return ApiErrorType.INVALID_REQUEST
    return ApiErrorType.INTERNAL_ERROR


class FieldError(BaseModel):
    """Field-level validation error details."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field: str = Field(description="Field that triggered the error", examples=["email"])
    message: str = Field(description="Error message", examples=["must be a valid email address"])
    rejected_value: Any = Field(default=None, description="Value that caused the error", examples=["invalid@email"])

    @classmethod
    def of(cls, field: str, message: str, rejected_value: Any) -> "FieldError":
        return cls(field=field, message=message, rejected_value=rejected_value)


class ApiErrorResponse(BaseModel):
    """Standard API error response format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)

    type: ApiErrorType = Field(
        description="Error type indicating the category and structure of the error",
        examples=["APPLICATION_ERROR"],
    )
    message: Optional[str] = Field(
        default=None,
        description="Human-readable message describing the error",
        examples=["CSV format: fake-bank not supported"],
    )
    code: Optional[str] = Field(
        default=None,
        description="Machine-readable error code for specific application errors (required for APPLICATION_ERROR type)",
        examples=["CSV_PARSING_ERROR"],
    )
    field_errors: Optional[List[FieldError]] = Field(
        default=None,
        description="List of field-level validation errors (populated for VALIDATION_ERROR type)",
    )

    def to_content(self) -> Dict[str, Any]:
        """JSON-ready body with camelCase keys; code and fieldErrors omitted when unset."""
        content: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.code is not None:
            content["code"] = self.code
        if self.field_errors is not None:
            content["fieldErrors"] = [
                error.model_dump(mode="json", by_alias=True) for error in self.field_errors
            ]
        return content
