"""
Pydantic data models package.

Contains the standard API error response models.
"""

from .api_error import ApiErrorResponse, ApiErrorType, FieldError, error_type_for_status

__all__ = [
    "ApiErrorResponse",
    "ApiErrorType",
    "FieldError",
    "error_type_for_status",
]
