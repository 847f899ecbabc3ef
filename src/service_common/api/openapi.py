"""
Standard error responses in the generated OpenAPI document.

Adds ApiErrorResponse-shaped error responses to every operation:

- POST: 400
- PUT/PATCH: 400, 404
- GET/DELETE with path parameters: 404 (list operations never 404)
- All methods: 500, 503
"""

from http import HTTPStatus
from typing import Any, Callable, Dict, List

import structlog
from fastapi import FastAPI
from pydantic.json_schema import models_json_schema

from ..models.api_error import ApiErrorResponse, FieldError, error_type_for_status

logger = structlog.get_logger(__name__)

SCHEMA_REF = "#/components/schemas/ApiErrorResponse"
HTTP_METHODS = {"get", "put", "post", "delete", "options", "head", "patch", "trace"}


def build_error_response(status_code: int) -> Dict[str, Any]:
    """OpenAPI response object with an example ApiErrorResponse for status_code."""
    reason = HTTPStatus(status_code).phrase
    example = ApiErrorResponse(type=error_type_for_status(status_code), message=reason)
    return {
        "description": reason,
        "content": {
            "application/json": {
                "schema": {"$ref": SCHEMA_REF},
                "example": example.to_content(),
            }
        },
    }


def has_path_parameters(operation: Dict[str, Any]) -> bool:
    return any(param.get("in") == "path" for param in operation.get("parameters", []))


def error_statuses_for(method: str, operation: Dict[str, Any]) -> List[int]:
    method = method.lower()
    statuses: List[int] = []
    if method == "post":
        statuses.append(400)
    elif method in ("put", "patch"):
        statuses.extend([400, 404])
    elif method in ("get", "delete") and has_path_parameters(operation):
        statuses.append(404)
    statuses.extend([500, 503])
    return statuses


def add_error_schemas(schema: Dict[str, Any]) -> None:
    _, definitions = models_json_schema(
        [(ApiErrorResponse, "serialization"), (FieldError, "serialization")],
        ref_template="#/components/schemas/{model}",
    )
    components = schema.setdefault("components", {}).setdefault("schemas", {})
    components.update(definitions.get("$defs", {}))


def add_standard_error_responses(schema: Dict[str, Any]) -> None:
    for path_item in schema.get("paths", {}).values():
        for method, operation in path_item.items():
            if method not in HTTP_METHODS:
                continue
            responses = operation.setdefault("responses", {})

            # Validation failures are rendered as 400, not FastAPI's default 422
            default_422 = responses.get("422", {})
            if "HTTPValidationError" in str(default_422.get("content", "")):
                responses.pop("422")

            for status_code in error_statuses_for(method, operation):
                responses[str(status_code)] = build_error_response(status_code)


def install_standard_error_responses(app: FastAPI) -> None:
    """Wrap app.openapi so the generated schema carries the standard error responses."""
    original_openapi: Callable[[], Dict[str, Any]] = app.openapi

    def openapi_with_error_responses() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()
        add_error_schemas(schema)
        add_standard_error_responses(schema)
        app.openapi_schema = schema

        logger.debug("OpenAPI schema generated with standard error responses", paths=len(schema.get("paths", {})))
        return schema

    app.openapi = openapi_with_error_responses
