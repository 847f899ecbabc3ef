"""
Default exception handlers.

Every handled exception is rendered as an ApiErrorResponse so clients of all
services can parse errors the same way:

    {"type": "NOT_FOUND", "message": "Transaction 42 not found"}

Services can register more specific handlers after these to override them.
"""

from typing import Any, List, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.exceptions import AccessDeniedError, AuthenticationError, ServiceException
from ..models.api_error import ApiErrorResponse, ApiErrorType, FieldError, error_type_for_status
from ..web.correlation import CORRELATION_ID_HEADER, CORRELATION_ID_KEY

logger = structlog.get_logger(__name__)


def get_root_cause(exc: BaseException) -> Optional[BaseException]:
    """Innermost chained exception, or None when exc has no cause."""
    root = None
    current = exc.__cause__ or exc.__context__
    seen = {id(exc)}
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        root = current
        current = current.__cause__ or current.__context__
    return root


def _record(request: Request, error_type: ApiErrorType) -> None:
    metrics = getattr(request.app.state, "metrics", None)
    if metrics:
        metrics.record_handled_exception(error_type.value)


def _log_handled(
    request: Request,
    exc: BaseException,
    error_type: ApiErrorType,
    message: Optional[str],
    code: Optional[str] = None,
) -> None:
    root_cause = get_root_cause(exc)
    logger.warning(
        "Handled exception",
        type=error_type.value,
        code=code,
        exception=type(exc).__name__,
        root_cause=type(root_cause).__name__ if root_cause else None,
        message=message,
        path=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    _record(request, error_type)


def _error_response(
    status_code: int,
    error_type: ApiErrorType,
    message: Optional[str],
    code: Optional[str] = None,
    field_errors: Optional[List[FieldError]] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = ApiErrorResponse(type=error_type, message=message, code=code, field_errors=field_errors)
    return JSONResponse(status_code=status_code, content=body.to_content(), headers=headers)


async def service_exception_handler(request: Request, exc: ServiceException) -> JSONResponse:
    """Handle ServiceException and its subclasses."""
    _log_handled(request, exc, exc.error_type, exc.message, exc.code)
    return _error_response(exc.status_code, exc.error_type, exc.message, exc.code)


def _field_name(loc: Any) -> str:
    parts = [str(part) for part in loc]
    if parts and parts[0] == "body":
        parts = parts[1:]
    return ".".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation failures.

    Body validation errors become VALIDATION_ERROR with one FieldError per
    field. Missing or mistyped query, path and header parameters become
    INVALID_REQUEST.
    """
    errors = exc.errors()
    body_errors = [error for error in errors if error.get("loc") and error["loc"][0] == "body"]

    if not body_errors:
        message = "; ".join(
            f"{_field_name(error.get('loc', ()))}: {error.get('msg')}" for error in errors
        ) or "Invalid request"
        _log_handled(request, exc, ApiErrorType.INVALID_REQUEST, message)
        return _error_response(400, ApiErrorType.INVALID_REQUEST, message)

    field_errors = [
        FieldError.of(
            field=_field_name(error["loc"]),
            message=error.get("msg", ""),
            # Missing fields report the enclosing object as input
            rejected_value=None if error.get("type") == "missing" else error.get("input"),
        )
        for error in body_errors
    ]
    count = len(field_errors)
    message = f"Validation failed for {count} field{'s' if count != 1 else ''}"

    logger.warning(
        "Handled exception",
        type=ApiErrorType.VALIDATION_ERROR.value,
        exception=type(exc).__name__,
        field_count=count,
        message=message,
        path=request.url.path,
        method=request.method,
    )
    _record(request, ApiErrorType.VALIDATION_ERROR)

    return _error_response(400, ApiErrorType.VALIDATION_ERROR, message, field_errors=field_errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_type = error_type_for_status(exc.status_code)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    _log_handled(request, exc, error_type, message)
    return _error_response(exc.status_code, error_type, message, headers=getattr(exc, "headers", None))


async def authentication_exception_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.warning(
        "Authentication required",
        path=request.url.path,
        method=request.method,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def access_denied_exception_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    logger.warning(
        "Access denied",
        path=request.url.path,
        method=request.method,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Runs outside the user middleware stack, so the correlation ID is taken from
    request state and re-applied to the log entry and the response.
    """
    correlation_id = getattr(request.state, CORRELATION_ID_KEY, None)
    message = str(exc) or type(exc).__name__

    with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
        _log_handled(request, exc, ApiErrorType.INTERNAL_ERROR, message)

    headers = {CORRELATION_ID_HEADER: correlation_id} if correlation_id else None
    return _error_response(500, ApiErrorType.INTERNAL_ERROR, message, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the default handlers on app."""
    app.add_exception_handler(ServiceException, service_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(AuthenticationError, authentication_exception_handler)
    app.add_exception_handler(AccessDeniedError, access_denied_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
