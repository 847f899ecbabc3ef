"""
Application assembly.

Wires the shared middleware, exception handlers and endpoints into a FastAPI
app. Services either build their app with ``create_app`` or call
``install_service_common`` on an app they create themselves:

    app = FastAPI(title="Transaction Service", lifespan=lifespan)
    install_service_common(app)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from . import __version__
from .api.exception_handlers import register_exception_handlers
from .api.healthz import router as healthz_router
from .api.metrics import router as metrics_router
from .api.openapi import install_standard_error_responses
from .config import Settings, get_settings
from .core.masking import SensitiveDataMasker
from .core.metrics import MetricsCollector
from .security.decoder import JwtDecoder
from .security.middleware import JwtAuthenticationMiddleware
from .web.correlation import CorrelationIdMiddleware
from .web.http_logging import HttpLoggingMiddleware


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structured logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        level=level,
    )

    processors = [
        # Binds correlation_id and other request context to every entry
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer()])
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def install_service_common(
    app: FastAPI,
    settings: Optional[Settings] = None,
    jwt_decoder: Optional[Any] = None,
    metrics: Optional[MetricsCollector] = None,
) -> FastAPI:
    """
    Install the shared web stack on app.

    Middleware order, outermost first: correlation ID, HTTP logging (when
    enabled), JWT authentication (when security is enabled). jwt_decoder
    defaults to a JwtDecoder for the configured issuer; pass a
    StaticJwtDecoder in tests.
    """
    logger = structlog.get_logger(__name__)
    settings = settings or get_settings()
    metrics = metrics or MetricsCollector(CollectorRegistry())

    app.state.service_common_settings = settings
    app.state.metrics = metrics

    register_exception_handlers(app)

    # add_middleware wraps, so the last one added runs first
    if settings.security.enabled:
        if jwt_decoder is None:
            jwt_decoder = JwtDecoder(settings.security)
        app.state.jwt_decoder = jwt_decoder
        app.add_middleware(
            JwtAuthenticationMiddleware,
            decoder=jwt_decoder,
            settings=settings.security,
            metrics=metrics,
        )

    if settings.http_logging.enabled:
        masker = SensitiveDataMasker.from_settings(settings.masking)
        app.add_middleware(
            HttpLoggingMiddleware,
            settings=settings.http_logging,
            masker=masker,
            metrics=metrics,
        )

    app.add_middleware(CorrelationIdMiddleware)

    install_standard_error_responses(app)

    app.include_router(healthz_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])

    logger.info(
        "Service common installed",
        service=settings.service_name,
        security_enabled=settings.security.enabled,
        http_logging_enabled=settings.http_logging.enabled,
    )
    return app


def create_lifespan_handler(settings: Settings) -> Any:
    """Create a lifespan handler with access to settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger = structlog.get_logger(__name__)
        logger.info("Starting service", service=settings.service_name, version=app.version)

        try:
            yield
        finally:
            logger.info("Shutting down service", service=settings.service_name)

            decoder = getattr(app.state, "jwt_decoder", None)
            if decoder is not None:
                await decoder.close()

            logger.info("Service shutdown complete", service=settings.service_name)

    return lifespan


def create_app(
    settings: Optional[Settings] = None,
    jwt_decoder: Optional[Any] = None,
    metrics: Optional[MetricsCollector] = None,
    title: Optional[str] = None,
    version: str = __version__,
) -> FastAPI:
    """
    Create and configure a FastAPI application with the shared stack installed.
    """
    settings = settings or get_settings()

    configure_logging(settings.log_level, settings.json_logs)

    app = FastAPI(
        title=title or settings.service_name,
        version=version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=create_lifespan_handler(settings),
    )

    return install_service_common(app, settings=settings, jwt_decoder=jwt_decoder, metrics=metrics)
