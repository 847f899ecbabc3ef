"""
Pytest configuration and shared fixtures.

Contains common test fixtures and a sample application exercising the
shared middleware and exception handlers.
"""

import os
from typing import Any, Dict, Generator, Optional
from unittest.mock import patch

import pytest
import structlog
from fastapi import Depends, FastAPI, Query
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry
from pydantic import BaseModel, Field

from service_common.app import install_service_common
from service_common.config import (
    HttpLoggingSettings,
    MaskingSettings,
    SecuritySettings,
    Settings,
    get_settings,
    reload_settings,
)
from service_common.core.exceptions import (
    BusinessException,
    ClientException,
    InvalidRequestException,
    ResourceNotFoundException,
    ServiceException,
    ServiceUnavailableException,
)
from service_common.core.metrics import MetricsCollector
from service_common.db.entities import reset_auditor_provider
from service_common.security.context import clear_authentication, get_all_claims
from service_common.security.dependencies import require_authenticated, require_scopes
from service_common.security.jwt import JwtAuthentication
from service_common.security.testing import StaticJwtDecoder
from service_common.web.correlation import get_correlation_id

TEST_ISSUER = "https://test-issuer.example.com/"
TEST_AUDIENCE = "https://test-api.example.com"


class ItemRequest(BaseModel):
    name: str = Field(min_length=1)
    amount: int = Field(gt=0)


def build_sample_app(
    settings: Settings,
    jwt_decoder: Optional[Any] = None,
    metrics: Optional[MetricsCollector] = None,
) -> FastAPI:
    """FastAPI app with routes raising each handled error type."""
    app = FastAPI(title="Sample Service")

    @app.get("/api/items")
    async def list_items(limit: int = Query(...)) -> Dict[str, Any]:
        return {"items": [], "limit": limit}

    @app.get("/api/items/{item_id}")
    async def get_item(item_id: int) -> Dict[str, Any]:
        if item_id == 404:
            raise ResourceNotFoundException(f"Item {item_id} not found")
        return {"id": item_id}

    @app.post("/api/items")
    async def create_item(item: ItemRequest) -> Dict[str, Any]:
        return {"name": item.name, "amount": item.amount}

    @app.put("/api/items/{item_id}")
    async def update_item(item_id: int, item: ItemRequest) -> Dict[str, Any]:
        return {"id": item_id, "name": item.name}

    @app.delete("/api/items/{item_id}")
    async def delete_item(item_id: int) -> Dict[str, Any]:
        return {"deleted": item_id}

    @app.post("/api/echo")
    async def echo(payload: Dict[str, Any]) -> Dict[str, Any]:
        return payload

    @app.get("/api/errors/invalid")
    async def invalid() -> None:
        raise InvalidRequestException("Bad input")

    @app.get("/api/errors/business")
    async def business() -> None:
        raise BusinessException("CSV format: fake-bank not supported", "CSV_PARSING_ERROR")

    @app.get("/api/errors/client")
    async def client_error() -> None:
        raise ClientException("Currency service failed")

    @app.get("/api/errors/unavailable")
    async def unavailable() -> None:
        raise ServiceUnavailableException("Database unavailable")

    @app.get("/api/errors/service")
    async def service_error() -> None:
        raise ServiceException("Something failed")

    @app.get("/api/errors/unexpected")
    async def unexpected() -> None:
        try:
            raise KeyError("missing")
        except KeyError as e:
            raise RuntimeError("Unexpected failure") from e

    @app.get("/api/context")
    async def context() -> Dict[str, Any]:
        return {
            "correlation_id": get_correlation_id(),
            "log_context": structlog.contextvars.get_contextvars(),
            "claims": get_all_claims(),
        }

    @app.get("/api/me")
    async def me(authentication: JwtAuthentication = Depends(require_authenticated)) -> Dict[str, Any]:
        return {"name": authentication.name, "authorities": authentication.authorities}

    @app.get("/api/admin", dependencies=[Depends(require_scopes("admin"))])
    async def admin() -> Dict[str, Any]:
        return {"admin": True}

    return install_service_common(app, settings=settings, jwt_decoder=jwt_decoder, metrics=metrics)


@pytest.fixture(autouse=True)
def isolated_context() -> Generator[None, None, None]:
    """Reset request-scoped state between tests."""
    structlog.contextvars.clear_contextvars()
    clear_authentication()
    reset_auditor_provider()
    yield
    structlog.contextvars.clear_contextvars()
    clear_authentication()
    reset_auditor_provider()


@pytest.fixture
def test_config() -> Dict[str, Any]:
    """Test configuration data."""
    return {
        "service": {
            "service_name": "test-service",
            "log_level": "DEBUG",
        },
        "http_logging": {
            "enabled": True,
            "log_level": "INFO",
            "max_body_size": 200,
            "exclude_patterns": ["/healthz", "/metrics"],
        },
        "security": {
            "issuer_uri": TEST_ISSUER,
            "audience": TEST_AUDIENCE,
            "algorithms": ["RS256"],
        },
        "masking": {
            "sensitive_keys": ["password", "card_number"],
        },
    }


@pytest.fixture
def config_settings(test_config: Dict[str, Any]) -> Generator[Settings, None, None]:
    """Settings loaded through the YAML config path."""
    with patch.dict(os.environ, {}, clear=False):
        for key in [k for k in os.environ if k.startswith("SERVICE_COMMON_")]:
            del os.environ[key]
        with patch("service_common.config.load_config_file") as mock_load:
            mock_load.return_value = test_config
            yield reload_settings()
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with security and HTTP logging enabled."""
    return Settings(
        service_name="test-service",
        http_logging=HttpLoggingSettings(enabled=True, log_level="INFO", max_body_size=200),
        security=SecuritySettings(issuer_uri=TEST_ISSUER, audience=TEST_AUDIENCE),
        masking=MaskingSettings(),
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics collector with its own registry."""
    return MetricsCollector(CollectorRegistry())


@pytest.fixture
def app(settings: Settings, metrics: MetricsCollector) -> FastAPI:
    return build_sample_app(settings, jwt_decoder=StaticJwtDecoder(), metrics=metrics)


@pytest.fixture
def test_client(app: FastAPI) -> Generator[TestClient, None, None]:
    """FastAPI test client; server errors are returned as 500 responses."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer test-token"}


@pytest.fixture
def sample_app_factory():
    """Factory building the sample app with custom settings or decoder."""
    return build_sample_app
