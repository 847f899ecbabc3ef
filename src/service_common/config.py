"""
Configuration management for service-common.

Uses Pydantic Settings for environment variable handling and validation.
An optional config.yaml supplies defaults; environment variables win.
"""

import json
import os
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


def load_config_file(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config.yaml in common locations
        possible_paths = [
            "config.yaml",  # Current directory
            "config/config.yaml",
            "../config.yaml",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                config_path = path
                break
        else:
            return {}

    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
            return config_data
    return {}


# Raw environment strings reach the parse_lists validators undecoded
StrList = Annotated[List[str], NoDecode]


def _parse_list(v: Any) -> Any:
    """Accept JSON arrays or comma separated strings for list settings."""
    if isinstance(v, str):
        stripped = v.strip()
        if not stripped:
            return []
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in stripped.split(",") if item.strip()]
    return v


class HttpLoggingSettings(BaseSettings):
    """HTTP request/response logging configuration."""

    enabled: bool = Field(default=False, description="Enable HTTP logging middleware")
    log_level: str = Field(default="DEBUG", description="Log level for HTTP logging (DEBUG, INFO, WARN, ERROR)")
    include_request_body: bool = Field(default=True, description="Include request body in logs")
    include_response_body: bool = Field(default=True, description="Include response body in logs")
    include_request_headers: bool = Field(default=True, description="Include request headers in logs")
    include_response_headers: bool = Field(default=True, description="Include response headers in logs")
    include_query_params: bool = Field(default=True, description="Include query string in logs")
    include_client_ip: bool = Field(default=True, description="Include client IP address in logs")
    max_body_size: int = Field(default=10000, description="Maximum body bytes to log, larger bodies are truncated")
    exclude_patterns: StrList = Field(default_factory=list, description="Ant-style path patterns to skip")
    include_patterns: StrList = Field(default_factory=list, description="Ant-style path patterns to log exclusively")
    sensitive_headers: StrList = Field(
        default=[
            "Authorization",
            "Cookie",
            "Set-Cookie",
            "X-API-Key",
            "X-Auth-Token",
            "Proxy-Authorization",
            "WWW-Authenticate",
        ],
        description="Header names masked in logs (case-insensitive)",
    )
    log_errors_only: bool = Field(default=False, description="Only log responses with 4xx/5xx status")

    @field_validator("exclude_patterns", "include_patterns", "sensitive_headers", mode="before")
    def parse_lists(cls, v: Any) -> Any:
        return _parse_list(v)

    class Config:
        env_prefix = "SERVICE_COMMON_HTTP_LOGGING_"


class SecuritySettings(BaseSettings):
    """OAuth2 resource server configuration."""

    enabled: bool = Field(default=True, description="Require bearer JWTs on non-permitted paths")
    issuer_uri: str = Field(default="", description="Authorization server issuer URI")
    audience: str = Field(default="", description="Audience this API expects in the aud claim")
    algorithms: StrList = Field(default=["PS256", "RS256", "ES256"], description="Accepted JWS algorithms")
    accepted_token_types: StrList = Field(default=["JWT", "at+jwt"], description="Accepted typ header values")
    permit_patterns: StrList = Field(
        default=["/healthz", "/healthz/**", "/metrics"],
        description="Ant-style path patterns reachable without a token",
    )
    jwks_cache_seconds: int = Field(default=300, description="JWKS cache lifetime")
    http_timeout_seconds: int = Field(default=10, description="Timeout for discovery and JWKS requests")
    leeway_seconds: int = Field(default=0, description="Clock skew tolerance for exp/nbf/iat")

    @field_validator("algorithms", "accepted_token_types", "permit_patterns", mode="before")
    def parse_lists(cls, v: Any) -> Any:
        return _parse_list(v)

    @property
    def discovery_url(self) -> str:
        """OIDC discovery document URL."""
        return f"{self.issuer_uri.rstrip('/')}/.well-known/openid-configuration"

    class Config:
        env_prefix = "SERVICE_COMMON_SECURITY_"


class MaskingSettings(BaseSettings):
    """Body field masking configuration."""

    sensitive_keys: StrList = Field(
        default=["password", "secret", "token", "authorization", "api_key", "card_number"],
        description="Keys whose values are masked in logged bodies",
    )
    partial_rules: Dict[str, Dict[str, Any]] = Field(
        default={"card_number": {"show_last": 4}},
        description="Partial masking rules for specific keys",
    )

    @field_validator("sensitive_keys", mode="before")
    def parse_keys(cls, v: Any) -> Any:
        return _parse_list(v)

    class Config:
        env_prefix = "SERVICE_COMMON_MASKING_"


class Settings(BaseSettings):
    """Main library settings."""

    service_name: str = Field(default="service", description="Name reported by health and logs")
    log_level: str = Field(default="INFO", description="Root log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON instead of console output")

    # Component settings
    http_logging: HttpLoggingSettings = Field(default_factory=HttpLoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    masking: MaskingSettings = Field(default_factory=MaskingSettings)

    class Config:
        env_prefix = "SERVICE_COMMON_"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance with config file and env support."""

    config_data = load_config_file()

    # Config file provides defaults, env vars override
    if config_data:
        _set_env_from_config(config_data)

    settings = Settings()
    return settings


def _set_env_from_config(config_data: Dict[str, Any]) -> None:
    """Set environment variables from config file if not already set."""
    sections = {
        "service": ("SERVICE_COMMON_", ["service_name", "log_level", "json_logs"]),
        "http_logging": ("SERVICE_COMMON_HTTP_LOGGING_", list(HttpLoggingSettings.model_fields)),
        "security": ("SERVICE_COMMON_SECURITY_", list(SecuritySettings.model_fields)),
        "masking": ("SERVICE_COMMON_MASKING_", list(MaskingSettings.model_fields)),
    }

    for section, (prefix, keys) in sections.items():
        values = config_data.get(section) or {}
        for key in keys:
            env_var = f"{prefix}{key.upper()}"
            if env_var in os.environ:
                continue
            value = values.get(key)
            if value is None:
                continue
            # Complex values are handed to pydantic-settings as JSON
            if isinstance(value, (list, dict)):
                os.environ[env_var] = json.dumps(value)
            elif isinstance(value, bool):
                os.environ[env_var] = "true" if value else "false"
            else:
                os.environ[env_var] = str(value)


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
