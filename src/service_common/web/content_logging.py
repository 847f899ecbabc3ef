"""
Formatting and sanitizing of HTTP request/response content for logging.
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from starlette.datastructures import Headers
from starlette.types import Scope

from ..config import HttpLoggingSettings
from ..core.masking import SensitiveDataMasker

MASKED_VALUE = "********"

CLIENT_IP_HEADERS = [
    "X-Forwarded-For",
    "X-Real-IP",
    "X-Cluster-Client-IP",
    "Client-IP",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "Forwarded",
]


def is_sensitive_header(name: str, sensitive_headers: Iterable[str]) -> bool:
    return any(name.lower() == sensitive.lower() for sensitive in sensitive_headers)


def extract_headers(raw_headers: List[Tuple[bytes, bytes]], sensitive_headers: Iterable[str]) -> Dict[str, str]:
    """Headers as a dict with sensitive values replaced by a fixed mask."""
    sensitive = list(sensitive_headers)
    headers: Dict[str, str] = {}
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("latin-1")
        if name in headers:
            # Repeated headers keep the first value
            continue
        headers[name] = MASKED_VALUE if is_sensitive_header(name, sensitive) else raw_value.decode("latin-1")
    return headers


def _forwarded_for(value: str) -> Optional[str]:
    """The for= address of the first hop in an RFC 7239 Forwarded header."""
    first_hop = value.split(",")[0]
    for pair in first_hop.split(";"):
        name, _, address = pair.strip().partition("=")
        if name.lower() == "for":
            address = address.strip().strip('"')
            if address.startswith("[") and "]" in address:
                return address[1 : address.index("]")]
            return address
    return None


def get_client_ip(scope: Scope) -> Optional[str]:
    """Client address, preferring proxy headers over the socket peer."""
    headers = Headers(scope=scope)
    for header in CLIENT_IP_HEADERS:
        value = headers.get(header)
        if not value:
            continue
        if header == "Forwarded":
            ip = _forwarded_for(value)
        else:
            # Proxy chains list the original client first
            ip = value.split(",")[0].strip()
        if ip and ip.lower() != "unknown":
            return ip

    client = scope.get("client")
    return client[0] if client else None


def extract_request_details(scope: Scope, settings: HttpLoggingSettings) -> Dict[str, Any]:
    details: Dict[str, Any] = {
        "method": scope.get("method"),
        "uri": scope.get("path"),
    }

    query_string = scope.get("query_string", b"").decode("latin-1")
    if settings.include_query_params and query_string:
        details["query_string"] = query_string

    if settings.include_client_ip:
        details["client_ip"] = get_client_ip(scope)

    if settings.include_request_headers:
        details["headers"] = extract_headers(scope.get("headers", []), settings.sensitive_headers)

    return details


def extract_response_details(
    status_code: int,
    raw_headers: List[Tuple[bytes, bytes]],
    settings: HttpLoggingSettings,
) -> Dict[str, Any]:
    details: Dict[str, Any] = {"status": status_code}

    if settings.include_response_headers:
        details["headers"] = extract_headers(raw_headers, settings.sensitive_headers)

    return details


def is_json_content(body: str) -> bool:
    stripped = body.strip()
    return (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    )


def extract_body(
    content: bytes,
    max_size: int,
    masker: Optional[SensitiveDataMasker] = None,
) -> Optional[str]:
    """
    Decode a body for logging.

    JSON bodies are masked before truncation. Returns None for empty bodies.
    """
    if not content:
        return None

    body = content.decode("utf-8", errors="replace")

    if masker is not None and is_json_content(body):
        try:
            body = json.dumps(masker.mask_data(json.loads(body)))
        except ValueError:
            # Not valid JSON, logged as-is
            pass
        content = body.encode("utf-8")

    if len(content) > max_size:
        omitted = len(content) - max_size
        truncated = content[:max_size].decode("utf-8", errors="ignore")
        return f"{truncated}... [TRUNCATED - {omitted} bytes omitted]"

    return body


def format_log_message(prefix: str, details: Dict[str, Any]) -> str:
    """Summary line such as ``HTTP Request - GET /api/items`` or ``HTTP Response - Status: 200``."""
    if "method" in details and "uri" in details:
        return f"{prefix} - {details['method']} {details['uri']}"
    if "status" in details:
        return f"{prefix} - Status: {details['status']}"
    return prefix
