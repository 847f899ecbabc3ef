"""
Safe serialization of objects for logging.

Fields annotated with ``Sensitive`` are masked when an object is rendered
through ``to_safe_json``:

    class Account(BaseModel):
        owner: str
        iban: Annotated[str, Sensitive(show_last=4)]

Works for pydantic models and dataclasses. Types the encoder does not know are
rendered with ``str()`` instead of failing.
"""

import dataclasses
import json
import typing
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

MASK_LENGTH = 8


@dataclass(frozen=True)
class Sensitive:
    """Marks a field as sensitive so it is masked in logs."""

    mask_char: str = "*"
    # Number of trailing characters left visible, to help debugging
    show_last: int = 0


def mask(value: Optional[str], show_last: int = 0, mask_char: str = "*") -> Optional[str]:
    """
    Mask a string value.

    Empty and None values are returned unchanged. With show_last <= 0 the
    result is a fixed-width mask so the original length is not leaked.
    """
    if value is None or value == "":
        return value

    if show_last <= 0:
        return mask_char * MASK_LENGTH

    if len(value) <= show_last:
        return mask_char * len(value)

    return mask_char * (len(value) - show_last) + value[-show_last:]


def _sensitive_marker(metadata: Any) -> Optional[Sensitive]:
    for item in metadata or ():
        if isinstance(item, Sensitive):
            return item
    return None


def _pydantic_sensitive_fields(model: BaseModel) -> Dict[str, Sensitive]:
    markers = {}
    for name, field in type(model).model_fields.items():
        marker = _sensitive_marker(field.metadata)
        if marker is not None:
            markers[name] = marker
    return markers


def _dataclass_sensitive_fields(obj: Any) -> Dict[str, Sensitive]:
    markers = {}
    try:
        hints = typing.get_type_hints(type(obj), include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references; fall back to field metadata
        hints = {}
    for field in dataclasses.fields(obj):
        hint = hints.get(field.name)
        marker = _sensitive_marker(getattr(hint, "__metadata__", None))
        if marker is None:
            marker = field.metadata.get("sensitive")
        if marker is not None:
            markers[field.name] = marker
    return markers


def _mask_field(value: Any, marker: Sensitive) -> Any:
    if value is None:
        return None
    return mask(str(value), marker.show_last, marker.mask_char)


def to_loggable(obj: Any) -> Any:
    """Convert an object to JSON-compatible primitives with sensitive fields masked."""
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, BaseModel):
        markers = _pydantic_sensitive_fields(obj)
        return {
            name: _mask_field(getattr(obj, name), markers[name]) if name in markers else to_loggable(getattr(obj, name))
            for name in type(obj).model_fields
        }

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        markers = _dataclass_sensitive_fields(obj)
        return {
            field.name: _mask_field(getattr(obj, field.name), markers[field.name])
            if field.name in markers
            else to_loggable(getattr(obj, field.name))
            for field in dataclasses.fields(obj)
        }

    if isinstance(obj, Mapping):
        return {str(key): to_loggable(value) for key, value in obj.items()}

    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_loggable(item) for item in obj]

    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return to_loggable(obj.value)

    if isinstance(obj, (Decimal, UUID, Path)):
        return str(obj)

    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")

    # Unknown types fall back to their string form
    return str(obj)


def to_safe_json(obj: Any) -> str:
    """Render an object as indented JSON with sensitive fields masked."""
    try:
        return json.dumps(to_loggable(obj), indent=2)
    except Exception as e:
        logger.warning(
            "Failed to serialize object to JSON",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return "{}"
