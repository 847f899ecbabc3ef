"""
Ant-style path patterns.

    ?    matches one character within a segment
    *    matches zero or more characters within a segment
    **   matches zero or more whole segments

``/api/**`` matches ``/api``, ``/api/v1`` and ``/api/v1/items``.
"""

import re
from functools import lru_cache
from typing import Any, Iterable, Mapping, Pattern


def _segment_regex(segment: str) -> str:
    parts = []
    for char in segment:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Pattern[str]:
    regex = ""
    for segment in (s for s in pattern.split("/") if s):
        if segment == "**":
            regex += "(?:/[^/]+)*"
        else:
            regex += "/" + _segment_regex(segment)
    return re.compile(f"^{regex}$")


def _normalize(path: str) -> str:
    stripped = path.strip("/")
    return f"/{stripped}" if stripped else ""


def match_path(pattern: str, path: str) -> bool:
    return _compile(pattern).match(_normalize(path)) is not None


def match_any(patterns: Iterable[str], path: str) -> bool:
    return any(match_path(pattern, path) for pattern in patterns)


def request_path(scope: Mapping[str, Any]) -> str:
    """Request path relative to the application's root path."""
    path = scope.get("path", "")
    root_path = scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):] or "/"
    return path
