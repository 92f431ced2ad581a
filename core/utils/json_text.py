"""Lenient JSON helpers for untyped report-definition payloads."""

from __future__ import annotations

import json
from typing import Any


def try_parse_json(text: Any) -> Any | None:
    """Decode JSON text, returning None for non-strings and malformed payloads."""

    if not isinstance(text, str) or not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def dig(value: Any, *path: str | int) -> Any | None:
    """Walk nested dict/list nodes, returning None as soon as a step is missing."""

    current = value
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def non_blank_str(value: Any) -> str | None:
    """Return value when it is a string with visible content."""

    if isinstance(value, str) and value.strip():
        return value
    return None
