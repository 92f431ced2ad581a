"""Query reference parser splitting table, field, and expression components."""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.extraction.constants import TABLE_FIELD_PATTERN

_TABLE_FIELD_RE = re.compile(TABLE_FIELD_PATTERN)


@dataclass(frozen=True)
class ParsedQueryRef:
    """Parsed query reference parts."""

    table: str | None
    field: str | None
    expression: str | None
    is_expression: bool


def parse_query_ref(query_ref: str) -> ParsedQueryRef:
    """Parse a query reference into table, field, and expression components.

    Rules (first match wins):
    - Contains "(": expression; table/field come from the first Table.Field match.
    - Dot strictly inside the string: split on the first dot only.
    - Otherwise the whole string is a bare field.

    Never raises.
    """

    trimmed = query_ref.strip()

    if "(" in trimmed:
        match = _TABLE_FIELD_RE.search(trimmed)
        if match is None:
            return ParsedQueryRef(table=None, field=None, expression=trimmed, is_expression=True)
        return ParsedQueryRef(
            table=_segment(match.group(1)),
            field=_segment(match.group(2)),
            expression=trimmed,
            is_expression=True,
        )

    dot_index = trimmed.find(".")
    if 0 < dot_index < len(trimmed) - 1:
        return ParsedQueryRef(
            table=_segment(trimmed[:dot_index]),
            field=_segment(trimmed[dot_index + 1 :]),
            expression=None,
            is_expression=False,
        )

    return ParsedQueryRef(table=None, field=_segment(trimmed), expression=None, is_expression=False)


def _segment(value: str) -> str | None:
    trimmed = value.strip()
    return trimmed or None
