"""Expression lineage: which tables and fields an expression references."""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.extraction.constants import AGGREGATION_FUNCTIONS, TABLE_FIELD_PATTERN

_TABLE_FIELD_RE = re.compile(TABLE_FIELD_PATTERN)
# Longest name first so CountRows is not reported as Count.
_AGGREGATION_RE = re.compile(
    r"^(" + "|".join(sorted(AGGREGATION_FUNCTIONS, key=len, reverse=True)) + r")",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ExpressionComponents:
    """Tables, fields, and aggregation keyword referenced by one expression."""

    raw_expression: str
    referenced_tables: tuple[str, ...]
    referenced_fields: tuple[str, ...]
    aggregation_type: str | None = None


def analyse_expression(query_ref: str) -> ExpressionComponents | None:
    """Decompose an expression reference; returns None for non-expressions."""

    if "(" not in query_ref:
        return None

    tables: dict[str, None] = {}
    fields: list[str] = []
    for match in _TABLE_FIELD_RE.finditer(query_ref):
        tables.setdefault(match.group(1), None)
        fields.append(match.group(2))

    aggregation = _AGGREGATION_RE.match(query_ref)
    return ExpressionComponents(
        raw_expression=query_ref,
        referenced_tables=tuple(tables),
        referenced_fields=tuple(fields),
        aggregation_type=aggregation.group(1) if aggregation else None,
    )
