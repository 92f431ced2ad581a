"""Filter readers for visual, page, and report filter payloads.

Legacy layouts carry filters as JSON strings holding `expression.*` nodes;
the directory schema carries parsed `filterConfig.filters[].field` nodes.
Malformed entries are dropped, never raised.
"""

from __future__ import annotations

from typing import Any

from core.extraction.models import FilterRef
from core.utils.json_text import dig, non_blank_str, try_parse_json


def extract_filter_refs(filters: Any) -> list[FilterRef]:
    """Read legacy string-encoded filter arrays (column and aggregated column shapes)."""

    parsed = try_parse_json(filters)
    if not isinstance(parsed, list):
        return []

    refs: list[FilterRef] = []
    for entry in parsed:
        expression = dig(entry, "expression")
        if not isinstance(expression, dict):
            continue

        hidden = entry.get("isHiddenInViewMode") is True

        column_ref = entity_property_ref(expression.get("Column"))
        if column_ref:
            refs.append(FilterRef(query_ref=column_ref, hidden=hidden))
            continue

        aggregated_ref = entity_property_ref(dig(expression, "Aggregation", "Expression", "Column"))
        if aggregated_ref:
            refs.append(FilterRef(query_ref=f"Sum({aggregated_ref})", hidden=hidden))

    return refs


def extract_pbir_filter_refs(filter_config: Any) -> list[FilterRef]:
    """Read directory-schema filterConfig objects (column, measure, aggregation shapes)."""

    filters = dig(filter_config, "filters")
    if not isinstance(filters, list):
        return []

    refs: list[FilterRef] = []
    for entry in filters:
        field = dig(entry, "field")
        if not isinstance(field, dict):
            continue

        hidden = entry.get("isHiddenInViewMode") is True

        for node in (field.get("Column"), field.get("Measure")):
            simple_ref = entity_property_ref(node)
            if simple_ref:
                refs.append(FilterRef(query_ref=simple_ref, hidden=hidden))
                break
        else:
            aggregated_ref = entity_property_ref(dig(field, "Aggregation", "Expression", "Column"))
            if aggregated_ref:
                refs.append(FilterRef(query_ref=f"Sum({aggregated_ref})", hidden=hidden))

    return refs


def entity_property_ref(node: Any) -> str | None:
    """Build `Entity.Property` from a column/measure node, or None when incomplete."""

    prop = non_blank_str(dig(node, "Property"))
    entity = non_blank_str(dig(node, "Expression", "SourceRef", "Entity"))
    if prop is None or entity is None:
        return None
    return f"{entity}.{prop}"
