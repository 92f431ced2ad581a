"""Raw field reference extraction for the legacy single-document report layout.

Contract: extraction only. Classification and parsing happen during normalisation.
Invalid or partially malformed config/filter JSON is skipped without raising.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from core.extraction.constants import (
    DEFAULT_PAGE_TYPE,
    PAGE_FILTER_ROLE,
    PAGE_SENTINEL_VISUAL_TYPE,
    REPORT_FILTER_ROLE,
    REPORT_SENTINEL_PAGE_ID,
    REPORT_SENTINEL_PAGE_INDEX,
    REPORT_SENTINEL_PAGE_NAME,
    REPORT_SENTINEL_VISUAL_ID,
    REPORT_SENTINEL_VISUAL_TYPE,
    TABLE_FIELD_PATTERN,
    UNKNOWN_VISUAL_TYPE,
    VISUAL_FILTER_ROLE,
)
from core.extraction.field_classifier import prototype_select_from_legacy
from core.extraction.filter_refs import extract_filter_refs
from core.extraction.models import ExtractionContext, ExtractionResult, RawFieldReference
from core.utils.json_text import dig, non_blank_str, try_parse_json

logger = logging.getLogger("fieldusage.extraction")

_IDENTITY_RE = re.compile(TABLE_FIELD_PATTERN)

FieldIdentity = Callable[[str], str | None]


def field_identity_from_query_ref(query_ref: str) -> str | None:
    """Derive a `Table.Field` identity so Sum(Table.Field) and Table.Field collapse."""

    if "(" in query_ref:
        match = _IDENTITY_RE.search(query_ref)
        if match is None:
            return None
        return f"{match.group(1)}.{match.group(2)}"

    if "." in query_ref:
        table, _, field = query_ref.partition(".")
        return f"{table}.{field}"

    return None


def emit_propagated_projection_refs(
    projections: Mapping[str, Any],
    base: RawFieldReference,
    *,
    identity: FieldIdentity = field_identity_from_query_ref,
) -> list[RawFieldReference]:
    """Emit projection references with role-order propagation.

    A field found at role position N is emitted once for every role 0..N, always
    with the first-seen query reference of its identity. Repeats under a later
    role start a new emission round, so multiplicity is preserved.

    Args:
        projections: Role name -> ordered projection items (each with `queryRef`).
        base: Template reference carrying page/visual metadata; role and
            query_ref are replaced per emission.
        identity: Schema-specific field identity function.

    Returns:
        Emitted references in emission order.
    """

    roles = [
        (role, items if isinstance(items, list) else [])
        for role, items in projections.items()
    ]
    canonical_by_identity: dict[str, str] = {}
    emitted: list[RawFieldReference] = []

    for role_index, (_, items) in enumerate(roles):
        seen_in_role: set[str] = set()

        for item in items:
            query_ref = non_blank_str(dig(item, "queryRef"))
            if query_ref is None:
                continue

            field_identity = identity(query_ref)
            if field_identity is None or field_identity in seen_in_role:
                continue
            seen_in_role.add(field_identity)

            canonical = canonical_by_identity.setdefault(field_identity, query_ref)
            for emit_role, _ in roles[: role_index + 1]:
                emitted.append(replace(base, role=emit_role, query_ref=canonical))

    return emitted


def extract_raw_field_references(layout: Any, report_name: str = "") -> ExtractionResult:
    """Extract raw references from sections, visuals, projections, and filters of a layout."""

    references: list[RawFieldReference] = []
    page_order: dict[str, int] = {}

    sections = dig(layout, "sections")
    for section_index, section in enumerate(sections if isinstance(sections, list) else []):
        if not isinstance(section, dict):
            logger.debug("skipping malformed section at index %d", section_index)
            continue
        references.extend(_extract_section(section, section_index, page_order))

    report_filters = extract_filter_refs(dig(layout, "filters"))
    has_report_name = bool(report_name.strip())
    for filter_ref in report_filters:
        references.append(
            RawFieldReference(
                page_index=REPORT_SENTINEL_PAGE_INDEX,
                page_name=REPORT_SENTINEL_PAGE_NAME,
                page_id=REPORT_SENTINEL_PAGE_ID,
                page_type=DEFAULT_PAGE_TYPE,
                visual_id=REPORT_SENTINEL_VISUAL_ID,
                visual_type=REPORT_SENTINEL_VISUAL_TYPE,
                visual_title=report_name if has_report_name else None,
                role=REPORT_FILTER_ROLE,
                query_ref=filter_ref.query_ref,
                is_hidden_filter=filter_ref.hidden or None,
            )
        )

    return ExtractionResult(
        references=tuple(references),
        context=ExtractionContext(report_name=report_name, page_order=page_order),
    )


def _extract_section(
    section: dict[str, Any], section_index: int, page_order: dict[str, int]
) -> list[RawFieldReference]:
    page_name = section.get("displayName")
    page_name = page_name if isinstance(page_name, str) else ""
    page_order[page_name] = section_index
    page_id = non_blank_str(section.get("name")) or page_name
    page_type = "Tooltip" if section.get("displayOption") == "Tooltip" else DEFAULT_PAGE_TYPE

    references: list[RawFieldReference] = []
    containers = section.get("visualContainers")
    for container in containers if isinstance(containers, list) else []:
        if not isinstance(container, dict):
            continue
        references.extend(
            _extract_visual(container, section_index, page_name, page_id, page_type)
        )

    for filter_ref in extract_filter_refs(section.get("filters")):
        references.append(
            RawFieldReference(
                page_index=section_index,
                page_name=page_name,
                page_id=page_id,
                page_type=page_type,
                visual_id=page_id,
                visual_type=PAGE_SENTINEL_VISUAL_TYPE,
                visual_title=page_name if page_name.strip() else None,
                role=PAGE_FILTER_ROLE,
                query_ref=filter_ref.query_ref,
                is_hidden_filter=filter_ref.hidden or None,
            )
        )

    return references


def _extract_visual(
    container: dict[str, Any],
    page_index: int,
    page_name: str,
    page_id: str,
    page_type: str,
) -> list[RawFieldReference]:
    config = _parse_visual_config(container.get("config"))
    if config is None:
        logger.debug("visual config missing or malformed on page %r", page_name)

    single_visual = dig(config, "singleVisual")
    visual_type = non_blank_str(dig(single_visual, "visualType")) or UNKNOWN_VISUAL_TYPE
    visual_id = non_blank_str(dig(config, "name")) or str(container.get("id") or "")
    prototype_select = prototype_select_from_legacy(dig(single_visual, "prototypeQuery", "Select"))
    is_hidden_visual = dig(single_visual, "display", "mode") == "hidden"

    base = RawFieldReference(
        page_index=page_index,
        page_name=page_name,
        page_id=page_id,
        page_type=page_type,
        visual_id=visual_id,
        visual_type=visual_type,
        visual_title=strip_title_quotes(
            dig(single_visual, "vcObjects", "title", 0, "properties", "text", "expr", "Literal", "Value")
        ),
        role="",
        query_ref="",
        prototype_select=prototype_select,
        is_hidden_visual=is_hidden_visual or None,
    )

    references: list[RawFieldReference] = []
    projections = dig(single_visual, "projections")
    if isinstance(projections, dict):
        references.extend(emit_propagated_projection_refs(projections, base))

    for filter_ref in extract_filter_refs(container.get("filters")):
        references.append(
            replace(
                base,
                role=VISUAL_FILTER_ROLE,
                query_ref=filter_ref.query_ref,
                is_hidden_visual=None,
                is_hidden_filter=filter_ref.hidden or None,
            )
        )

    return references


def _parse_visual_config(config: Any) -> dict[str, Any] | None:
    if isinstance(config, str):
        config = try_parse_json(config)
    return config if isinstance(config, dict) else None


def strip_title_quotes(raw: Any) -> str | None:
    """Strip the single quotes Power BI wraps around literal visual titles."""

    if not isinstance(raw, str):
        return None
    return raw.strip("'")
