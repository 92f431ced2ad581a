"""Raw field reference extraction for the multi-file directory report format.

The output type is identical to the legacy extraction path, so normalisation,
aggregation, and projections work unchanged. Missing or malformed page and
visual documents skip that page/visual only.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from core.extraction.constants import (
    DEFAULT_PAGE_TYPE,
    DRILLTHROUGH_FIELD_ROLE,
    PAGE_FILTER_ROLE,
    PAGE_SENTINEL_VISUAL_TYPE,
    REPORT_FILTER_ROLE,
    REPORT_SENTINEL_PAGE_ID,
    REPORT_SENTINEL_PAGE_INDEX,
    REPORT_SENTINEL_PAGE_NAME,
    REPORT_SENTINEL_VISUAL_ID,
    REPORT_SENTINEL_VISUAL_TYPE,
    UNKNOWN_VISUAL_TYPE,
    VISUAL_FILTER_ROLE,
)
from core.extraction.filter_refs import entity_property_ref, extract_pbir_filter_refs
from core.extraction.legacy_layout import emit_propagated_projection_refs, strip_title_quotes
from core.extraction.models import (
    ExtractionContext,
    ExtractionResult,
    PrototypeKind,
    PrototypeSelectItem,
    RawFieldReference,
)
from core.utils.json_text import dig, non_blank_str, try_parse_json

logger = logging.getLogger("fieldusage.extraction")

DEFINITION_ROOT = "Report/definition"
PAGES_INDEX_PATH = f"{DEFINITION_ROOT}/pages/pages.json"
REPORT_DOCUMENT_PATH = f"{DEFINITION_ROOT}/report.json"

_VISUAL_PATH_RE = re.compile(r"/visuals/([^/]+)/visual\.json$")
_PROJECTION_IDENTITY_RE = re.compile(r"([A-Za-z0-9_]+)\.([A-Za-z0-9_ ]+)")


def extract_pbir_raw_field_references(
    documents: Mapping[str, str], report_name: str = ""
) -> ExtractionResult:
    """Extract raw references from named directory-schema JSON documents.

    Args:
        documents: Archive-relative path -> undecoded JSON text.
        report_name: Report label used for report-filter titles.

    Returns:
        Raw references and page-order context.
    """

    references: list[RawFieldReference] = []
    page_order: dict[str, int] = {}

    page_ids = dig(_read_json(documents, PAGES_INDEX_PATH), "pageOrder")
    for page_index, page_id in enumerate(page_ids if isinstance(page_ids, list) else []):
        if not isinstance(page_id, str):
            continue
        page_json = _read_json(documents, f"{DEFINITION_ROOT}/pages/{page_id}/page.json")
        if not isinstance(page_json, dict):
            logger.debug("skipping page %r: page.json missing or malformed", page_id)
            continue
        references.extend(
            _extract_page(documents, page_json, page_id, page_index, page_order)
        )

    report_json = _read_json(documents, REPORT_DOCUMENT_PATH)
    has_report_name = bool(report_name.strip())
    for filter_ref in extract_pbir_filter_refs(dig(report_json, "filterConfig")):
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


def _extract_page(
    documents: Mapping[str, str],
    page_json: dict[str, Any],
    page_folder: str,
    page_index: int,
    page_order: dict[str, int],
) -> list[RawFieldReference]:
    page_name = page_json.get("displayName")
    page_name = page_name if isinstance(page_name, str) else ""
    page_order[page_name] = page_index

    page_id = non_blank_str(page_json.get("name")) or page_folder
    page_type = non_blank_str(dig(page_json, "pageBinding", "type")) or DEFAULT_PAGE_TYPE
    page_base = RawFieldReference(
        page_index=page_index,
        page_name=page_name,
        page_id=page_id,
        page_type=page_type,
        visual_id=page_id,
        visual_type=PAGE_SENTINEL_VISUAL_TYPE,
        visual_title=page_name if page_name.strip() else None,
        role="",
        query_ref="",
    )

    references: list[RawFieldReference] = []
    prefix = f"{DEFINITION_ROOT}/pages/{page_folder}/visuals/"
    visual_paths = sorted(
        path for path in documents if path.startswith(prefix) and path.endswith("/visual.json")
    )
    for visual_path in visual_paths:
        visual_json = _read_json(documents, visual_path)
        if not isinstance(visual_json, dict):
            logger.debug("skipping visual %r: visual.json missing or malformed", visual_path)
            continue
        references.extend(_extract_visual(visual_json, visual_path, page_base))

    for filter_ref in extract_pbir_filter_refs(page_json.get("filterConfig")):
        references.append(
            replace(
                page_base,
                role=PAGE_FILTER_ROLE,
                query_ref=filter_ref.query_ref,
                is_hidden_filter=filter_ref.hidden or None,
            )
        )

    if page_type == "Drillthrough":
        parameters = dig(page_json, "pageBinding", "parameters")
        for parameter in parameters if isinstance(parameters, list) else []:
            query_ref = field_expr_to_query_ref(dig(parameter, "fieldExpr"))
            if query_ref is None:
                continue
            references.append(
                replace(page_base, role=DRILLTHROUGH_FIELD_ROLE, query_ref=query_ref)
            )

    return references


def _extract_visual(
    visual_json: dict[str, Any], visual_path: str, page_base: RawFieldReference
) -> list[RawFieldReference]:
    folder_match = _VISUAL_PATH_RE.search(visual_path)
    folder_id = folder_match.group(1) if folder_match else ""
    visual_section = visual_json.get("visual")
    query_state = dig(visual_section, "query", "queryState")

    base = replace(
        page_base,
        visual_id=non_blank_str(visual_json.get("name")) or folder_id,
        visual_type=non_blank_str(dig(visual_section, "visualType")) or UNKNOWN_VISUAL_TYPE,
        visual_title=strip_title_quotes(
            dig(
                visual_section,
                "visualContainerObjects",
                "title",
                0,
                "properties",
                "text",
                "expr",
                "Literal",
                "Value",
            )
        ),
        prototype_select=_build_prototype_select(query_state),
        is_hidden_visual=True if visual_json.get("isHidden") is True else None,
    )

    references: list[RawFieldReference] = []
    if isinstance(query_state, dict):
        references.extend(
            emit_propagated_projection_refs(
                _adapt_query_state(query_state),
                base,
                identity=_projection_field_identity,
            )
        )

    for filter_ref in extract_pbir_filter_refs(visual_json.get("filterConfig")):
        references.append(
            replace(
                base,
                role=VISUAL_FILTER_ROLE,
                query_ref=filter_ref.query_ref,
                is_hidden_filter=filter_ref.hidden or None,
            )
        )

    return references


def field_expr_to_query_ref(field: Any) -> str | None:
    """Render a Column/Measure/Aggregation field expression as a query reference."""

    if not isinstance(field, dict):
        return None
    if field.get("Column"):
        return entity_property_ref(field["Column"])
    if field.get("Measure"):
        return entity_property_ref(field["Measure"])
    if field.get("Aggregation"):
        inner = field_expr_to_query_ref(dig(field, "Aggregation", "Expression"))
        return f"Sum({inner})" if inner else None
    return None


def _field_expr_kind(field: Any) -> PrototypeKind:
    if not isinstance(field, dict):
        return "unknown"
    if field.get("Column"):
        return "column"
    if field.get("Measure") or field.get("Aggregation"):
        return "measure"
    return "unknown"


def _build_prototype_select(query_state: Any) -> tuple[PrototypeSelectItem, ...]:
    if not isinstance(query_state, dict):
        return ()

    items: list[PrototypeSelectItem] = []
    for role_state in query_state.values():
        projections = dig(role_state, "projections")
        for projection in projections if isinstance(projections, list) else []:
            query_ref = non_blank_str(dig(projection, "queryRef"))
            if query_ref is None:
                continue
            items.append(
                PrototypeSelectItem(name=query_ref, kind=_field_expr_kind(projection.get("field")))
            )
    return tuple(items)


def _adapt_query_state(query_state: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
    adapted: dict[str, list[dict[str, Any]]] = {}
    for role, role_state in query_state.items():
        projections = dig(role_state, "projections")
        adapted[role] = [
            {"queryRef": dig(projection, "queryRef")}
            for projection in (projections if isinstance(projections, list) else [])
        ]
    return adapted


def _projection_field_identity(query_ref: str) -> str | None:
    # Independent of legacy_layout.field_identity_from_query_ref.
    if "(" in query_ref:
        match = _PROJECTION_IDENTITY_RE.search(query_ref)
        return f"{match.group(1)}.{match.group(2)}" if match else None
    if "." in query_ref:
        dot_index = query_ref.index(".")
        return f"{query_ref[:dot_index]}.{query_ref[dot_index + 1:]}"
    return None


def _read_json(documents: Mapping[str, str], path: str) -> Any | None:
    return try_parse_json(documents.get(path))
