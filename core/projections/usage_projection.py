"""Canonical per-usage rows."""

from __future__ import annotations

from collections.abc import Sequence

from core.extraction.constants import DEFAULT_PAGE_TYPE, UNKNOWN_LABEL
from core.normalisation.models import NormalisedFieldUsage
from core.projections.models import CanonicalUsageRow


def clean_label(value: str | None) -> str:
    """Trimmed value, or "(unknown)" for None and blank strings."""

    trimmed = (value or "").strip()
    return trimmed or UNKNOWN_LABEL


def to_canonical_usage_rows(normalised: Sequence[NormalisedFieldUsage]) -> list[CanonicalUsageRow]:
    """Project each usage 1:1 into a canonical row with keys and search text.

    Row ids end with the usage position so identical repeats stay distinct.
    """

    return [_to_row(usage, index) for index, usage in enumerate(normalised)]


def _to_row(usage: NormalisedFieldUsage, index: int) -> CanonicalUsageRow:
    table = clean_label(usage.table)
    field = clean_label(usage.field)
    visual_title = usage.visual_title or ""
    page_type = usage.page_type or DEFAULT_PAGE_TYPE
    search_parts = (
        usage.report,
        usage.page,
        table,
        field,
        usage.role,
        usage.visual_type,
        visual_title,
        page_type,
    )

    return CanonicalUsageRow(
        id="|".join(
            (usage.report, usage.page, usage.visual_id, usage.role, table, field, str(index))
        ),
        report=usage.report,
        page=usage.page,
        page_index=usage.page_index,
        page_id=usage.page_id,
        page_type=page_type,
        visual_type=usage.visual_type,
        visual_id=usage.visual_id,
        visual_title=visual_title,
        role=usage.role,
        table=table,
        field=field,
        kind=usage.field_kind,
        is_hidden_visual=usage.is_hidden_visual,
        is_hidden_filter=usage.is_hidden_filter,
        hidden_usage=usage.is_hidden_visual or usage.is_hidden_filter,
        report_page_key=f"{usage.report}|{usage.page}",
        report_visual_key=f"{usage.report}|{usage.visual_id}",
        search_text=" ".join(search_parts).lower(),
    )
