"""Details rows grouped by `report|page|table|field`."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.extraction.field_classifier import FieldKind, pick_dominant_kind
from core.projections.models import CanonicalUsageRow, DetailsRow


@dataclass
class _DetailsTally:
    report: str
    page: str
    page_index: int
    table: str
    field_name: str
    total_uses: int = 0
    hidden_uses: int = 0
    visuals: set[str] = field(default_factory=set)
    roles: set[str] = field(default_factory=set)
    visual_types: set[str] = field(default_factory=set)
    kinds: Counter[FieldKind] = field(default_factory=Counter)


def build_details_rows(usages: Sequence[CanonicalUsageRow]) -> list[DetailsRow]:
    """Group canonical rows per page and sort by report, page index, page, table, field.

    When a group sees differing page indexes the smallest one is kept.
    """

    grouped: dict[str, _DetailsTally] = {}
    for usage in usages:
        key = f"{usage.report}|{usage.page}|{usage.table}|{usage.field}"
        tally = grouped.get(key)
        if tally is None:
            tally = _DetailsTally(
                report=usage.report,
                page=usage.page,
                page_index=usage.page_index,
                table=usage.table,
                field_name=usage.field,
            )
            grouped[key] = tally
        tally.page_index = min(tally.page_index, usage.page_index)
        tally.total_uses += 1
        tally.visuals.add(usage.report_visual_key)
        tally.roles.add(usage.role)
        tally.visual_types.add(usage.visual_type)
        tally.kinds[usage.kind] += 1
        if usage.hidden_usage:
            tally.hidden_uses += 1

    rows = [_to_details_row(key, tally) for key, tally in grouped.items()]
    rows.sort(key=lambda row: (row.report, row.page_index, row.page, row.table, row.field))
    return rows


def _to_details_row(key: str, tally: _DetailsTally) -> DetailsRow:
    roles = sorted(tally.roles)
    visual_types = sorted(tally.visual_types)
    search_parts = [tally.report, tally.page, tally.table, tally.field_name, *roles, *visual_types]
    return DetailsRow(
        id=f"details:{key}",
        report=tally.report,
        page=tally.page,
        page_index=tally.page_index,
        table=tally.table,
        field=tally.field_name,
        total_uses=tally.total_uses,
        distinct_visuals=len(tally.visuals),
        roles=roles,
        visual_types=visual_types,
        kind=pick_dominant_kind(tally.kinds),
        hidden_usage_count=tally.hidden_uses,
        hidden_only=tally.total_uses > 0 and tally.hidden_uses == tally.total_uses,
        search_text=" ".join(search_parts).lower(),
    )
