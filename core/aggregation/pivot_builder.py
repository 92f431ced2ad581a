"""Nested `report -> table -> field -> page -> count` pivot."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from core.aggregation.field_aggregator import field_key_for
from core.aggregation.models import FieldUsageAggregation
from core.extraction.constants import UNKNOWN_LABEL
from core.normalisation.models import NormalisedFieldUsage

Pivot = dict[str, dict[str, dict[str, dict[str, int]]]]


@dataclass(frozen=True)
class PivotResult:
    pivot: Pivot
    pages: list[str]
    field_order: list[str]


def build_pivot_from_normalised(normalised: Sequence[NormalisedFieldUsage]) -> PivotResult:
    """Count usages per page; usages without a field are skipped."""

    pivot: Pivot = {}
    page_order: dict[str, int] = {}
    field_order: dict[str, None] = {}

    for usage in normalised:
        if not usage.field:
            continue
        table = usage.table or UNKNOWN_LABEL
        page_order.setdefault(usage.page, usage.page_index)
        field_order.setdefault(field_key_for(usage.report, table, usage.field), None)

        pages = pivot.setdefault(usage.report, {}).setdefault(table, {}).setdefault(usage.field, {})
        pages[usage.page] = pages.get(usage.page, 0) + 1

    # Pages sharing an index keep first-seen order.
    ordered_pages = sorted(page_order, key=lambda page: page_order[page])
    return PivotResult(pivot=pivot, pages=ordered_pages, field_order=list(field_order))


def build_pivot_from_aggregation(aggregation: FieldUsageAggregation) -> PivotResult:
    pivot: Pivot = {}
    field_order: list[str] = []

    for aggregate in aggregation.fields:
        field_order.append(aggregate.field_key)
        pivot.setdefault(aggregate.report, {}).setdefault(aggregate.table, {})[aggregate.field] = {
            detail.page_name: detail.usage_count for detail in aggregate.ordered_pages()
        }

    return PivotResult(
        pivot=pivot,
        pages=[page.name for page in aggregation.pages],
        field_order=field_order,
    )
