"""Fold normalised usages into one aggregate per distinct field."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.aggregation.models import (
    AggregationSummary,
    FieldUsageAggregate,
    FieldUsageAggregation,
    PageInfo,
    PageUsageDetail,
)
from core.extraction.constants import UNKNOWN_LABEL
from core.extraction.field_classifier import FIELD_KINDS, FieldKind, pick_dominant_kind
from core.normalisation.models import NormalisedFieldUsage


@dataclass
class _PageAccumulator:
    page_name: str
    page_index: int
    usage_count: int = 0
    visual_ids: list[str] = field(default_factory=list)
    roles: set[str] = field(default_factory=set)

    def add(self, usage: NormalisedFieldUsage) -> None:
        self.usage_count += 1
        self.page_index = min(self.page_index, usage.page_index)
        if usage.visual_id not in self.visual_ids:
            self.visual_ids.append(usage.visual_id)
        self.roles.add(usage.role)

    def freeze(self) -> PageUsageDetail:
        return PageUsageDetail(
            page_name=self.page_name,
            page_index=self.page_index,
            usage_count=self.usage_count,
            visual_ids=list(self.visual_ids),
            roles=sorted(self.roles),
        )


@dataclass
class _FieldAccumulator:
    report: str
    table: str
    field_name: str
    expression: str | None
    total: int = 0
    hidden: int = 0
    pages: dict[str, _PageAccumulator] = field(default_factory=dict)
    visual_types: Counter[str] = field(default_factory=Counter)
    roles: Counter[str] = field(default_factory=Counter)
    kinds: Counter[FieldKind] = field(default_factory=Counter)

    def add(self, usage: NormalisedFieldUsage) -> None:
        self.total += 1
        page = self.pages.get(usage.page)
        if page is None:
            page = _PageAccumulator(page_name=usage.page, page_index=usage.page_index)
            self.pages[usage.page] = page
        page.add(usage)
        self.visual_types[usage.visual_type] += 1
        self.roles[usage.role] += 1
        self.kinds[usage.field_kind] += 1
        if usage.is_hidden_visual or usage.is_hidden_filter:
            self.hidden += 1

    def freeze(self, field_key: str) -> FieldUsageAggregate:
        return FieldUsageAggregate(
            report=self.report,
            table=self.table,
            field=self.field_name,
            field_key=field_key,
            total_usages=self.total,
            usages_by_page={name: page.freeze() for name, page in self.pages.items()},
            usages_by_visual_type=dict(self.visual_types),
            usages_by_role=dict(self.roles),
            field_kind=pick_dominant_kind(self.kinds),
            expression=self.expression,
            has_hidden_usages=self.hidden > 0,
            has_visible_usages=self.hidden < self.total,
            hidden_usage_count=self.hidden,
        )


def field_key_for(report: str, table: str | None, field_name: str | None) -> str:
    return f"{report}|{table or UNKNOWN_LABEL}|{field_name or UNKNOWN_LABEL}"


def aggregate_field_usage(normalised: Sequence[NormalisedFieldUsage]) -> FieldUsageAggregation:
    """Group usages by `report|table|field` and tally page, visual type and role.

    Fields keep first-appearance order; `pages` lists distinct page names with
    their first-seen index, sorted by that index.
    """

    accumulators: dict[str, _FieldAccumulator] = {}
    first_seen_pages: dict[str, int] = {}

    for usage in normalised:
        first_seen_pages.setdefault(usage.page, usage.page_index)
        key = field_key_for(usage.report, usage.table, usage.field)
        accumulator = accumulators.get(key)
        if accumulator is None:
            accumulator = _FieldAccumulator(
                report=usage.report,
                table=usage.table or UNKNOWN_LABEL,
                field_name=usage.field or UNKNOWN_LABEL,
                expression=usage.expression,
            )
            accumulators[key] = accumulator
        accumulator.add(usage)

    fields = [accumulator.freeze(key) for key, accumulator in accumulators.items()]
    pages = [
        PageInfo(name=name, index=index)
        for name, index in sorted(first_seen_pages.items(), key=lambda item: (item[1], item[0]))
    ]
    return FieldUsageAggregation(fields=fields, pages=pages, summary=_summarise(fields, len(pages)))


def _summarise(fields: Sequence[FieldUsageAggregate], page_count: int) -> AggregationSummary:
    counts: Counter[str] = Counter(aggregate.field_kind for aggregate in fields)
    fields_by_kind = {kind: counts[kind] for kind in FIELD_KINDS if counts[kind]}
    return AggregationSummary(
        total_fields=len(fields),
        total_usages=sum(aggregate.total_usages for aggregate in fields),
        fields_by_kind=fields_by_kind,
        page_count=page_count,
    )
