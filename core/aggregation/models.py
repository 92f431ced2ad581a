"""Aggregated field usage models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from core.extraction.field_classifier import FieldKind


class PageUsageDetail(BaseModel):
    """Usage of one field on one page."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    page_name: str
    page_index: int
    usage_count: int
    visual_ids: list[str]
    roles: list[str]


class FieldUsageAggregate(BaseModel):
    """All usages of one `(report, table, field)` triple."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    report: str
    table: str
    field: str
    field_key: str
    total_usages: int
    usages_by_page: dict[str, PageUsageDetail]
    usages_by_visual_type: dict[str, int]
    usages_by_role: dict[str, int]
    field_kind: FieldKind
    expression: str | None = None
    has_hidden_usages: bool
    has_visible_usages: bool
    hidden_usage_count: int

    def ordered_pages(self) -> list[PageUsageDetail]:
        """Page breakdown in report page order."""

        return sorted(
            self.usages_by_page.values(),
            key=lambda detail: (detail.page_index, detail.page_name),
        )


class PageInfo(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    index: int


class AggregationSummary(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    total_fields: int
    total_usages: int
    fields_by_kind: dict[str, int]
    page_count: int


class FieldUsageAggregation(BaseModel):
    """Complete aggregation of one combined run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    fields: list[FieldUsageAggregate]
    pages: list[PageInfo]
    summary: AggregationSummary
