"""Presentation row models consumed by exports, the CLI and the API.

Field names are part of the export contract; keep them stable.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from core.extraction.field_classifier import FieldKind


class CanonicalUsageRow(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    report: str
    page: str
    page_index: int
    page_id: str
    page_type: str
    visual_type: str
    visual_id: str
    visual_title: str
    role: str
    table: str
    field: str
    kind: FieldKind
    is_hidden_visual: bool
    is_hidden_filter: bool
    hidden_usage: bool
    report_page_key: str
    report_visual_key: str
    search_text: str


class SummaryReportPageBreakdown(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    page: str
    page_index: int
    count: int
    distinct_visuals: int


class SummaryReportBreakdown(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    report: str
    total_uses: int
    page_count: int
    visual_count: int
    pages: list[SummaryReportPageBreakdown]


class SummaryRow(BaseModel):
    """One `(table, field)` across every analysed report."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    table: str
    field: str
    total_uses: int
    report_count: int
    page_count: int
    visual_count: int
    hidden_only: bool
    kind: FieldKind
    reports: list[SummaryReportBreakdown]
    search_text: str


class DetailsRow(BaseModel):
    """One `(report, page, table, field)` group."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    report: str
    page: str
    page_index: int
    table: str
    field: str
    total_uses: int
    distinct_visuals: int
    roles: list[str]
    visual_types: list[str]
    kind: FieldKind
    hidden_usage_count: int
    hidden_only: bool
    search_text: str
