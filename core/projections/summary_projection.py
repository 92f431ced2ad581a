"""Summary rows grouped by `table|field` across all reports."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from core.extraction.field_classifier import FieldKind, pick_dominant_kind
from core.projections.models import (
    CanonicalUsageRow,
    SummaryReportBreakdown,
    SummaryReportPageBreakdown,
    SummaryRow,
)


@dataclass
class _PageTally:
    page_index: int
    count: int = 0
    visuals: set[str] = field(default_factory=set)


@dataclass
class _ReportTally:
    total_uses: int = 0
    pages: set[str] = field(default_factory=set)
    visuals: set[str] = field(default_factory=set)
    by_page: dict[str, _PageTally] = field(default_factory=dict)


@dataclass
class _SummaryTally:
    table: str
    field_name: str
    total_uses: int = 0
    hidden_uses: int = 0
    reports: set[str] = field(default_factory=set)
    pages: set[str] = field(default_factory=set)
    visuals: set[str] = field(default_factory=set)
    kinds: Counter[FieldKind] = field(default_factory=Counter)
    by_report: dict[str, _ReportTally] = field(default_factory=dict)

    def add(self, row: CanonicalUsageRow) -> None:
        self.total_uses += 1
        self.reports.add(row.report)
        self.pages.add(row.report_page_key)
        self.visuals.add(row.report_visual_key)
        self.kinds[row.kind] += 1
        if row.hidden_usage:
            self.hidden_uses += 1

        report = self.by_report.setdefault(row.report, _ReportTally())
        report.total_uses += 1
        report.pages.add(row.report_page_key)
        report.visuals.add(row.report_visual_key)

        page = report.by_page.get(row.page)
        if page is None:
            page = _PageTally(page_index=row.page_index)
            report.by_page[row.page] = page
        page.page_index = min(page.page_index, row.page_index)
        page.count += 1
        page.visuals.add(row.report_visual_key)


def build_summary_rows(usages: Sequence[CanonicalUsageRow]) -> list[SummaryRow]:
    """Group canonical rows by table and field, ignoring the report.

    Rows sort by total uses descending, then table, then field. Report
    breakdowns sort by uses descending then name; their pages by index then
    name, keeping the smallest index seen for a page name.
    """

    grouped: dict[str, _SummaryTally] = {}
    for usage in usages:
        key = f"{usage.table}|{usage.field}"
        tally = grouped.get(key)
        if tally is None:
            tally = _SummaryTally(table=usage.table, field_name=usage.field)
            grouped[key] = tally
        tally.add(usage)

    rows = [_to_summary_row(key, tally) for key, tally in grouped.items()]
    rows.sort(key=lambda row: (-row.total_uses, row.table, row.field))
    return rows


def _to_summary_row(key: str, tally: _SummaryTally) -> SummaryRow:
    kind = pick_dominant_kind(tally.kinds)
    return SummaryRow(
        id=f"summary:{key}",
        table=tally.table,
        field=tally.field_name,
        total_uses=tally.total_uses,
        report_count=len(tally.reports),
        page_count=len(tally.pages),
        visual_count=len(tally.visuals),
        hidden_only=tally.total_uses > 0 and tally.hidden_uses == tally.total_uses,
        kind=kind,
        reports=_report_breakdowns(tally.by_report),
        search_text=f"{tally.table} {tally.field_name} {kind}".lower(),
    )


def _report_breakdowns(by_report: dict[str, _ReportTally]) -> list[SummaryReportBreakdown]:
    breakdowns = []
    for report, tally in by_report.items():
        pages = sorted(
            (
                SummaryReportPageBreakdown(
                    page=page,
                    page_index=page_tally.page_index,
                    count=page_tally.count,
                    distinct_visuals=len(page_tally.visuals),
                )
                for page, page_tally in tally.by_page.items()
            ),
            key=lambda item: (item.page_index, item.page),
        )
        breakdowns.append(
            SummaryReportBreakdown(
                report=report,
                total_uses=tally.total_uses,
                page_count=len(tally.pages),
                visual_count=len(tally.visuals),
                pages=pages,
            )
        )
    breakdowns.sort(key=lambda item: (-item.total_uses, item.report))
    return breakdowns
