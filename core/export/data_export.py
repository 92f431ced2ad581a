"""CSV and JSON serialisation of projection rows."""

from __future__ import annotations

import csv
import io
import json
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Literal

from pydantic import BaseModel

from core.normalisation.models import NormalisedFieldUsage
from core.projections.details_projection import build_details_rows
from core.projections.models import DetailsRow, SummaryRow
from core.projections.summary_projection import build_summary_rows
from core.projections.usage_projection import to_canonical_usage_rows

ExportView = Literal["summary", "details", "raw"]
EXPORT_VIEWS: tuple[ExportView, ...] = ("summary", "details", "raw")

SUMMARY_COLUMNS = (
    "table",
    "field",
    "kind",
    "total_uses",
    "report_count",
    "page_count",
    "visual_count",
    "hidden_only",
    "reports",
)
DETAILS_COLUMNS = (
    "report",
    "page",
    "page_index",
    "table",
    "field",
    "kind",
    "total_uses",
    "distinct_visuals",
    "roles",
    "visual_types",
    "hidden_usage_count",
    "hidden_only",
)
RAW_COLUMNS = (
    "report",
    "page",
    "page_index",
    "page_id",
    "page_type",
    "visual_type",
    "visual_id",
    "visual_title",
    "role",
    "table",
    "field",
    "field_kind",
    "expression",
    "is_hidden_visual",
    "is_hidden_filter",
)

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_TRAILING_DOTS = re.compile(r"\.+$")
_WHITESPACE_RUN = re.compile(r"\s+")


def summary_rows_to_csv(rows: Iterable[SummaryRow], list_separator: str = "|") -> str:
    """Summary CSV; report breakdowns flatten to `report:uses` tokens."""

    records = []
    for row in rows:
        record = row.model_dump(mode="json")
        record["reports"] = [f"{report.report}:{report.total_uses}" for report in row.reports]
        records.append(record)
    return rows_to_csv(SUMMARY_COLUMNS, records, list_separator)


def details_rows_to_csv(rows: Iterable[DetailsRow], list_separator: str = "|") -> str:
    return rows_to_csv(DETAILS_COLUMNS, (row.model_dump(mode="json") for row in rows), list_separator)


def raw_rows_to_csv(rows: Iterable[NormalisedFieldUsage], list_separator: str = "|") -> str:
    """One CSV line per normalised usage."""

    return rows_to_csv(RAW_COLUMNS, (row.model_dump(mode="json") for row in rows), list_separator)


def rows_to_csv(
    columns: Sequence[str],
    records: Iterable[Mapping[str, Any]],
    list_separator: str = "|",
) -> str:
    """Serialise records with a fixed column order and Unix newlines."""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for record in records:
        writer.writerow([_csv_cell(record.get(column), list_separator) for column in columns])
    return buffer.getvalue()


def rows_to_json(rows: Iterable[BaseModel | Mapping[str, Any]], indent: int = 2) -> str:
    """Pretty-printed JSON array of plain objects."""

    payload = [row.model_dump(mode="json") if isinstance(row, BaseModel) else dict(row) for row in rows]
    return json.dumps(payload, ensure_ascii=False, indent=indent)


def safe_report_name(report_name: str) -> str:
    """Filename-safe stem for a report label; blank labels become "report"."""

    sanitised = _UNSAFE_FILENAME_CHARS.sub("-", report_name.strip())
    sanitised = _TRAILING_DOTS.sub("", sanitised)
    sanitised = _WHITESPACE_RUN.sub(" ", sanitised)
    return sanitised or "report"


def export_file_name(scope_label: str, kind: str, extension: str) -> str:
    return f"{safe_report_name(scope_label)}-{kind}.{extension.lstrip('.')}"


def _csv_cell(value: Any, list_separator: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return list_separator.join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def render_export(
    view: ExportView,
    export_format: Literal["csv", "json"],
    normalised: Sequence[NormalisedFieldUsage],
    *,
    list_separator: str = "|",
    indent: int = 2,
) -> str:
    """Project normalised usages into one view and serialise it."""

    if view == "raw":
        if export_format == "csv":
            return raw_rows_to_csv(normalised, list_separator)
        return rows_to_json(normalised, indent)

    canonical = to_canonical_usage_rows(normalised)
    if view == "summary":
        summary = build_summary_rows(canonical)
        if export_format == "csv":
            return summary_rows_to_csv(summary, list_separator)
        return rows_to_json(summary, indent)

    details = build_details_rows(canonical)
    if export_format == "csv":
        return details_rows_to_csv(details, list_separator)
    return rows_to_json(details, indent)
