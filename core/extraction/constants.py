"""Shared wire-contract literals for extraction, projections, and exports.

Export formats depend on these exact values; do not rename them.
"""

from __future__ import annotations

VISUAL_FILTER_ROLE = "visual-filter"
PAGE_FILTER_ROLE = "page-filter"
REPORT_FILTER_ROLE = "report-filter"
DRILLTHROUGH_FIELD_ROLE = "drillthrough-field"

PAGE_SENTINEL_VISUAL_TYPE = "__PAGE__"
REPORT_SENTINEL_VISUAL_TYPE = "__REPORT__"
REPORT_SENTINEL_VISUAL_ID = "__REPORT__"
REPORT_SENTINEL_PAGE_ID = "__REPORT__"
REPORT_SENTINEL_PAGE_NAME = "Report"
REPORT_SENTINEL_PAGE_INDEX = -1

UNKNOWN_LABEL = "(unknown)"
UNKNOWN_VISUAL_TYPE = "unknown"
DEFAULT_PAGE_TYPE = "Default"

AGGREGATION_FUNCTIONS = ("Sum", "Count", "Average", "Min", "Max", "Distinct", "CountRows")

# Power BI allows spaces in field names, not in table names.
TABLE_FIELD_PATTERN = r"([A-Za-z0-9_]+)\.([A-Za-z0-9_ ]+)"
