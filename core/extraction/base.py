"""Extractor interface definitions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, Protocol

from core.extraction.legacy_layout import extract_raw_field_references
from core.extraction.models import ExtractionResult
from core.extraction.pbir_layout import extract_pbir_raw_field_references

ReportSchema = Literal["legacy", "pbir"]


class Extractor(Protocol):
    """Protocol for schema-specific raw reference extraction."""

    schema: ReportSchema

    def extract(self, source: Any, report_name: str = "") -> ExtractionResult:
        """Walk one report definition and emit raw field references."""


class LegacyLayoutExtractor:
    """Extractor for the single decoded layout document."""

    schema: ReportSchema = "legacy"

    def extract(self, source: Any, report_name: str = "") -> ExtractionResult:
        return extract_raw_field_references(source, report_name)


class PbirDirectoryExtractor:
    """Extractor for named directory-schema JSON documents."""

    schema: ReportSchema = "pbir"

    def extract(self, source: Mapping[str, str], report_name: str = "") -> ExtractionResult:
        return extract_pbir_raw_field_references(source, report_name)
