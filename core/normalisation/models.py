"""Normalised field usage models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from core.extraction.field_classifier import FieldKind


class ExpressionLineage(BaseModel):
    """Serializable expression decomposition attached to expression usages."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    raw_expression: str
    referenced_tables: list[str]
    referenced_fields: list[str]
    aggregation_type: str | None = None


class NormalisedFieldUsage(BaseModel):
    """One raw reference after parsing and classification.

    Keeps all raw page/visual metadata so downstream stages never need the raw list.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    report: str
    page: str
    page_index: int
    page_id: str
    page_type: str
    visual_type: str
    visual_id: str
    visual_title: str | None = None
    role: str
    table: str | None
    field: str | None
    field_kind: FieldKind
    expression: str | None = None
    expression_components: ExpressionLineage | None = None
    is_hidden_visual: bool = False
    is_hidden_filter: bool = False
