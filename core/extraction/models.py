"""Data models for raw field references emitted by the extractors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

PrototypeKind = Literal["column", "measure", "unknown"]


@dataclass(frozen=True)
class PrototypeSelectItem:
    """Authoritative kind hint for one query reference of a visual."""

    name: str
    kind: PrototypeKind = "unknown"


@dataclass(frozen=True)
class RawFieldReference:
    """One observed occurrence of a field or expression, before interpretation."""

    page_index: int
    page_name: str
    visual_id: str
    visual_type: str
    role: str
    query_ref: str
    page_id: str | None = None
    page_type: str | None = None
    visual_title: str | None = None
    prototype_select: tuple[PrototypeSelectItem, ...] = ()
    is_hidden_visual: bool | None = None
    is_hidden_filter: bool | None = None


@dataclass(frozen=True)
class FilterRef:
    """Query reference read from one visual/page/report filter entry."""

    query_ref: str
    hidden: bool


@dataclass(frozen=True)
class ExtractionContext:
    """Report-wide context shared by every reference of one extraction."""

    report_name: str
    page_order: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionResult:
    """Extractor output contract shared by both source schemas."""

    references: tuple[RawFieldReference, ...]
    context: ExtractionContext
