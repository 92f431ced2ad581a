"""Field kind classification for raw query references."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any, Literal

from core.extraction.constants import AGGREGATION_FUNCTIONS
from core.extraction.models import PrototypeKind, PrototypeSelectItem
from core.utils.json_text import non_blank_str

FieldKind = Literal["column", "measure", "calculated", "context", "unknown"]
FIELD_KINDS: tuple[FieldKind, ...] = ("column", "measure", "calculated", "context", "unknown")

_AGGREGATION_PREFIX_RE = re.compile(
    r"^(" + "|".join(AGGREGATION_FUNCTIONS) + r")\s*\(", re.IGNORECASE
)
_MEASURE_HINT_KEYS = ("Measure", "Aggregation", "aggregation")


def classify_field(
    query_ref: str,
    prototype_select: Iterable[PrototypeSelectItem | Mapping[str, Any]] = (),
) -> FieldKind:
    """Classify a query reference, preferring prototype metadata over its shape.

    Precedence (first match wins):
    - "." is the row/context binding sentinel.
    - A prototype hint named exactly like the reference with a measure signal.
    - Aggregation function prefix such as Sum( or CountRows(.
    - Any other function call.
    - Table.Column reference.
    """

    if query_ref == ".":
        return "context"

    for hint in prototype_select:
        if _hint_name(hint) == query_ref:
            if _hint_signals_measure(hint):
                return "measure"
            break

    if _AGGREGATION_PREFIX_RE.match(query_ref):
        return "measure"
    if "(" in query_ref:
        return "calculated"
    if "." in query_ref:
        return "column"
    return "unknown"


def prototype_select_from_legacy(select: Any) -> tuple[PrototypeSelectItem, ...]:
    """Convert legacy prototypeQuery.Select entries into kind hints."""

    if not isinstance(select, list):
        return ()

    items: list[PrototypeSelectItem] = []
    for entry in select:
        if not isinstance(entry, dict):
            continue
        name = non_blank_str(entry.get("Name"))
        if name is None:
            continue
        items.append(PrototypeSelectItem(name=name, kind=_legacy_entry_kind(entry)))
    return tuple(items)


def _legacy_entry_kind(entry: Mapping[str, Any]) -> PrototypeKind:
    if entry.get("Measure") or entry.get("Aggregation"):
        return "measure"
    if entry.get("Column"):
        return "column"
    return "unknown"


def _hint_name(hint: PrototypeSelectItem | Mapping[str, Any]) -> Any:
    if isinstance(hint, PrototypeSelectItem):
        return hint.name
    return hint.get("name", hint.get("Name"))


def _hint_signals_measure(hint: PrototypeSelectItem | Mapping[str, Any]) -> bool:
    if isinstance(hint, PrototypeSelectItem):
        return hint.kind == "measure"
    if hint.get("kind") == "measure":
        return True
    return any(bool(hint.get(key)) for key in _MEASURE_HINT_KEYS)


def pick_dominant_kind(counts: Mapping[FieldKind, int]) -> FieldKind:
    """Most frequent kind; equal counts resolve to the smaller kind name.

    An empty mapping yields "unknown".
    """

    if not counts:
        return "unknown"
    kind, _ = min(counts.items(), key=lambda item: (-item[1], item[0]))
    return kind
