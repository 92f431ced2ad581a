from __future__ import annotations

import pytest

from core.extraction.field_classifier import (
    classify_field,
    pick_dominant_kind,
    prototype_select_from_legacy,
)
from core.extraction.models import PrototypeSelectItem


@pytest.mark.parametrize(
    ("query_ref", "expected"),
    [
        (".", "context"),
        ("Sum(Sales.Amount)", "measure"),
        ("countrows(Sales)", "measure"),
        ("Average (Sales.Price)", "measure"),
        ("Divide(Sales.Amount, Sales.Cost)", "calculated"),
        ("Sales.Amount", "column"),
        ("Amount", "unknown"),
    ],
)
def test_classify_by_shape(query_ref: str, expected: str) -> None:
    assert classify_field(query_ref) == expected


def test_prototype_measure_hint_wins_over_column_shape() -> None:
    hints = [PrototypeSelectItem(name="Sales.Total Revenue", kind="measure")]

    assert classify_field("Sales.Total Revenue", hints) == "measure"


def test_prototype_column_hint_falls_through_to_shape() -> None:
    hints = [PrototypeSelectItem(name="Sales.Amount", kind="column")]

    assert classify_field("Sales.Amount", hints) == "column"


def test_prototype_hint_for_other_reference_is_ignored() -> None:
    hints = [PrototypeSelectItem(name="Sales.Other", kind="measure")]

    assert classify_field("Sales.Amount", hints) == "column"


def test_context_sentinel_beats_any_hint() -> None:
    hints = [PrototypeSelectItem(name=".", kind="measure")]

    assert classify_field(".", hints) == "context"


def test_mapping_hints_accept_raw_prototype_entries() -> None:
    hints = [{"Name": "Sales.Margin", "Measure": {"Property": "Margin"}}]

    assert classify_field("Sales.Margin", hints) == "measure"


def test_prototype_select_from_legacy_reads_kinds() -> None:
    select = [
        {"Name": "Sales.Amount", "Column": {"Property": "Amount"}},
        {"Name": "Sales.Margin", "Measure": {"Property": "Margin"}},
        {"Name": "Sum(Sales.Qty)", "Aggregation": {"Function": 0}},
        {"Name": "Sales.Odd"},
        {"Column": {"Property": "Nameless"}},
        "not-a-dict",
    ]

    items = prototype_select_from_legacy(select)

    assert [(item.name, item.kind) for item in items] == [
        ("Sales.Amount", "column"),
        ("Sales.Margin", "measure"),
        ("Sum(Sales.Qty)", "measure"),
        ("Sales.Odd", "unknown"),
    ]


def test_prototype_select_from_legacy_ignores_non_lists() -> None:
    assert prototype_select_from_legacy({"Name": "Sales.Amount"}) == ()
    assert prototype_select_from_legacy(None) == ()


def test_pick_dominant_kind_breaks_ties_by_name() -> None:
    assert pick_dominant_kind({"measure": 2, "column": 2, "calculated": 1}) == "column"
    assert pick_dominant_kind({"measure": 3, "column": 2}) == "measure"
    assert pick_dominant_kind({}) == "unknown"
