from __future__ import annotations

from core.extraction.constants import (
    PAGE_FILTER_ROLE,
    PAGE_SENTINEL_VISUAL_TYPE,
    REPORT_FILTER_ROLE,
    REPORT_SENTINEL_VISUAL_TYPE,
    VISUAL_FILTER_ROLE,
)
from core.extraction.legacy_layout import (
    emit_propagated_projection_refs,
    extract_raw_field_references,
    field_identity_from_query_ref,
)
from core.extraction.models import RawFieldReference
from report_fixtures import (
    legacy_column_filter,
    legacy_layout,
    legacy_section,
    legacy_visual,
    round_trip_layout,
)


def _base() -> RawFieldReference:
    return RawFieldReference(
        page_index=0,
        page_name="Overview",
        visual_id="v1",
        visual_type="table",
        role="",
        query_ref="",
    )


def _pairs(references: tuple[RawFieldReference, ...] | list[RawFieldReference]) -> list[str]:
    return [f"{reference.role}:{reference.query_ref}" for reference in references]


def test_field_identity_collapses_aggregations() -> None:
    assert field_identity_from_query_ref("Sum(Sales.Amount)") == "Sales.Amount"
    assert field_identity_from_query_ref("Sales.Amount") == "Sales.Amount"
    assert field_identity_from_query_ref("CountRows()") is None
    assert field_identity_from_query_ref("Amount") is None


def test_propagation_uses_first_seen_query_ref_for_all_earlier_roles() -> None:
    projections = {
        "X": [{"queryRef": "Sum(Sales.Amount)"}],
        "Y": [{"queryRef": "Sales.Amount"}],
    }

    emitted = emit_propagated_projection_refs(projections, _base())

    assert _pairs(emitted) == [
        "X:Sum(Sales.Amount)",
        "X:Sum(Sales.Amount)",
        "Y:Sum(Sales.Amount)",
    ]


def test_propagation_skips_duplicates_within_one_role() -> None:
    projections = {
        "Values": [
            {"queryRef": "Sales.Amount"},
            {"queryRef": "Sum(Sales.Amount)"},
            {"queryRef": "Sales.Qty"},
        ]
    }

    emitted = emit_propagated_projection_refs(projections, _base())

    assert _pairs(emitted) == ["Values:Sales.Amount", "Values:Sales.Qty"]


def test_propagation_drops_refs_without_identity() -> None:
    projections = {"Values": [{"queryRef": "Amount"}, {"queryRef": "   "}, {}, "junk"]}

    assert emit_propagated_projection_refs(projections, _base()) == []


def test_extracts_visual_projection_metadata() -> None:
    layout = legacy_layout(
        [
            legacy_section(
                "Overview",
                [
                    legacy_visual(
                        "chart1",
                        "columnChart",
                        {"Category": ["Date.Year"], "Y": ["Sum(Sales.Amount)"]},
                        select=[{"Name": "Sum(Sales.Amount)", "Aggregation": {"Function": 0}}],
                        title="Revenue by year",
                        hidden=True,
                    )
                ],
                name="ReportSection1",
                tooltip=True,
            )
        ]
    )

    result = extract_raw_field_references(layout, "Sales")

    assert _pairs(result.references) == [
        "Category:Date.Year",
        "Category:Sum(Sales.Amount)",
        "Y:Sum(Sales.Amount)",
    ]
    first = result.references[0]
    assert first.page_name == "Overview"
    assert first.page_id == "ReportSection1"
    assert first.page_type == "Tooltip"
    assert first.visual_id == "chart1"
    assert first.visual_type == "columnChart"
    assert first.visual_title == "Revenue by year"
    assert first.is_hidden_visual is True
    assert first.prototype_select[0].kind == "measure"
    assert result.context.page_order == {"Overview": 0}
    assert result.context.report_name == "Sales"


def test_accepts_already_parsed_visual_config() -> None:
    layout = legacy_layout(
        [
            legacy_section(
                "Page",
                [legacy_visual("v", "card", {"Values": ["Sales.Amount"]}, config_as_string=False)],
            )
        ]
    )

    result = extract_raw_field_references(layout)

    assert _pairs(result.references) == ["Values:Sales.Amount"]


def test_malformed_visual_config_is_skipped() -> None:
    layout = legacy_layout(
        [
            legacy_section(
                "Page",
                [{"config": "{broken"}, legacy_visual("ok", "card", {"Values": ["Sales.Amount"]})],
            )
        ]
    )

    result = extract_raw_field_references(layout)

    assert _pairs(result.references) == ["Values:Sales.Amount"]


def test_visual_filters_clear_hidden_visual_flag() -> None:
    layout = legacy_layout(
        [
            legacy_section(
                "Page",
                [
                    legacy_visual(
                        "v1",
                        "table",
                        {},
                        hidden=True,
                        filters=[legacy_column_filter("Sales", "Region", hidden=True)],
                    )
                ],
            )
        ]
    )

    (reference,) = extract_raw_field_references(layout).references

    assert reference.role == VISUAL_FILTER_ROLE
    assert reference.query_ref == "Sales.Region"
    assert reference.is_hidden_visual is None
    assert reference.is_hidden_filter is True


def test_page_filters_use_page_sentinel() -> None:
    layout = legacy_layout(
        [
            legacy_section("Intro", []),
            legacy_section(
                "Detail",
                [],
                name="ReportSection2",
                filters=[legacy_column_filter("Product", "Category")],
            ),
        ]
    )

    (reference,) = extract_raw_field_references(layout).references

    assert reference.role == PAGE_FILTER_ROLE
    assert reference.visual_type == PAGE_SENTINEL_VISUAL_TYPE
    assert reference.visual_id == "ReportSection2"
    assert reference.visual_title == "Detail"
    assert reference.page_index == 1
    assert reference.is_hidden_filter is None


def test_report_filters_use_report_sentinel() -> None:
    result = extract_raw_field_references(round_trip_layout(), "Sales")

    report_refs = [ref for ref in result.references if ref.role == REPORT_FILTER_ROLE]
    assert len(report_refs) == 1
    (reference,) = report_refs
    assert reference.page_name == "Report"
    assert reference.page_index == -1
    assert reference.page_id == "__REPORT__"
    assert reference.visual_id == "__REPORT__"
    assert reference.visual_type == REPORT_SENTINEL_VISUAL_TYPE
    assert reference.visual_title == "Sales"
    assert reference.query_ref == "Sales.Freight"


def test_report_filter_title_absent_without_report_name() -> None:
    result = extract_raw_field_references(round_trip_layout(), "  ")

    assert result.references[-1].visual_title is None


def test_non_dict_layout_yields_nothing() -> None:
    result = extract_raw_field_references(["not", "a", "layout"])

    assert result.references == ()
    assert result.context.page_order == {}


def test_visual_without_type_or_name_falls_back() -> None:
    config = {"singleVisual": {"projections": {"Values": [{"queryRef": "Sales.Amount"}]}}}
    layout = legacy_layout([legacy_section("Page", [{"id": 7, "config": config}])])

    (reference,) = extract_raw_field_references(layout).references

    assert reference.visual_type == "unknown"
    assert reference.visual_id == "7"
