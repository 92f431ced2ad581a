from __future__ import annotations

import pytest

from core.extraction import registry
from core.extraction.constants import (
    DRILLTHROUGH_FIELD_ROLE,
    PAGE_FILTER_ROLE,
    REPORT_FILTER_ROLE,
    VISUAL_FILTER_ROLE,
)
from core.extraction.pbir_layout import extract_pbir_raw_field_references, field_expr_to_query_ref
from core.extraction.registry import create_extractor, list_supported_schemas
from report_fixtures import (
    DEFINITION_ROOT,
    aggregation_field,
    column_field,
    measure_field,
    pbir_documents,
    pbir_filter,
    pbir_projection,
    pbir_visual,
)


def _pairs(references) -> list[str]:
    return [f"{reference.role}:{reference.query_ref}" for reference in references]


def _two_page_documents() -> dict[str, str]:
    return pbir_documents(
        [
            {
                "id": "p1",
                "display_name": "Overview",
                "visuals": {
                    "b_visual": pbir_visual(
                        "chart",
                        "barChart",
                        {
                            "Category": [pbir_projection("Product.Category", column_field("Product", "Category"))],
                            "Y": [pbir_projection("Sales.Total Revenue", measure_field("Sales", "Total Revenue"))],
                        },
                        title="Revenue",
                    ),
                    "a_visual": pbir_visual(
                        "card",
                        "card",
                        {"Values": [pbir_projection("Sum(Sales.Qty)", aggregation_field("Sales", "Qty"))]},
                    ),
                },
            },
            {
                "id": "p2",
                "display_name": "Detail",
                "type": "Drillthrough",
                "parameters": [
                    {"fieldExpr": column_field("Customer", "Name")},
                    {"fieldExpr": {"Literal": {}}},
                ],
                "filters": [pbir_filter(column_field("Date", "Year"), hidden=True)],
            },
        ],
        report_filters=[pbir_filter(column_field("Sales", "Channel"))],
    )


def test_pages_follow_page_order_and_visuals_sorted_by_path() -> None:
    result = extract_pbir_raw_field_references(_two_page_documents(), "Sales")

    assert _pairs(result.references) == [
        "Values:Sum(Sales.Qty)",
        "Category:Product.Category",
        "Category:Sales.Total Revenue",
        "Y:Sales.Total Revenue",
        f"{PAGE_FILTER_ROLE}:Date.Year",
        f"{DRILLTHROUGH_FIELD_ROLE}:Customer.Name",
        f"{REPORT_FILTER_ROLE}:Sales.Channel",
    ]
    assert result.context.page_order == {"Overview": 0, "Detail": 1}


def test_visual_metadata_and_prototype_hints() -> None:
    result = extract_pbir_raw_field_references(_two_page_documents(), "Sales")

    chart_refs = [ref for ref in result.references if ref.visual_id == "chart"]
    first = chart_refs[0]
    assert first.visual_type == "barChart"
    assert first.visual_title == "Revenue"
    assert first.page_id == "p1"
    assert first.page_type == "Default"
    assert {(item.name, item.kind) for item in first.prototype_select} == {
        ("Product.Category", "column"),
        ("Sales.Total Revenue", "measure"),
    }


def test_page_and_drillthrough_refs_use_page_sentinel() -> None:
    result = extract_pbir_raw_field_references(_two_page_documents(), "Sales")

    page_refs = [ref for ref in result.references if ref.page_name == "Detail"]
    assert {ref.visual_type for ref in page_refs} == {"__PAGE__"}
    assert {ref.visual_id for ref in page_refs} == {"p2"}
    assert {ref.page_type for ref in page_refs} == {"Drillthrough"}
    page_filter = next(ref for ref in page_refs if ref.role == PAGE_FILTER_ROLE)
    assert page_filter.is_hidden_filter is True


def test_report_filter_sentinel() -> None:
    result = extract_pbir_raw_field_references(_two_page_documents(), "Sales")

    reference = result.references[-1]
    assert reference.page_name == "Report"
    assert reference.page_index == -1
    assert reference.visual_type == "__REPORT__"
    assert reference.visual_title == "Sales"


def test_visual_filters_keep_hidden_visual_flag() -> None:
    documents = pbir_documents(
        [
            {
                "id": "p1",
                "display_name": "Page",
                "visuals": {
                    "v": pbir_visual(
                        "hidden_slicer",
                        "slicer",
                        {},
                        hidden=True,
                        filters=[pbir_filter(column_field("Sales", "Region"))],
                    )
                },
            }
        ]
    )

    (reference,) = extract_pbir_raw_field_references(documents).references

    assert reference.role == VISUAL_FILTER_ROLE
    assert reference.is_hidden_visual is True
    assert reference.is_hidden_filter is None


def test_visual_id_falls_back_to_folder_name() -> None:
    visual = pbir_visual("", "card", {"Values": [pbir_projection("Sales.Amount", column_field("Sales", "Amount"))]})
    documents = pbir_documents([{"id": "p1", "display_name": "Page", "visuals": {"folder42": visual}}])

    (reference,) = extract_pbir_raw_field_references(documents).references

    assert reference.visual_id == "folder42"


def test_missing_or_malformed_documents_are_skipped() -> None:
    documents = _two_page_documents()
    documents[f"{DEFINITION_ROOT}/pages/p2/page.json"] = "{broken"
    documents[f"{DEFINITION_ROOT}/pages/p1/visuals/a_visual/visual.json"] = "[]"
    documents[f"{DEFINITION_ROOT}/pages/pages.json"] = '{"pageOrder": ["p1", 5, "p2", "missing"]}'

    result = extract_pbir_raw_field_references(documents, "Sales")

    assert _pairs(result.references) == [
        "Category:Product.Category",
        "Category:Sales.Total Revenue",
        "Y:Sales.Total Revenue",
        f"{REPORT_FILTER_ROLE}:Sales.Channel",
    ]
    assert result.context.page_order == {"Overview": 0}


def test_empty_documents_yield_nothing() -> None:
    result = extract_pbir_raw_field_references({})

    assert result.references == ()


def test_field_expr_to_query_ref_shapes() -> None:
    assert field_expr_to_query_ref(column_field("Sales", "Amount")) == "Sales.Amount"
    assert field_expr_to_query_ref(measure_field("Sales", "Margin")) == "Sales.Margin"
    assert field_expr_to_query_ref(aggregation_field("Sales", "Qty")) == "Sum(Sales.Qty)"
    assert field_expr_to_query_ref({"HierarchyLevel": {}}) is None
    assert field_expr_to_query_ref("Sales.Amount") is None


def test_field_expr_to_query_ref_skips_null_branches() -> None:
    field = {"Column": None, **measure_field("Sales", "Margin")}

    assert field_expr_to_query_ref(field) == "Sales.Margin"
    assert field_expr_to_query_ref({"Measure": {}, **aggregation_field("Sales", "Qty")}) == "Sum(Sales.Qty)"


def test_registry_dispatches_by_schema() -> None:
    assert list_supported_schemas() == ["legacy", "pbir"]
    assert create_extractor("pbir").schema == "pbir"
    assert create_extractor("legacy").schema == "legacy"


def test_registry_rejects_unknown_schema() -> None:
    with pytest.raises(ValueError, match="Unsupported report schema"):
        create_extractor("pbit")


def test_registry_alignment_rejects_undeclared_schema(monkeypatch: pytest.MonkeyPatch) -> None:
    schemas = {**registry._SUPPORTED_SCHEMAS, "pbit": registry.PbirDirectoryExtractor}
    monkeypatch.setattr(registry, "_SUPPORTED_SCHEMAS", schemas)

    with pytest.raises(RuntimeError, match=r"registered=\['legacy', 'pbir', 'pbit'\]"):
        registry._assert_registry_alignment()
