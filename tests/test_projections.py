from __future__ import annotations

from core.projections.details_projection import build_details_rows
from core.projections.summary_projection import build_summary_rows
from core.projections.usage_projection import clean_label, to_canonical_usage_rows
from report_fixtures import make_usage


def test_clean_label_coerces_blanks() -> None:
    assert clean_label("  Sales ") == "Sales"
    assert clean_label("   ") == "(unknown)"
    assert clean_label(None) == "(unknown)"


def test_canonical_rows_have_unique_ids_for_repeats() -> None:
    usages = [make_usage(), make_usage()]

    rows = to_canonical_usage_rows(usages)

    assert rows[0].id == "Sales|Overview|v1|Values|Sales|Amount|0"
    assert rows[1].id == "Sales|Overview|v1|Values|Sales|Amount|1"


def test_canonical_row_keys_and_search_text() -> None:
    (row,) = to_canonical_usage_rows(
        [
            make_usage(
                table=None,
                field=" ",
                visual_title="Top Products",
                is_hidden_filter=True,
                page_type="Tooltip",
            )
        ]
    )

    assert row.table == "(unknown)"
    assert row.field == "(unknown)"
    assert row.hidden_usage is True
    assert row.report_page_key == "Sales|Overview"
    assert row.report_visual_key == "Sales|v1"
    assert row.search_text == "sales overview (unknown) (unknown) values table top products tooltip"


def test_canonical_row_title_defaults_to_empty() -> None:
    (row,) = to_canonical_usage_rows([make_usage()])

    assert row.visual_title == ""
    assert row.hidden_usage is False


def test_summary_groups_across_reports() -> None:
    usages = [
        make_usage(report="A", visual_id="v1"),
        make_usage(report="A", visual_id="v2"),
        make_usage(report="B", visual_id="v1"),
        make_usage(report="B", field="Qty"),
    ]

    rows = build_summary_rows(to_canonical_usage_rows(usages))

    assert [(row.table, row.field, row.total_uses) for row in rows] == [
        ("Sales", "Amount", 3),
        ("Sales", "Qty", 1),
    ]
    amount = rows[0]
    assert amount.id == "summary:Sales|Amount"
    assert amount.report_count == 2
    assert amount.page_count == 2
    assert amount.visual_count == 3
    assert [(item.report, item.total_uses) for item in amount.reports] == [("A", 2), ("B", 1)]
    assert amount.search_text == "sales amount column"


def test_summary_sort_ties_by_table_then_field() -> None:
    usages = [
        make_usage(table="Zeta", field="A"),
        make_usage(table="Alpha", field="B"),
        make_usage(table="Alpha", field="A"),
    ]

    rows = build_summary_rows(to_canonical_usage_rows(usages))

    assert [(row.table, row.field) for row in rows] == [("Alpha", "A"), ("Alpha", "B"), ("Zeta", "A")]


def test_summary_report_pages_keep_smallest_index() -> None:
    usages = [
        make_usage(page="Detail", page_index=4),
        make_usage(page="Detail", page_index=2, visual_id="v2"),
        make_usage(page="Overview", page_index=3),
    ]

    (row,) = build_summary_rows(to_canonical_usage_rows(usages))

    pages = row.reports[0].pages
    assert [(page.page, page.page_index, page.count, page.distinct_visuals) for page in pages] == [
        ("Detail", 2, 2, 2),
        ("Overview", 3, 1, 1),
    ]


def test_summary_hidden_only_requires_every_usage_hidden() -> None:
    hidden = [make_usage(is_hidden_visual=True), make_usage(is_hidden_filter=True)]
    mixed = [*hidden, make_usage()]

    assert build_summary_rows(to_canonical_usage_rows(hidden))[0].hidden_only is True
    assert build_summary_rows(to_canonical_usage_rows(mixed))[0].hidden_only is False


def test_summary_kind_tie_prefers_smaller_kind_name() -> None:
    usages = [make_usage(field_kind="measure"), make_usage(field_kind="column")]

    (row,) = build_summary_rows(to_canonical_usage_rows(usages))

    assert row.kind == "column"


def test_details_group_per_report_page_and_sort() -> None:
    usages = [
        make_usage(report="B", page="Overview"),
        make_usage(report="A", page="Detail", page_index=1, role="Y", visual_type="barChart"),
        make_usage(report="A", page="Detail", page_index=1, role="X", visual_type="barChart"),
        make_usage(report="A", page="Overview", visual_id="v2", visual_type="card"),
        make_usage(report="A", page="Overview", is_hidden_visual=True),
    ]

    rows = build_details_rows(to_canonical_usage_rows(usages))

    assert [(row.report, row.page) for row in rows] == [
        ("A", "Overview"),
        ("A", "Detail"),
        ("B", "Overview"),
    ]
    overview = rows[0]
    assert overview.id == "details:A|Overview|Sales|Amount"
    assert overview.total_uses == 2
    assert overview.distinct_visuals == 2
    assert overview.visual_types == ["card", "table"]
    assert overview.hidden_usage_count == 1
    assert overview.hidden_only is False
    detail = rows[1]
    assert detail.roles == ["X", "Y"]
    assert detail.distinct_visuals == 1
    assert detail.search_text == "a detail sales amount x y barchart"


def test_details_keep_minimum_page_index() -> None:
    usages = [make_usage(page_index=5), make_usage(page_index=2)]

    (row,) = build_details_rows(to_canonical_usage_rows(usages))

    assert row.page_index == 2
