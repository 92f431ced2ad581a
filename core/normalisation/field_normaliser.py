"""Normalisation of raw references: parse -> classify -> analyse."""

from __future__ import annotations

from collections.abc import Iterable

from core.extraction.constants import DEFAULT_PAGE_TYPE
from core.extraction.field_classifier import classify_field
from core.extraction.models import ExtractionContext, RawFieldReference
from core.normalisation.expression_analyzer import analyse_expression
from core.normalisation.models import ExpressionLineage, NormalisedFieldUsage
from core.normalisation.query_ref_parser import parse_query_ref


def normalise_field_references(
    references: Iterable[RawFieldReference],
    context: ExtractionContext,
    report_name: str | None = None,
) -> list[NormalisedFieldUsage]:
    """Normalise raw references into usage records, 1:1 and in input order.

    Missing visibility flags default to False. Expression lineage is attached
    only when the parsed reference is an expression.

    Args:
        references: Raw references emitted by an extractor.
        context: Extraction context of the same run.
        report_name: Display name override; defaults to the context report name.
    """

    report = report_name if report_name is not None else context.report_name
    return [_normalise_one(reference, report) for reference in references]


def _normalise_one(reference: RawFieldReference, report: str) -> NormalisedFieldUsage:
    parsed = parse_query_ref(reference.query_ref)
    field_kind = classify_field(reference.query_ref, reference.prototype_select)
    components = analyse_expression(reference.query_ref) if parsed.is_expression else None

    return NormalisedFieldUsage(
        report=report,
        page=reference.page_name,
        page_index=reference.page_index,
        page_id=reference.page_id or _fallback_page_id(reference),
        page_type=reference.page_type or DEFAULT_PAGE_TYPE,
        visual_type=reference.visual_type,
        visual_id=reference.visual_id,
        visual_title=reference.visual_title,
        role=reference.role,
        table=parsed.table,
        field=parsed.field,
        field_kind=field_kind,
        expression=parsed.expression,
        expression_components=(
            ExpressionLineage(
                raw_expression=components.raw_expression,
                referenced_tables=list(components.referenced_tables),
                referenced_fields=list(components.referenced_fields),
                aggregation_type=components.aggregation_type,
            )
            if components is not None
            else None
        ),
        is_hidden_visual=bool(reference.is_hidden_visual),
        is_hidden_filter=bool(reference.is_hidden_filter),
    )


def _fallback_page_id(reference: RawFieldReference) -> str:
    if reference.page_name.strip():
        return reference.page_name
    return str(reference.page_index)
