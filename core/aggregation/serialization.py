"""Plain-object serialization of aggregation results."""

from __future__ import annotations

from typing import Any

from core.aggregation.models import FieldUsageAggregate, FieldUsageAggregation


def serialize_field_usage_aggregate(aggregate: FieldUsageAggregate) -> dict[str, Any]:
    """Dump one aggregate with its page breakdown in page order."""

    payload = aggregate.model_dump(mode="json")
    payload["usages_by_page"] = {
        detail.page_name: detail.model_dump(mode="json") for detail in aggregate.ordered_pages()
    }
    return payload


def serialize_field_usage_aggregation(aggregation: FieldUsageAggregation) -> dict[str, Any]:
    return {
        "fields": [serialize_field_usage_aggregate(aggregate) for aggregate in aggregation.fields],
        "pages": [page.model_dump(mode="json") for page in aggregation.pages],
        "summary": aggregation.summary.model_dump(mode="json"),
    }
