"""Extractor registry keyed by source schema."""

from __future__ import annotations

from collections.abc import Callable
from typing import get_args

from core.extraction.base import Extractor, LegacyLayoutExtractor, PbirDirectoryExtractor, ReportSchema

ExtractorFactory = Callable[[], Extractor]

_SUPPORTED_SCHEMAS: dict[str, ExtractorFactory] = {
    "legacy": LegacyLayoutExtractor,
    "pbir": PbirDirectoryExtractor,
}


def create_extractor(schema: str) -> Extractor:
    """Instantiate the extractor for a detected schema."""

    try:
        factory = _SUPPORTED_SCHEMAS[schema]
    except KeyError as exc:
        raise ValueError(f"Unsupported report schema: {schema}") from exc
    return factory()


def list_supported_schemas() -> list[str]:
    """Return supported schema names in stable order."""

    return sorted(_SUPPORTED_SCHEMAS)


def _assert_registry_alignment() -> None:
    """Fail fast when registry keys diverge from the schema literal or the extractors."""

    registered = set(_SUPPORTED_SCHEMAS)
    declared = set(get_args(ReportSchema))
    mismatched = sorted(
        name for name, factory in _SUPPORTED_SCHEMAS.items() if factory.schema != name
    )
    if registered != declared or mismatched:
        raise RuntimeError(
            "Extractor registry keys must match report schemas: "
            f"registered={sorted(registered)}, declared={sorted(declared)}, "
            f"mismatched={mismatched}"
        )


_assert_registry_alignment()
