"""Orchestration pipeline: load -> extract -> normalise, per report and per batch."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from core.config.settings import AnalysisSettings
from core.extraction.base import ReportSchema
from core.extraction.models import RawFieldReference
from core.extraction.registry import create_extractor
from core.io.pbix_loader import LoadedReport, load_report_bytes, load_report_package
from core.normalisation.field_normaliser import normalise_field_references
from core.normalisation.models import NormalisedFieldUsage
from core.utils.errors import PbixError, user_facing_message
from core.utils.log_events import log_event

logger = logging.getLogger("fieldusage.pipeline")

DEFAULT_REPORT_NAME = "report"
COMBINED_SCOPE_LABEL = "fieldusage"
_REPORT_SUFFIX_RE = re.compile(r"\.(pbix|zip|report)$", re.IGNORECASE)

OutcomeStatus = Literal["ok", "error"]


@dataclass(frozen=True)
class AnalysisResult:
    """Raw references and their normalised usages, index-aligned."""

    raw: tuple[RawFieldReference, ...]
    normalised: tuple[NormalisedFieldUsage, ...]


@dataclass(frozen=True)
class NamedPayload:
    """In-memory archive with the file name it was uploaded under."""

    name: str
    data: bytes


BatchSource = Path | NamedPayload


class BatchOutcome(BaseModel):
    """Per-file status of one batch run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    source_name: str
    report_name: str
    status: OutcomeStatus
    schema_name: ReportSchema | None = None
    reference_count: int = 0
    error_code: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class BatchResult:
    outcomes: tuple[BatchOutcome, ...]
    combined: AnalysisResult

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == "error")

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and self.failed_count == len(self.outcomes)

    @property
    def scope_label(self) -> str:
        """The report name when exactly one report succeeded, else the combined label."""

        ok = [outcome for outcome in self.outcomes if outcome.status == "ok"]
        if len(ok) == 1:
            return ok[0].report_name
        return COMBINED_SCOPE_LABEL


def analyse_report(layout: Any, report_name: str) -> AnalysisResult:
    """Analyse one decoded legacy layout document."""

    return _analyse("legacy", layout, report_name)


def analyse_pbir_report(documents: Mapping[str, str], report_name: str) -> AnalysisResult:
    """Analyse one directory-schema report given its named JSON documents."""

    return _analyse("pbir", documents, report_name)


def analyse_loaded_report(loaded: LoadedReport, report_name: str | None = None) -> AnalysisResult:
    name = report_name or derive_report_name(loaded.source_name)
    if loaded.schema == "legacy":
        return analyse_report(loaded.layout, name)
    return analyse_pbir_report(loaded.documents, name)


def combine_analysis_results(results: Iterable[AnalysisResult]) -> AnalysisResult:
    """Concatenate per-report results in input order."""

    raw: list[RawFieldReference] = []
    normalised: list[NormalisedFieldUsage] = []
    for result in results:
        raw.extend(result.raw)
        normalised.extend(result.normalised)
    return AnalysisResult(raw=tuple(raw), normalised=tuple(normalised))


def derive_report_name(file_name: str) -> str:
    """Display name for a report file: the base name without its package suffix."""

    stem = _REPORT_SUFFIX_RE.sub("", PurePath(file_name).name).strip()
    return stem or DEFAULT_REPORT_NAME


def make_unique_report_name(base: str, seen: set[str]) -> str:
    """Return `base`, or `base-2`, `base-3`, ... when taken; records the result in `seen`."""

    candidate = base
    suffix = 2
    while candidate in seen:
        candidate = f"{base}-{suffix}"
        suffix += 1
    seen.add(candidate)
    return candidate


def run_batch(sources: Sequence[BatchSource], settings: AnalysisSettings) -> BatchResult:
    """Load and analyse every source on a bounded worker pool.

    Outcomes and combined rows follow input order. A failing source becomes an
    error outcome and never blocks the others.
    """

    started = time.perf_counter()
    seen: set[str] = set()
    names = [make_unique_report_name(derive_report_name(source.name), seen) for source in sources]

    workers = max(1, min(settings.max_concurrency, len(sources) or 1))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fieldusage") as executor:
        runs = list(executor.map(_run_one, sources, names))

    outcomes = tuple(outcome for outcome, _ in runs)
    results = [result for _, result in runs if result is not None]
    combined = combine_analysis_results(results)
    if not settings.include_raw:
        combined = AnalysisResult(raw=(), normalised=combined.normalised)

    batch = BatchResult(outcomes=outcomes, combined=combined)
    log_event(
        logger,
        logging.INFO,
        "batch_done",
        files=len(outcomes),
        failed=batch.failed_count,
        normalised_count=len(combined.normalised),
        workers=workers,
        elapsed_ms=_elapsed_ms(started),
    )
    return batch


def _run_one(source: BatchSource, report_name: str) -> tuple[BatchOutcome, AnalysisResult | None]:
    source_name = source.name
    try:
        loaded = _load_source(source)
        result = analyse_loaded_report(loaded, report_name)
    except PbixError as exc:
        log_event(
            logger,
            logging.WARNING,
            "analyse_failed",
            source=source_name,
            error_code=exc.code,
        )
        return _failed_outcome(source_name, report_name, exc, exc.code), None
    except Exception as exc:  # noqa: BLE001
        logger.exception("unexpected failure analysing %s", source_name)
        return _failed_outcome(source_name, report_name, exc, "INTERNAL_ERROR"), None

    outcome = BatchOutcome(
        source_name=source_name,
        report_name=report_name,
        status="ok",
        schema_name=loaded.schema,
        reference_count=len(result.normalised),
    )
    return outcome, result


def _failed_outcome(
    source_name: str, report_name: str, error: BaseException, error_code: str
) -> BatchOutcome:
    return BatchOutcome(
        source_name=source_name,
        report_name=report_name,
        status="error",
        error_code=error_code,
        message=user_facing_message(error),
    )


def _load_source(source: BatchSource) -> LoadedReport:
    if isinstance(source, NamedPayload):
        return load_report_bytes(source.data, source.name)
    return load_report_package(source)


def _analyse(schema: ReportSchema, source: Any, report_name: str) -> AnalysisResult:
    started = time.perf_counter()
    log_event(logger, logging.DEBUG, "analyse_start", report=report_name, schema=schema)

    extraction = create_extractor(schema).extract(source, report_name)
    normalised = normalise_field_references(extraction.references, extraction.context, report_name)
    result = AnalysisResult(raw=extraction.references, normalised=tuple(normalised))

    log_event(
        logger,
        logging.INFO,
        "analyse_done",
        report=report_name,
        schema=schema,
        raw_count=len(result.raw),
        normalised_count=len(result.normalised),
        pages=len(extraction.context.page_order),
        elapsed_ms=_elapsed_ms(started),
    )
    return result


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
