"""FastAPI wrapper for the field usage analysis pipeline."""

from __future__ import annotations

import asyncio
import importlib.metadata
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Annotated, Any, cast

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from core.aggregation.field_aggregator import aggregate_field_usage
from core.aggregation.serialization import serialize_field_usage_aggregation
from core.config.settings import AnalysisSettings, load_settings
from core.export.data_export import EXPORT_VIEWS, ExportView, export_file_name, render_export
from core.extraction.registry import list_supported_schemas
from core.orchestrator.pipeline import BatchResult, NamedPayload, run_batch
from core.projections.details_projection import build_details_rows
from core.projections.summary_projection import build_summary_rows
from core.projections.usage_projection import to_canonical_usage_rows
from core.utils.log_events import dump_event_json

app = FastAPI(title="pbi-field-usage API", version="0.1.0")
logger = logging.getLogger("fieldusage.api")

REQUEST_ID_HEADER = "X-FieldUsage-Request-Id"
_ALLOWED_SUFFIXES = (".pbix", ".zip")
_DEFAULT_QUEUE_TIMEOUT_SECONDS = 0.0


@dataclass
class _ConcurrencyLimiter:
    max_concurrency: int
    queue_timeout_seconds: float
    semaphore: threading.BoundedSemaphore


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


_limiter_lock = threading.Lock()
_limiter_cache: _ConcurrencyLimiter | None = None


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for clients."""

    request_id = _request_id_from_request(request)
    payload = {
        "supported_schemas": list_supported_schemas(),
        "export_views": list(EXPORT_VIEWS),
        "accepted_suffixes": list(_ALLOWED_SUFFIXES),
        "version": _package_version(),
    }
    return JSONResponse(status_code=200, headers={REQUEST_ID_HEADER: request_id}, content=payload)


@app.post("/v1/analyse", response_model=None)
async def analyse_v1(
    request: Request,
    files: Annotated[list[UploadFile], File(...)],
    include_aggregation: Annotated[bool, Form()] = False,
) -> JSONResponse:
    """Analyse uploaded reports and return summary and details rows."""

    request_id = _request_id_from_request(request)

    async def handler(batch: BatchResult, settings: AnalysisSettings) -> JSONResponse:
        canonical = to_canonical_usage_rows(batch.combined.normalised)
        aggregation = aggregate_field_usage(batch.combined.normalised)
        payload: dict[str, Any] = {
            "outcomes": [outcome.model_dump(mode="json") for outcome in batch.outcomes],
            "summary": [row.model_dump(mode="json") for row in build_summary_rows(canonical)],
            "details": [row.model_dump(mode="json") for row in build_details_rows(canonical)],
            "aggregation_summary": aggregation.summary.model_dump(mode="json"),
        }
        if include_aggregation:
            payload["aggregation"] = serialize_field_usage_aggregation(aggregation)
        return JSONResponse(
            status_code=200,
            headers={REQUEST_ID_HEADER: request_id},
            content=payload,
        )

    return await _run_upload_request(request_id, files, handler)


@app.post("/v1/export/{view}.csv", response_model=None)
async def export_csv_v1(
    request: Request,
    view: str,
    files: Annotated[list[UploadFile], File(...)],
) -> Response:
    """Analyse uploaded reports and return one view as CSV."""

    request_id = _request_id_from_request(request)
    if view not in EXPORT_VIEWS:
        return _error_response(
            status_code=404,
            error_code="UNKNOWN_VIEW",
            message=f"view must be one of: {', '.join(EXPORT_VIEWS)}",
            request_id=request_id,
            detail={"view": view},
        )
    export_view = cast(ExportView, view)

    async def handler(batch: BatchResult, settings: AnalysisSettings) -> Response:
        content = render_export(
            export_view,
            "csv",
            batch.combined.normalised,
            list_separator=settings.csv_list_separator,
        )
        file_name = export_file_name(batch.scope_label, export_view, "csv")
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={
                REQUEST_ID_HEADER: request_id,
                "Content-Disposition": f'attachment; filename="{file_name}"',
                "X-FieldUsage-Failed-Files": str(batch.failed_count),
            },
        )

    return await _run_upload_request(request_id, files, handler)


async def _run_upload_request(request_id: str, files: list[UploadFile], handler) -> Response:
    request_started = time.perf_counter()
    failure_stage = "init"
    slot_acquired = False
    limiter: _ConcurrencyLimiter | None = None

    try:
        failure_stage = "validate_inputs"
        limiter = _get_concurrency_limiter()
        slot_acquired, queue_wait_ms = await _try_acquire_concurrency_slot(limiter)
        if not slot_acquired:
            _log_event(
                logging.ERROR,
                "error",
                request_id,
                error_code="TOO_MANY_REQUESTS",
                status_code=429,
                failure_stage=failure_stage,
                queue_wait_ms=queue_wait_ms,
            )
            return _error_response(
                status_code=429,
                error_code="TOO_MANY_REQUESTS",
                message="server busy",
                request_id=request_id,
                detail={
                    "max_concurrency": limiter.max_concurrency,
                    "queue_timeout_seconds": limiter.queue_timeout_seconds,
                },
            )

        settings = _load_settings_with_api_error()
        max_upload_bytes = _max_upload_bytes(settings)
        _log_event(logging.INFO, "start", request_id, files=len(files))

        failure_stage = "upload"
        if not files:
            raise ApiRequestError(
                status_code=400,
                error_code="NO_FILES",
                message="at least one file is required",
            )
        payloads: list[NamedPayload] = []
        total_size = 0
        for upload in files:
            _validate_upload_name(upload.filename)
            data = _read_upload_with_limit(upload, max_bytes=max_upload_bytes)
            total_size += len(data)
            payloads.append(NamedPayload(name=upload.filename or "", data=data))

        failure_stage = "analyse"
        batch = await asyncio.to_thread(run_batch, payloads, settings)
        if batch.all_failed:
            raise ApiRequestError(
                status_code=422,
                error_code="ALL_FILES_FAILED",
                message="no uploaded file could be analysed",
                detail={"outcomes": [outcome.model_dump(mode="json") for outcome in batch.outcomes]},
            )

        failure_stage = "respond"
        response = await handler(batch, settings)
        _log_event(
            logging.INFO,
            "done",
            request_id,
            status_code=response.status_code,
            files=len(payloads),
            failed=batch.failed_count,
            upload_bytes=total_size,
            total_ms=_elapsed_ms(request_started),
        )
        return response
    except ApiRequestError as exc:
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code=exc.error_code,
            status_code=exc.status_code,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            request_id=request_id,
            detail=exc.detail,
        )
    except Exception as exc:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage=failure_stage,
        )
        return _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"error": str(exc), "total_ms": _elapsed_ms(request_started)},
        )
    finally:
        if slot_acquired and limiter is not None:
            limiter.semaphore.release()


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _load_settings_with_api_error() -> AnalysisSettings:
    try:
        settings = load_settings()
    except ValueError as exc:
        raise ApiRequestError(
            status_code=500,
            error_code="SETTINGS_INVALID",
            message=str(exc),
        ) from exc
    max_concurrency = _env_positive_int("FIELDUSAGE_MAX_CONCURRENCY")
    if max_concurrency is not None:
        settings = settings.model_copy(update={"max_concurrency": max_concurrency})
    return settings


def _validate_upload_name(filename: str | None) -> None:
    if filename is None or not filename.lower().endswith(_ALLOWED_SUFFIXES):
        raise ApiRequestError(
            status_code=415,
            error_code="INVALID_MEDIA_TYPE",
            message="files must be .pbix or .zip archives",
            detail={"field": "files", "filename": filename},
        )


def _read_upload_with_limit(upload: UploadFile, *, max_bytes: int) -> bytes:
    source = upload.file
    source.seek(0)

    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = source.read(1024 * 1024)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > max_bytes:
            raise ApiRequestError(
                status_code=413,
                error_code="UPLOAD_TOO_LARGE",
                message="upload exceeds size limit",
                detail={
                    "field": "files",
                    "filename": upload.filename,
                    "max_bytes": max_bytes,
                    "received_bytes": total_size,
                },
            )
        chunks.append(chunk)

    source.close()
    return b"".join(chunks)


def _max_upload_bytes(settings: AnalysisSettings) -> int:
    return _env_positive_int("FIELDUSAGE_MAX_UPLOAD_BYTES") or settings.max_upload_bytes


def _max_concurrency() -> int:
    return _env_positive_int("FIELDUSAGE_MAX_REQUESTS") or 2


def _queue_timeout_seconds() -> float:
    raw = os.getenv("FIELDUSAGE_QUEUE_TIMEOUT_SECONDS")
    if raw is None:
        return _DEFAULT_QUEUE_TIMEOUT_SECONDS
    try:
        parsed = float(raw)
    except ValueError:
        return _DEFAULT_QUEUE_TIMEOUT_SECONDS
    return parsed if parsed >= 0 else _DEFAULT_QUEUE_TIMEOUT_SECONDS


def _env_positive_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        parsed = int(raw)
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _get_concurrency_limiter() -> _ConcurrencyLimiter:
    global _limiter_cache

    max_concurrency = _max_concurrency()
    queue_timeout = _queue_timeout_seconds()

    with _limiter_lock:
        if (
            _limiter_cache is None
            or _limiter_cache.max_concurrency != max_concurrency
            or _limiter_cache.queue_timeout_seconds != queue_timeout
        ):
            _limiter_cache = _ConcurrencyLimiter(
                max_concurrency=max_concurrency,
                queue_timeout_seconds=queue_timeout,
                semaphore=threading.BoundedSemaphore(value=max_concurrency),
            )
        return _limiter_cache


async def _try_acquire_concurrency_slot(limiter: _ConcurrencyLimiter) -> tuple[bool, int]:
    waited_started = time.perf_counter()
    timeout_seconds = limiter.queue_timeout_seconds

    if timeout_seconds == 0:
        acquired_now = limiter.semaphore.acquire(blocking=False)
        return acquired_now, _elapsed_ms(waited_started)

    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        if limiter.semaphore.acquire(blocking=False):
            return True, _elapsed_ms(waited_started)
        await asyncio.sleep(0.01)

    return False, _elapsed_ms(waited_started)


def _package_version() -> str:
    try:
        return importlib.metadata.version("pbi-field-usage")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, dump_event_json(payload))
