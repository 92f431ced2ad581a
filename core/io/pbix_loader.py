"""Report package loading: PBIX/ZIP archives and PBIP report folders."""

from __future__ import annotations

import io
import json
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from core.extraction.base import ReportSchema
from core.extraction.pbir_layout import DEFINITION_ROOT
from core.utils.errors import PbixError
from core.utils.log_events import log_event

logger = logging.getLogger("fieldusage.loader")

LEGACY_LAYOUT_ENTRIES = ("Report/Layout", "Report/Layout.json")
_PBIP_LEGACY_DOCUMENT = "report.json"


@dataclass(frozen=True)
class LoadedReport:
    """Decoded report definition ready for extraction.

    `layout` is set for the legacy schema, `documents` for the directory schema.
    """

    schema: ReportSchema
    source_name: str
    layout: dict[str, Any] | None = None
    documents: dict[str, str] = field(default_factory=dict)


def load_report_package(path: Path) -> LoadedReport:
    """Load a `.pbix`/`.zip` archive or a PBIP report folder from disk."""

    if path.is_dir():
        return _load_report_folder(path)

    try:
        data = path.read_bytes()
    except OSError as exc:
        raise PbixError("PBIX_NOT_ZIP", source=path.name) from exc
    return load_report_bytes(data, path.name)


def load_report_bytes(data: bytes, source_name: str) -> LoadedReport:
    """Load an in-memory archive."""

    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as exc:
        raise PbixError("PBIX_NOT_ZIP", source=source_name) from exc

    with archive:
        names = archive.namelist()
        for entry in LEGACY_LAYOUT_ENTRIES:
            if entry in names:
                text = _decode_layout(_read_entry(archive, entry, source_name), source_name)
                loaded = LoadedReport(
                    schema="legacy",
                    source_name=source_name,
                    layout=_parse_layout(text, source_name),
                )
                _log_loaded(loaded, entry)
                return loaded

        prefix = f"{DEFINITION_ROOT}/"
        documents = {
            name: _decode_definition_document(_read_entry(archive, name, source_name))
            for name in sorted(names)
            if name.startswith(prefix) and name.endswith(".json")
        }

    if not documents:
        raise PbixError("LAYOUT_NOT_FOUND", source=source_name)

    loaded = LoadedReport(schema="pbir", source_name=source_name, documents=documents)
    _log_loaded(loaded, DEFINITION_ROOT)
    return loaded


def _load_report_folder(root: Path) -> LoadedReport:
    for definition in (root / "definition", root / "Report" / "definition"):
        if definition.is_dir():
            documents = {
                f"{DEFINITION_ROOT}/{json_path.relative_to(definition).as_posix()}": _decode_definition_document(
                    json_path.read_bytes()
                )
                for json_path in sorted(definition.rglob("*.json"))
                if json_path.is_file()
            }
            if documents:
                loaded = LoadedReport(schema="pbir", source_name=root.name, documents=documents)
                _log_loaded(loaded, str(definition))
                return loaded

    legacy_document = root / _PBIP_LEGACY_DOCUMENT
    if legacy_document.is_file():
        text = _decode_document(legacy_document.read_bytes(), root.name)
        loaded = LoadedReport(
            schema="legacy",
            source_name=root.name,
            layout=_parse_layout(text, root.name),
        )
        _log_loaded(loaded, str(legacy_document))
        return loaded

    raise PbixError("LAYOUT_NOT_FOUND", source=root.name)


def _read_entry(archive: zipfile.ZipFile, name: str, source_name: str) -> bytes:
    try:
        return archive.read(name)
    except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
        raise PbixError("LAYOUT_DECODE_FAILED", source=source_name) from exc


def _decode_layout(raw: bytes, source_name: str) -> str:
    """Legacy layouts are UTF-16-LE; a leading BOM is dropped."""

    try:
        text = raw.decode("utf-16-le")
    except UnicodeDecodeError as exc:
        raise PbixError("LAYOUT_DECODE_FAILED", source=source_name) from exc
    return text.lstrip("\ufeff")


def _decode_document(raw: bytes, source_name: str) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise PbixError("LAYOUT_DECODE_FAILED", source=source_name) from exc


def _decode_definition_document(raw: bytes) -> str:
    """Invalid bytes are replaced; the extractor skips documents that no longer parse."""

    return raw.decode("utf-8-sig", errors="replace")


def _parse_layout(text: str, source_name: str) -> dict[str, Any]:
    try:
        layout = json.loads(text)
    except ValueError as exc:
        raise PbixError("LAYOUT_PARSE_FAILED", source=source_name) from exc
    if not isinstance(layout, dict):
        raise PbixError("LAYOUT_PARSE_FAILED", source=source_name)
    return layout


def _log_loaded(loaded: LoadedReport, entry: str) -> None:
    log_event(
        logger,
        logging.DEBUG,
        "report_loaded",
        source=loaded.source_name,
        schema=loaded.schema,
        entry=entry,
        documents=len(loaded.documents),
    )
