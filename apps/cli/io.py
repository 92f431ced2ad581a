"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from core.export.data_export import ExportView, export_file_name

ExportFormat = Literal["csv", "json"]


@dataclass(frozen=True)
class OutputArtifact:
    """One export file of an analysis run."""

    view: ExportView
    export_format: ExportFormat
    path: Path


def build_output_artifacts(
    out_dir: Path,
    scope_label: str,
    views: list[ExportView],
    formats: list[ExportFormat],
) -> list[OutputArtifact]:
    """Build export paths under out_dir, one per view and format."""

    return [
        OutputArtifact(
            view=view,
            export_format=export_format,
            path=out_dir / export_file_name(scope_label, view, export_format),
        )
        for view in views
        for export_format in formats
    ]


def build_batch_report_path(out_dir: Path, scope_label: str) -> Path:
    return out_dir / export_file_name(scope_label, "report", "json")


def existing_output_files(
    artifacts: list[OutputArtifact], extra_paths: list[Path] | None = None
) -> list[Path]:
    """Return existing output files among planned artifact paths."""

    candidates = [artifact.path for artifact in artifacts]
    if extra_paths:
        candidates.extend(extra_paths)
    return [path for path in candidates if path.exists()]


def write_text_atomic(path: Path, content: str) -> None:
    """Write text via a temporary sibling file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            tmp.write(content)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    try:
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    write_text_atomic(path, json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))
