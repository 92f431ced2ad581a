from __future__ import annotations

import json
from pathlib import Path

import pytest

from apps.cli.io import (
    build_batch_report_path,
    build_output_artifacts,
    existing_output_files,
    write_json_atomic,
    write_text_atomic,
)


def test_build_output_artifacts_per_view_and_format(tmp_path: Path) -> None:
    artifacts = build_output_artifacts(tmp_path, "Sales: Q1", ["summary", "raw"], ["csv", "json"])

    assert [(artifact.view, artifact.export_format, artifact.path.name) for artifact in artifacts] == [
        ("summary", "csv", "Sales- Q1-summary.csv"),
        ("summary", "json", "Sales- Q1-summary.json"),
        ("raw", "csv", "Sales- Q1-raw.csv"),
        ("raw", "json", "Sales- Q1-raw.json"),
    ]
    assert build_batch_report_path(tmp_path, "fieldusage") == tmp_path / "fieldusage-report.json"


def test_existing_output_files_includes_extra_paths(tmp_path: Path) -> None:
    artifacts = build_output_artifacts(tmp_path, "r", ["summary", "details"], ["csv"])
    artifacts[1].path.write_text("x", encoding="utf-8")
    report_path = build_batch_report_path(tmp_path, "r")
    report_path.write_text("{}", encoding="utf-8")

    assert existing_output_files(artifacts) == [artifacts[1].path]
    assert existing_output_files(artifacts, extra_paths=[report_path]) == [
        artifacts[1].path,
        report_path,
    ]


def test_write_text_atomic_creates_parent_and_cleans_tmp(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.csv"

    write_text_atomic(target, "a,b\n1,2\n")

    assert target.read_text(encoding="utf-8") == "a,b\n1,2\n"
    assert list(target.parent.glob("out.csv.*.tmp")) == []


def test_write_text_atomic_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "out.csv"
    target.write_text("previous", encoding="utf-8")

    def broken_replace(self: Path, _: Path) -> Path:
        raise OSError("replace failed")

    monkeypatch.setattr(Path, "replace", broken_replace)

    with pytest.raises(OSError, match="replace failed"):
        write_text_atomic(target, "new")

    assert target.read_text(encoding="utf-8") == "previous"
    assert list(tmp_path.glob("out.csv.*.tmp")) == []


def test_write_text_atomic_removes_tmp_when_write_fails(tmp_path: Path) -> None:
    target = tmp_path / "out.csv"

    with pytest.raises(TypeError):
        write_text_atomic(target, 123)  # type: ignore[arg-type]

    assert not target.exists()
    assert list(tmp_path.glob("out.csv.*.tmp")) == []


def test_write_json_atomic_sorts_keys(tmp_path: Path) -> None:
    target = tmp_path / "report.json"

    write_json_atomic(target, {"b": 1, "a": [1, 2]})

    assert json.loads(target.read_text(encoding="utf-8")) == {"a": [1, 2], "b": 1}
    assert target.read_text(encoding="utf-8").index('"a"') < target.read_text(encoding="utf-8").index('"b"')
