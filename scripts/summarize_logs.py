#!/usr/bin/env python3
"""Summarize fieldusage JSON event logs for ops/CI usage.

Accepts bare JSON lines or lines prefixed by a log formatter
(`INFO fieldusage.api {...}`).
"""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter
from pathlib import Path
from typing import Any


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize fieldusage structured logs.")
    parser.add_argument("files", nargs="+", help="One or more log files.")
    parser.add_argument("--json", action="store_true", help="Output JSON.")
    return parser.parse_args()


def _percentile(values: list[int], p: float) -> int | None:
    if not values:
        return None
    ordered = sorted(values)
    index = min(len(ordered) - 1, max(0, math.ceil((p / 100) * len(ordered)) - 1))
    return ordered[index]


def _event_payload(line: str) -> dict[str, Any] | None:
    start = line.find("{")
    if start < 0:
        return None
    try:
        payload = json.loads(line[start:])
    except ValueError:
        return None
    if not isinstance(payload, dict) or "event" not in payload:
        return None
    return payload


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    event_counts: Counter[str] = Counter()
    error_code_counts: Counter[str] = Counter()
    status_counts: Counter[str] = Counter()
    request_ms_values: list[int] = []
    analyse_ms_values: list[int] = []
    files_failed = 0
    parse_errors = 0
    lines_total = 0

    for path in paths:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError:
            parse_errors += 1
            continue

        for line in lines:
            lines_total += 1
            if not line.strip():
                continue

            payload = _event_payload(line)
            if payload is None:
                parse_errors += 1
                continue

            event = str(payload["event"])
            event_counts[event] += 1

            error_code = payload.get("error_code")
            if isinstance(error_code, str):
                error_code_counts[error_code] += 1

            if "status_code" in payload:
                status_counts[str(payload["status_code"])] += 1

            if event == "done" and isinstance(payload.get("total_ms"), int | float):
                request_ms_values.append(int(payload["total_ms"]))
            if event == "analyse_done" and isinstance(payload.get("elapsed_ms"), int | float):
                analyse_ms_values.append(int(payload["elapsed_ms"]))
            if event == "analyse_failed":
                files_failed += 1

    return {
        "files": [str(path) for path in paths],
        "lines_total": lines_total,
        "parse_errors": parse_errors,
        "event_counts": dict(sorted(event_counts.items())),
        "error_code_counts": dict(sorted(error_code_counts.items())),
        "http_status_counts": dict(sorted(status_counts.items())),
        "report_files_failed": files_failed,
        "request_ms_p50": _percentile(request_ms_values, 50),
        "request_ms_p95": _percentile(request_ms_values, 95),
        "analyse_ms_p50": _percentile(analyse_ms_values, 50),
        "analyse_ms_p95": _percentile(analyse_ms_values, 95),
    }


def main() -> None:
    args = _parse_args()
    paths = [Path(item).expanduser() for item in args.files]
    summary = summarize_log_files(paths)

    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return

    print("Field Usage Log Summary")
    for key in (
        "lines_total",
        "parse_errors",
        "event_counts",
        "error_code_counts",
        "http_status_counts",
        "report_files_failed",
        "request_ms_p50",
        "request_ms_p95",
        "analyse_ms_p50",
        "analyse_ms_p95",
    ):
        print(f"{key}={summary[key]}")


if __name__ == "__main__":
    main()
