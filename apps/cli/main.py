"""Typer CLI entrypoint for pbi-field-usage."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Literal, cast

import typer

from apps.cli.format_human import render_analysis_summary
from apps.cli.io import (
    ExportFormat,
    build_batch_report_path,
    build_output_artifacts,
    existing_output_files,
    write_json_atomic,
    write_text_atomic,
)
from core.aggregation.pivot_builder import build_pivot_from_normalised
from core.config.settings import AnalysisSettings, load_settings
from core.export.data_export import EXPORT_VIEWS, ExportView, render_export
from core.orchestrator.pipeline import BatchResult, run_batch
from core.projections.summary_projection import build_summary_rows
from core.projections.usage_projection import to_canonical_usage_rows

app = typer.Typer(help="Power BI field usage CLI", rich_markup_mode=None)
ReportMode = Literal["human", "json", "both"]

_FORMATS: dict[str, list[ExportFormat]] = {
    "csv": ["csv"],
    "json": ["json"],
    "both": ["csv", "json"],
}
_DEFAULT_VIEWS: list[ExportView] = ["summary", "details"]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep `fieldusage analyse` as explicit command form."""


@app.command("analyse")
def analyse_command(
    files: Annotated[list[Path], typer.Argument(exists=True, help="PBIX/ZIP files or PBIP report folders.")],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    export_format: Annotated[str, typer.Option("--format")] = "csv",
    view: Annotated[
        list[str] | None,
        typer.Option("--view", help="Views to export: summary, details, raw. Repeatable."),
    ] = None,
    name: Annotated[
        str | None, typer.Option("--name", help="File name prefix for exported artifacts.")
    ] = None,
    config: Annotated[Path | None, typer.Option(dir_okay=False, file_okay=True)] = None,
    max_workers: Annotated[int | None, typer.Option(min=1)] = None,
    report: Annotated[str, typer.Option()] = "human",
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite outputs when they already exist.")
    ] = False,
    no_overwrite: Annotated[
        bool,
        typer.Option(
            "--no-overwrite",
            help="Fail when outputs already exist.",
        ),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log pipeline events to stderr.")] = False,
) -> None:
    """Analyse report files and write summary/details/raw exports."""

    _configure_logging(verbose)

    normalized_format = export_format.lower().strip()
    if normalized_format not in _FORMATS:
        typer.echo("ERROR: --format must be one of: csv, json, both.")
        raise typer.Exit(code=1)
    formats = _FORMATS[normalized_format]

    normalized_report = report.lower().strip()
    if normalized_report not in {"human", "json", "both"}:
        typer.echo("ERROR: --report must be one of: human, json, both.")
        raise typer.Exit(code=1)
    report_mode = cast(ReportMode, normalized_report)

    views = _resolve_views(view)
    if views is None:
        typer.echo(f"ERROR: --view must be one of: {', '.join(EXPORT_VIEWS)}.")
        raise typer.Exit(code=1)

    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        raise typer.Exit(code=1)

    settings = _load_settings_or_exit(config, max_workers)

    batch = run_batch(files, settings)
    if batch.all_failed:
        for outcome in batch.outcomes:
            typer.echo(f"ERROR: {outcome.source_name}: {outcome.message}")
        raise typer.Exit(code=2)

    scope_label = name or batch.scope_label
    artifacts = build_output_artifacts(out_dir, scope_label, views, formats)
    report_path = build_batch_report_path(out_dir, scope_label)
    extra_paths = [report_path] if report_mode in {"json", "both"} else []

    existing = existing_output_files(artifacts, extra_paths=extra_paths)
    if existing and no_overwrite:
        typer.echo("ERROR: outputs already exist and --no-overwrite is enabled.")
        raise typer.Exit(code=1)
    if existing:
        names = ", ".join(path.name for path in existing)
        typer.echo(f"INFO: overwriting existing outputs: {names}")

    normalised = batch.combined.normalised
    try:
        for artifact in artifacts:
            content = render_export(
                artifact.view,
                artifact.export_format,
                normalised,
                list_separator=settings.csv_list_separator,
                indent=settings.json_indent,
            )
            write_text_atomic(artifact.path, content)
            typer.echo(f"INFO: wrote {artifact.path}")
        if report_path in extra_paths:
            write_json_atomic(report_path, _batch_report_payload(batch))
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=1) from exc

    if report_mode in {"human", "both"}:
        summary_rows = build_summary_rows(to_canonical_usage_rows(normalised))
        typer.echo(render_analysis_summary(batch, summary_rows))

    if batch.failed_count:
        for outcome in batch.outcomes:
            if outcome.status == "error":
                typer.echo(f"WARNING: {outcome.source_name}: {outcome.message}")
        raise typer.Exit(code=3)

    typer.echo("INFO: success")
    raise typer.Exit(code=0)


@app.command("pivot")
def pivot_command(
    files: Annotated[list[Path], typer.Argument(exists=True, help="PBIX/ZIP files or PBIP report folders.")],
    config: Annotated[Path | None, typer.Option(dir_okay=False, file_okay=True)] = None,
    max_workers: Annotated[int | None, typer.Option(min=1)] = None,
    verbose: Annotated[bool, typer.Option("--verbose")] = False,
) -> None:
    """Print the `report -> table -> field -> page -> count` pivot as JSON."""

    _configure_logging(verbose)
    settings = _load_settings_or_exit(config, max_workers)

    batch = run_batch(files, settings)
    if batch.all_failed:
        for outcome in batch.outcomes:
            typer.echo(f"ERROR: {outcome.source_name}: {outcome.message}", err=True)
        raise typer.Exit(code=2)

    result = build_pivot_from_normalised(batch.combined.normalised)
    payload = {"pivot": result.pivot, "pages": result.pages, "field_order": result.field_order}
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=settings.json_indent))

    raise typer.Exit(code=3 if batch.failed_count else 0)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")


def _load_settings_or_exit(config: Path | None, max_workers: int | None) -> AnalysisSettings:
    try:
        settings = load_settings(config)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1) from exc
    if max_workers is not None:
        settings = settings.model_copy(update={"max_concurrency": max_workers})
    return settings


def _resolve_views(raw_views: list[str] | None) -> list[ExportView] | None:
    if not raw_views:
        return list(_DEFAULT_VIEWS)
    views: list[ExportView] = []
    for raw in raw_views:
        normalized = raw.lower().strip()
        if normalized not in EXPORT_VIEWS:
            return None
        typed = cast(ExportView, normalized)
        if typed not in views:
            views.append(typed)
    return views


def _batch_report_payload(batch: BatchResult) -> dict[str, object]:
    return {
        "outcomes": [outcome.model_dump(mode="json") for outcome in batch.outcomes],
        "usage_count": len(batch.combined.normalised),
        "raw_count": len(batch.combined.raw),
        "failed_count": batch.failed_count,
    }


def main() -> None:
    """Poetry script entrypoint."""

    app()


if __name__ == "__main__":
    main()
