"""Human-readable analysis summary rendering for CLI output."""

from __future__ import annotations

from core.orchestrator.pipeline import BatchResult
from core.projections.models import SummaryRow


def render_analysis_summary(batch: BatchResult, summary_rows: list[SummaryRow], *, top: int = 5) -> str:
    """Render a one-screen summary of a batch run."""

    outcomes = batch.outcomes
    ok_count = len(outcomes) - batch.failed_count

    lines: list[str] = []
    lines.append("analysis_summary:")
    lines.append(f"files={len(outcomes)} ok={ok_count} failed={batch.failed_count}")

    for outcome in outcomes:
        if outcome.status == "ok":
            lines.append(
                f"report: {outcome.report_name} schema={outcome.schema_name} "
                f"usages={outcome.reference_count}"
            )
        else:
            lines.append(f"failed: {outcome.source_name} ({outcome.error_code}) {outcome.message}")

    hidden_only = sum(1 for row in summary_rows if row.hidden_only)
    lines.append(
        f"usages={len(batch.combined.normalised)} fields={len(summary_rows)} hidden_only={hidden_only}"
    )

    if summary_rows:
        top_items = ", ".join(
            f"{row.table}.{row.field}={row.total_uses}" for row in summary_rows[:top]
        )
        lines.append(f"top_fields: {top_items}")
    else:
        lines.append("top_fields: none")

    return "\n".join(lines)
