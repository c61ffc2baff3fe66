"""Operator-facing rendering of maintenance run summaries."""

from __future__ import annotations

from typing import Callable, List

from src.core.confirmation_gate import GateState
from src.core.orchestrator import RunSummary
from src.core.result_reporter import format_report

RULE = "=" * 60

Output = Callable[[str], None]


def preview_lines(summary: RunSummary) -> List[str]:
    """Per-collection match previews followed by the total"""
    lines = ["", "SUMMARY", RULE]
    for name in summary.collections:
        if name in summary.errors:
            lines.append(f"{name}: ERROR {summary.errors[name]}")
            continue
        report = summary.reports.get(name)
        if report is None or report.count == 0:
            lines.append(f"{name}: 0 document(s)")
            continue
        lines.extend(format_report(report))
    lines.append("")
    lines.append(f"Total: {summary.total_matched} document(s) across all collections")
    lines.append(RULE)
    return lines


def outcome_lines(summary: RunSummary) -> List[str]:
    """Final status block; always separates matched, deleted and errored"""
    lines = [""]
    if summary.decision is GateState.DRY_RUN_EXIT:
        lines.append("This was a dry run. No documents were deleted.")
    elif summary.decision is GateState.NOTHING_TO_DELETE:
        lines.append("No documents to delete.")
    elif summary.decision is GateState.CANCELLED:
        lines.append("Deletion cancelled. No documents were deleted.")

    lines.append(RULE)
    for name in summary.collections:
        report = summary.reports.get(name)
        result = summary.results.get(name)
        line = (
            f"{name}: matched={report.count if report else 0} "
            f"deleted={result.succeeded if result else 0}"
        )
        if result is not None and result.failed_chunks:
            line += f" failed_chunks={result.failed_chunks}"
        if name in summary.errors:
            line += f" error={summary.errors[name]}"
        lines.append(line)

    mode = "DRY RUN" if summary.dry_run else "DELETE"
    lines.append(
        f"[{mode}] matched={summary.total_matched} "
        f"deleted={summary.total.succeeded} "
        f"errored={len(summary.errors)}"
    )
    if summary.failed:
        lines.append(
            "Some collections failed. Re-running is safe: documents already "
            "deleted no longer match the query."
        )
    lines.append(RULE)
    return lines


def emit(lines: List[str], output: Output = print) -> None:
    for line in lines:
        output(line)
