from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from schema_views.orchestrator import STATUS_FAILED, BatchReport

_STATUS_STYLES = {
    "materialized": "green",
    "compiled": "cyan",
    STATUS_FAILED: "bold red",
}

_OUTCOME_STYLES = {
    "created": "green",
    "replaced": "yellow",
    "unchanged": "dim",
    "compiled": "cyan",
}


def _render_views(views: dict) -> str:
    if not views:
        return "-"
    lines = []
    for name, outcome in views.items():
        style = _OUTCOME_STYLES.get(outcome, "white")
        lines.append(f"{escape(name)} [{style}]({outcome})[/{style}]")
    return "\n".join(lines)


def print_report(report: BatchReport, console: Optional[Console] = None) -> None:
    """
    Render a batch report as a rich table, one row per schema.

    Failed schemas show the error type, the offending field path when the
    failure was a schema validation error, and the message.
    """
    console = console or Console()

    if not report.results:
        console.print("[yellow]No schemas were processed.[/yellow]")
        return

    mode = "dry run" if report.dry_run else "materialized"
    title = (
        f"Schema views for {report.project_id}.{report.dataset_id} "
        f"(prefix '{report.table_name_prefix}', {mode})"
    )
    failures = len(report.failures)
    caption = (
        f"[red]{failures} of {len(report.results)} schema(s) failed[/red]"
        if failures
        else f"All {len(report.results)} schema(s) succeeded"
    )

    table = Table(title=title, box=box.ROUNDED, caption=caption)
    table.add_column("Schema", style="cyan", no_wrap=True)
    table.add_column("Status", justify="center")
    table.add_column("Views")
    table.add_column("Duration (s)", justify="right", style="magenta")
    table.add_column("Error", style="red")

    for result in sorted(report.results, key=lambda r: (not r.failed, r.schema_name)):
        style = _STATUS_STYLES.get(result.status, "white")
        error = "-"
        if result.failed:
            location = f" at {result.field_path}" if result.field_path else ""
            error = escape(f"{result.error_type}{location}: {result.error}")
        table.add_row(
            result.schema_name,
            f"[{style}]{result.status}[/{style}]",
            _render_views(result.views),
            f"{result.duration_seconds:.2f}",
            error,
        )

    console.print(table)


__all__ = ["print_report"]
