from __future__ import annotations

from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rets_poller.domain.models import ExecutionResult


def summarize(results: List[ExecutionResult]) -> List[Dict[str, Any]]:
    """Plain-dict view of a tick, one row per query."""
    return [
        {
            "query": result.name,
            "resource": result.request.resource,
            "class": result.request.class_,
            "records": len(result.records),
            "runtime_seconds": round(result.elapsed_seconds, 3),
            "error": None if result.ok else str(result.error),
        }
        for result in results
    ]


def print_tick_summary(results: List[ExecutionResult], console: Optional[Console] = None) -> None:
    """
    Render one tick's per-query outcome as a rich table.
    """
    console = console or Console(stderr=True)

    if not results:
        console.print("[yellow]No queries registered.[/yellow]")
        return

    rows = summarize(results)
    failed = sum(1 for row in rows if row["error"])
    caption = f"{len(rows)} queries, {failed} failed"

    table = Table(title="RETS Poll Tick", box=box.ROUNDED, caption=caption)
    table.add_column("Query", style="cyan", no_wrap=True)
    table.add_column("Resource / Class", style="blue")
    table.add_column("Records", justify="right", style="magenta")
    table.add_column("Runtime (s)", justify="right", style="green")
    table.add_column("Status")

    for row in rows:
        status = "[green]ok[/green]" if not row["error"] else f"[red]{escape(row['error'])}[/red]"
        table.add_row(
            row["query"],
            f"{row['resource'] or '-'} / {row['class'] or '-'}",
            f"{row['records']:,}",
            f"{row['runtime_seconds']:.3f}",
            status,
        )

    console.print(table)


__all__ = ["print_tick_summary", "summarize"]
