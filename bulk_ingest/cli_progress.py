"""Console rendering and progress helpers for the bulk-ingest CLI."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import time

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.tree import Tree

from .models import Node
from .orchestrator.batch import IngestBatch
from .orchestrator.models import CommitResult, UploadOutcome
from .utils.events import BatchProgress


console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]bulk-ingest[/bold green]",
        subtitle="[dim]hierarchical bulk ingestion[/dim]",
        border_style="blue",
    )
    console.print(panel)


def _node_label(batch: IngestBatch, node: Node) -> str:
    icon = "📁" if node.is_folder else "🖼 "
    parts = [f"{icon} [bold]{escape(node.name)}[/bold]"]
    if node.is_file and node.payload is not None:
        parts.append(f"[dim]{_human_size(node.payload.size)}[/dim]")

    link = batch.effective_link(node.temp_id)
    if node.link:
        parts.append(f"[cyan]{escape(node.link)}[/cyan]")
    elif link:
        parts.append(f"[dim]inherits {escape(link)}[/dim]")

    association = batch.effective_association(node.temp_id)
    if association:
        parts.append(f"[magenta]#{escape(association)}[/magenta]")

    for field, code in node.errors.items():
        parts.append(f"[red]{field}: {code.value}[/red]")
    return " ".join(parts)


def render_batch_tree(batch: IngestBatch, title: str = "Batch") -> None:
    """Print the forest with effective links and validation errors."""
    stats = batch.stats()
    tree = Tree(
        f"[bold]{escape(title)}[/bold] "
        f"[dim]({stats['folders']} folders, {stats['files']} files, {stats['errors']} with errors)[/dim]"
    )
    stack = [(tree, node) for node in reversed(batch.forest.roots())]
    while stack:
        branch, node = stack.pop()
        child_branch = branch.add(_node_label(batch, node))
        for child in reversed(batch.forest.children_of(node.temp_id)):
            stack.append((child_branch, child))
    console.print(tree)


def render_order(nodes: List[Node]) -> None:
    table = Table(title="Persistence order", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Parent", style="dim")
    names = {n.temp_id: n.name for n in nodes}
    for idx, node in enumerate(nodes, 1):
        parent = names.get(node.parent_temp_id, "(root)") if node.parent_temp_id else "(root)"
        table.add_row(str(idx), node.kind.value, escape(node.name), escape(parent))
    console.print(table)


class BatchUploadProgressDisplay:
    """Progress bar for a commit, with one line per settled item."""

    def __init__(self, total: int = 0):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.description}"),
            BarColumn(bar_width=42),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task_id: Optional[TaskID] = None
        self._total = total
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._progress.start()
        self._task_id = self._progress.add_task("Uploading", total=max(self._total, 1))

    def stop(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

    def on_item_start(self, node: Node) -> None:
        self.start()
        if self._task_id is not None:
            self._progress.update(self._task_id, description=f"Uploading {node.name[:40]}")

    def on_item_complete(self, outcome: UploadOutcome) -> None:
        self._log("DONE", "green", outcome.filename)

    def on_item_fail(self, outcome: UploadOutcome) -> None:
        self._log("FAIL", "red", outcome.filename, outcome.error)

    def on_progress(self, progress: BatchProgress) -> None:
        self.start()
        if self._task_id is not None:
            self._progress.update(self._task_id, completed=progress.completed, total=max(progress.total, 1))

    def on_error(self, error: Exception) -> None:
        self.stop()
        console.print(f"[bold red]Commit failed:[/bold red] {escape(str(error))}")

    def on_finish(self, result: CommitResult) -> None:
        self.stop()
        style = "green" if result.success else "yellow"
        console.print(
            f"[{style}]{result.status.value}[/{style}]: "
            f"{len(result.records)} record(s) saved, {len(result.failed)} upload failure(s)"
        )
        for outcome in result.failed:
            console.print(f"  [red]✗[/red] {escape(outcome.filename)}: {escape(outcome.error or '')}")

    def _log(self, status: str, color: str, name: str, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        error_label = f" cause={escape(error)}" if error else ""
        self._progress.console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {escape(name)}{error_label}"
        )
