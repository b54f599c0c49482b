"""Rich renderers for engine results."""

from __future__ import annotations

from io import StringIO
import shutil
from typing import Callable, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .errors import RulesyncError
from .sync.client import InstallStatus, TrackedFile
from .sync.drift import DriftReport
from .sync.operations import ReconcileResult, RollbackResult, SyncAction, UninstallResult

DEFAULT_MAX_ROWS = 50

ACTION_STYLES = {
    SyncAction.ADD: ("+", "green"),
    SyncAction.UPDATE: ("~", "cyan"),
    SyncAction.OVERWRITE_UNTRACKED: ("!", "yellow"),
    SyncAction.REFUSE_UNTRACKED: ("x", "yellow"),
    SyncAction.REMOVE: ("-", "red"),
    SyncAction.REMOVE_MISSING: ("-", "dim"),
    SyncAction.PRESERVE: ("=", "blue"),
}


def render_rich(render_fn: Callable[[Console], None]) -> str:
    """Render a Rich layout to an ANSI string without printing live."""

    terminal_size = shutil.get_terminal_size(fallback=(80, 24))
    # Clamp to a reasonable minimum so Rich does not choke on ultra-small widths.
    width = max(40, terminal_size.columns)

    console = Console(
        record=True,
        force_terminal=True,
        color_system="auto",
        width=width,
        file=StringIO(),
    )
    render_fn(console)
    return console.export_text(clear=False, styles=True)


def render_reconcile_result(result: ReconcileResult, *, show_all: bool = False) -> str:
    def _render(console: Console) -> None:
        if result.skipped:
            console.print(f"[green]{escape(result.message)}[/green]")
            return

        operations = sorted(result.operations, key=lambda op: op.path)
        max_rows = len(operations) if show_all else DEFAULT_MAX_ROWS
        for op in operations[:max_rows]:
            marker, style = ACTION_STYLES[op.action]
            suffix = f" [dim]({escape(op.detail)})[/dim]" if op.detail else ""
            console.print(f"  [{style}]{marker}[/{style}] {escape(op.path)}{suffix}")
        if len(operations) > max_rows:
            console.print(f"  [dim]... and {len(operations) - max_rows} more[/dim]")

        stats = result.stats
        table = Table(title="Summary", show_header=False, box=box.SIMPLE)
        table.add_column("Counter", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Added", str(stats.added))
        table.add_row("Updated", str(stats.updated))
        table.add_row("Removed", str(stats.removed))
        if stats.missing:
            table.add_row("Already gone", str(stats.missing))
        table.add_row("User files preserved", str(stats.preserved))
        if stats.conflicts:
            table.add_row("Untracked left in place", str(stats.conflicts))
        if stats.drifted:
            table.add_row("Modified since install", str(stats.drifted))
        console.print(table)
        console.print(f"[bold green]{result.status.capitalize()}:[/bold green] {escape(result.message)}")

    return render_rich(_render)


def render_rollback_result(result: RollbackResult) -> str:
    def _render(console: Console) -> None:
        console.print(f"[bold]Rollback:[/bold] {escape(result.message)}")
        for rel_path in result.skipped:
            console.print(f"  [yellow]skipped[/yellow] {escape(rel_path)}")

    return render_rich(_render)


def render_uninstall_result(result: UninstallResult) -> str:
    def _render(console: Console) -> None:
        style = "green" if result.success else "yellow"
        console.print(f"[{style}]{escape(result.message)}[/{style}]")
        for error in result.errors:
            console.print(f"  [red]x[/red] {escape(error)}")
        if result.success:
            console.print("[blue]User-created files have been preserved.[/blue]")

    return render_rich(_render)


def render_status(status: InstallStatus) -> str:
    def _render(console: Console) -> None:
        if not status.installed:
            console.print(Panel("[yellow]Not installed.", title="Install Status", border_style="yellow"))
            return

        info = Table.grid(padding=(0, 1))
        info.add_column("Key", style="bold", no_wrap=True)
        info.add_column("Value", overflow="fold")
        info.add_row("Location", status.location.value if status.location else "(unknown)")
        info.add_row("Manifest", escape(str(status.manifest_path)))
        info.add_row("Version", status.version or "(unknown)")
        info.add_row("Installed at", status.installed_at or "(unknown)")
        info.add_row("Tracked files", str(status.file_count))
        info.add_row("Backup", "available" if status.has_backup else "none")
        console.print(Panel(info, title="Install Status", border_style="green", padding=(0, 1)))

    return render_rich(_render)


def render_tracked_files(files: Sequence[TrackedFile], *, show_all: bool = False) -> str:
    def _render(console: Console) -> None:
        console.print(f"[bold]Tracked files[/bold] ({len(files)})\n")
        table = Table(show_header=True)
        table.add_column("Path", style="cyan")
        table.add_column("Installed", style="dim")
        table.add_column("Checksum", style="dim", max_width=16)

        max_rows = len(files) if show_all else DEFAULT_MAX_ROWS
        for item in files[:max_rows]:
            table.add_row(escape(item.relative_path), item.installed_at, item.checksum[:12] + "...")
        if len(files) > max_rows:
            console.print(f"(showing first {max_rows} of {len(files)} files)")
        console.print(table)

    return render_rich(_render)


def render_drift_report(report: DriftReport) -> str:
    def _render(console: Console) -> None:
        style = "yellow" if report.has_drift else "green"
        console.print(f"[{style}]{report.summary()}[/{style}]")
        for rel_path in report.modified:
            console.print(f"  [yellow]modified[/yellow] {escape(rel_path)}")
        for rel_path in report.missing:
            console.print(f"  [red]missing[/red]  {escape(rel_path)}")

    return render_rich(_render)


def render_error(error: RulesyncError) -> str:
    def _render(console: Console) -> None:
        console.print(f"[bold red]{error.kind}[/bold red]: {escape(error.message)}")

    return render_rich(_render)


__all__ = [
    "render_rich",
    "render_reconcile_result",
    "render_rollback_result",
    "render_uninstall_result",
    "render_status",
    "render_tracked_files",
    "render_drift_report",
    "render_error",
]
