"""
콘솔 출력 (rich Table/Tree).

엔진 결과 객체 → 사람이 읽는 출력. JSON/YAML 출력은 to_dict() 기반.
"""

import json
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from codebrick.core.files import build_tree, format_size
from codebrick.domain.schemas import (
    ApplyReport,
    CleanReport,
    CopyReport,
    DirectoryStats,
    FileStatus,
    RegistryEntry,
    TemplateInfo,
)

STATUS_STYLES = {
    FileStatus.CREATED: ("+", "green"),
    FileStatus.OVERWRITTEN: ("~", "yellow"),
    FileStatus.SKIPPED: ("-", "dim"),
    FileStatus.CONFLICT: ("!", "magenta"),
    FileStatus.FAILED: ("✗", "red"),
}


def _location(entry: RegistryEntry) -> str:
    if entry.is_remote and entry.remote is not None:
        return entry.remote.display()
    return entry.path or ""


def _date(timestamp: str) -> str:
    return timestamp[:10] if timestamp else "-"


# =============================================================================
# list / info
# =============================================================================

def render_list(console: Console, templates: dict[str, RegistryEntry]) -> None:
    if not templates:
        console.print("[yellow]No templates saved yet.[/yellow]")
        console.print("[dim]  brick save <name> \\[path][/dim]")
        return

    table = Table(title=f"Templates ({len(templates)})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="blue")
    table.add_column("Description", style="green")
    table.add_column("Tags", style="magenta")
    table.add_column("Updated", style="dim")

    for index, (name, entry) in enumerate(templates.items(), start=1):
        table.add_row(
            str(index),
            name,
            entry.type.value,
            entry.description or "",
            ", ".join(entry.tags),
            _date(entry.updated_at),
        )
    console.print(table)


def list_as_json(templates: dict[str, RegistryEntry]) -> str:
    data = [{"name": name, **entry.to_dict()} for name, entry in templates.items()]
    return json.dumps(data, ensure_ascii=False, indent=2)


def info_as_text(info: TemplateInfo) -> Table:
    entry = info.entry
    table = Table(show_header=False, box=None, title=f"[bold]{info.name}[/bold]")
    table.add_column(style="dim")
    table.add_column()

    table.add_row("Type", entry.type.value)
    table.add_row("Location", _location(entry))
    table.add_row("Description", entry.description or "-")
    table.add_row("Tags", ", ".join(entry.tags) or "-")
    table.add_row("Created", entry.created_at or "-")
    table.add_row("Updated", entry.updated_at or "-")

    metadata = info.metadata
    if metadata is not None:
        table.add_row("Version", metadata.version)
        table.add_row("Source", f"{metadata.source.origin} {metadata.source.path}".strip())
        table.add_row("Files", str(len(metadata.files)))
        if metadata.dependencies:
            table.add_row("Dependencies", ", ".join(
                f"{k}@{v}" for k, v in sorted(metadata.dependencies.items())
            ))
        if metadata.dev_dependencies:
            table.add_row("Dev dependencies", ", ".join(
                f"{k}@{v}" for k, v in sorted(metadata.dev_dependencies.items())
            ))
    elif entry.is_local:
        table.add_row("Metadata", "[red]missing[/red]")
    return table


def render_info(console: Console, info: TemplateInfo, fmt: str = "text") -> None:
    if fmt == "json":
        console.print_json(json.dumps(info.to_dict(), ensure_ascii=False))
    elif fmt == "yaml":
        console.print(
            yaml.safe_dump(info.to_dict(), allow_unicode=True, sort_keys=False),
            end="",
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
    else:
        console.print(info_as_text(info))


# =============================================================================
# tree / size
# =============================================================================

def _add_nodes(branch: Tree, node: dict[str, Any]) -> None:
    dirs = sorted(k for k, v in node.items() if v is not None)
    files = sorted(k for k, v in node.items() if v is None)
    for name in dirs:
        _add_nodes(branch.add(f"[bold blue]{escape(name)}/[/bold blue]"), node[name])
    for name in files:
        branch.add(escape(name))


def render_tree(console: Console, name: str, files: list[str]) -> None:
    root = Tree(f"[bold cyan]{name}[/bold cyan]")
    _add_nodes(root, build_tree(files))
    console.print(root)
    console.print(f"[dim]{len(files)} files[/dim]")


def render_stats(console: Console, name: str, stats: DirectoryStats) -> None:
    table = Table(show_header=False, box=None, title=f"[bold]{name}[/bold]")
    table.add_column(style="dim")
    table.add_column(justify="right")
    table.add_row("Files", str(stats.files))
    table.add_row("Directories", str(stats.directories))
    table.add_row("Total size", format_size(stats.total_size))
    console.print(table)


# =============================================================================
# Reports
# =============================================================================

def render_copy_report(console: Console, report: CopyReport, verb: str) -> None:
    console.print(f"[green]✓ {verb} {len(report.files)} files ({report.name})[/green]")
    for failure in report.failures:
        console.print(f"  [red]✗ {escape(failure.path)}: {escape(failure.error)}[/red]")


def render_apply_report(console: Console, report: ApplyReport) -> None:
    header = "Dry run" if report.dry_run else "Applied"
    console.print(f"[bold]{header}: {report.template} → {report.destination}[/bold]")
    for outcome in report.outcomes:
        mark, style = STATUS_STYLES[outcome.status]
        line = f"  [{style}]{mark} {escape(outcome.path)}[/{style}]"
        if outcome.error:
            line += f" [red]({escape(outcome.error)})[/red]"
        console.print(line)

    console.print(
        f"[dim]{len(report.created)} created, {len(report.overwritten)} overwritten, "
        f"{len(report.skipped)} skipped, {len(report.pending)} conflicts, "
        f"{len(report.failed)} failed[/dim]"
    )
    if report.cancelled:
        console.print("[yellow]Remaining conflicts were skipped (cancelled).[/yellow]")
    if report.pending:
        console.print("[yellow]Use --force to overwrite or --skip-existing to keep existing files.[/yellow]")


def render_clean_report(console: Console, report: CleanReport) -> None:
    if not report.files:
        console.print("[green]No local imports found.[/green]")
        return

    if report.project_name:
        console.print(f"[dim]Project: {report.project_name}[/dim]")
    table = Table(title="Dry run" if report.dry_run else "Cleaned")
    table.add_column("File", style="cyan")
    table.add_column("Removed", justify="right", style="yellow")
    for item in report.files:
        table.add_row(escape(item.path), str(item.removed))
    console.print(table)
    console.print(f"[dim]{report.total_removed} import lines in {len(report.files)} files[/dim]")
    for failure in report.failures:
        console.print(f"  [red]✗ {escape(failure.path)}: {escape(failure.error)}[/red]")
