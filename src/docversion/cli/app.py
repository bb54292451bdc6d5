"""
Main CLI application for docversion.

Provides a Typer-based command-line interface over a file-backed version
store.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import ConfigManager, DocVersionConfig
from ..core.exceptions import VersioningError
from ..version.audit import entries_to_csv, entries_to_json, export_to_json
from ..version.store import InMemoryVersionStore, JsonFileVersionStore, VersionStore
from ..version.version_control import VersioningService

# Initialize Typer app
app = typer.Typer(
    name="docversion",
    help="Version history for text documents",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


class CLIState:
    """Options shared by every command, set by the root callback."""

    config_file: Optional[Path] = None
    store_path: Optional[Path] = None
    verbose: bool = False


state = CLIState()


@app.callback()
def main(
    config_file: Optional[Path] = typer.Option(None, "--config", help="Path to a YAML config file"),
    store_path: Optional[Path] = typer.Option(None, "--store", "-s", help="Directory holding version files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show log output"),
) -> None:
    """Manage document version history."""
    state.config_file = config_file
    state.store_path = store_path
    state.verbose = verbose


def _load_config() -> DocVersionConfig:
    return ConfigManager(state.config_file).load_config()


def _configure_logging(config: DocVersionConfig) -> None:
    level = logging.DEBUG if state.verbose else getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def get_service() -> VersioningService:
    """Build a service from the current configuration and CLI options."""
    config = _load_config()
    _configure_logging(config)

    store: VersionStore
    if state.store_path is not None or config.storage.backend == "file":
        store = JsonFileVersionStore(state.store_path or config.storage.path)
    else:
        store = InMemoryVersionStore()
    return VersioningService(store, config=config.versioning)


def _parse_reference(value: str) -> Union[int, str]:
    """Digits select a version number, anything else a version ID."""
    return int(value) if value.isdigit() else value


def _fail(error: VersioningError) -> None:
    console.print(f"[red]Error: {error.message}[/red]")
    raise typer.Exit(1)


@app.command()
def commit(
    document_id: str = typer.Argument(..., help="Document identifier"),
    file_path: Path = typer.Argument(..., help="Text file holding the new content"),
    author_id: str = typer.Option(..., "--author", "-a", help="Author ID"),
    author_name: Optional[str] = typer.Option(None, "--name", help="Author display name"),
    message: str = typer.Option("", "--message", "-m", help="Version comment"),
) -> None:
    """
    Create a new version of a document from a text file.
    """
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Error: Could not read {file_path} as UTF-8 text: {e}[/red]")
        raise typer.Exit(1)

    try:
        service = get_service()
        version = service.create_version(
            document_id,
            content,
            {"id": author_id, "displayName": author_name},
            message,
        )
    except VersioningError as e:
        _fail(e)

    console.print(
        f"[green]Created version {version.version_number} of {document_id}[/green] "
        f"({service.differ.describe(version.diff_summary)})"
    )


@app.command()
def log(
    document_id: str = typer.Argument(..., help="Document identifier"),
    max_count: Optional[int] = typer.Option(None, "--count", "-n", help="Maximum number of versions to show"),
    offset: int = typer.Option(0, "--offset", help="Number of versions to skip"),
) -> None:
    """
    Show document version history.
    """
    try:
        service = get_service()
        entries = service.get_version_history(document_id, limit=max_count, offset=offset)
    except VersioningError as e:
        _fail(e)

    history_table = Table(title=f"History of {document_id}")
    history_table.add_column("Version", style="cyan")
    history_table.add_column("Comment", style="white")
    history_table.add_column("Author", style="yellow")
    history_table.add_column("Date", style="blue")
    history_table.add_column("Changes", style="green")

    for entry in entries:
        history_table.add_row(
            str(entry.version_number),
            entry.comment[:50] + ("..." if len(entry.comment) > 50 else ""),
            entry.author.display_name,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(entry.changes.total) if entry.changes.total else "-",
        )

    console.print(history_table)


@app.command()
def show(
    document_id: str = typer.Argument(..., help="Document identifier"),
    version: str = typer.Argument(..., help="Version number or ID"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the content to a file"),
) -> None:
    """
    Print the content of a specific version.
    """
    try:
        service = get_service()
        found = service.get_version(document_id, _parse_reference(version))
    except VersioningError as e:
        _fail(e)

    if output_file:
        output_file.write_text(found.content, encoding="utf-8")
        console.print(f"[green]Version {found.version_number} written to {output_file}[/green]")
        return

    console.print(found.content, markup=False, highlight=False, soft_wrap=True)


@app.command()
def compare(
    document_id: str = typer.Argument(..., help="Document identifier"),
    version_a: str = typer.Argument(..., help="First version number or ID"),
    version_b: str = typer.Argument(..., help="Second version number or ID"),
    as_json: bool = typer.Option(False, "--json", help="Print the full comparison as JSON"),
) -> None:
    """
    Summarize the differences between two versions.
    """
    try:
        service = get_service()
        comparison = service.compare_versions(
            document_id, _parse_reference(version_a), _parse_reference(version_b)
        )
    except VersioningError as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps(comparison.to_dict()))
        return

    summary = comparison.summary
    console.print(Panel.fit(
        f"""[bold]{service.differ.describe(summary)}[/bold]

[bold cyan]Added:[/bold cyan] {summary.added}
[bold red]Removed:[/bold red] {summary.removed}
[bold yellow]Modified:[/bold yellow] {summary.modified}""",
        title=f"Version {comparison.version_a.number} → {comparison.version_b.number}",
        border_style="green",
    ))


@app.command()
def restore(
    document_id: str = typer.Argument(..., help="Document identifier"),
    version: str = typer.Argument(..., help="Version number or ID to restore"),
    author_id: str = typer.Option(..., "--author", "-a", help="Author ID"),
    author_name: Optional[str] = typer.Option(None, "--name", help="Author display name"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Restore comment"),
) -> None:
    """
    Restore an earlier version by appending a copy of it.
    """
    try:
        service = get_service()
        restored = service.restore_version(
            document_id,
            _parse_reference(version),
            {"id": author_id, "displayName": author_name},
            message,
        )
    except VersioningError as e:
        _fail(e)

    source = restored.metadata["restoredFrom"]["versionNumber"]
    console.print(f"[green]Restored version {source} as version {restored.version_number}[/green]")


@app.command()
def audit(
    document_id: str = typer.Argument(..., help="Document identifier"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, csv"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the audit trail to a file"),
) -> None:
    """
    Show the audit trail for a document.
    """
    if output_format not in ("table", "json", "csv"):
        console.print(f"[red]Error: Unknown format: {output_format}[/red]")
        raise typer.Exit(1)

    try:
        service = get_service()
        entries = service.get_audit_trail(document_id)
    except VersioningError as e:
        _fail(e)

    if output_format == "table":
        audit_table = Table(title=f"Audit trail for {document_id}")
        audit_table.add_column("Action", style="magenta")
        audit_table.add_column("Version", style="cyan")
        audit_table.add_column("Author", style="yellow")
        audit_table.add_column("Date", style="blue")
        audit_table.add_column("+/-/~", style="green")
        audit_table.add_column("Comment", style="white")
        for entry in entries:
            audit_table.add_row(
                entry.action.value,
                str(entry.version_number),
                entry.author.display_name,
                entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                f"{entry.changes.added}/{entry.changes.removed}/{entry.changes.modified}",
                entry.comment,
            )
        console.print(audit_table)
        return

    text = entries_to_json(entries) if output_format == "json" else entries_to_csv(entries)
    if output_file:
        output_file.write_text(text, encoding="utf-8")
        console.print(f"[green]Audit trail saved to {output_file}[/green]")
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def export(
    document_id: str = typer.Argument(..., help="Document identifier"),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Save the export to a file"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up after this many seconds"),
) -> None:
    """
    Export the full retained history of a document as JSON.
    """
    try:
        service = get_service()
        history = service.export_history(document_id, timeout=timeout)
    except VersioningError as e:
        _fail(e)

    text = export_to_json(history)
    if output_file:
        output_file.write_text(text, encoding="utf-8")
        console.print(f"[green]Exported {history.version_count} versions to {output_file}[/green]")
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    create_default: bool = typer.Option(False, "--create-default", help="Create a default configuration file"),
) -> None:
    """
    Manage docversion configuration.
    """
    config_manager = ConfigManager(state.config_file)

    if create_default:
        config_manager.create_default_config()
        console.print(f"[green]Created default configuration at {config_manager.config_file}[/green]")
        return

    try:
        config_info = config_manager.get_config_info()
    except VersioningError as e:
        _fail(e)

    if show:
        console.print(Panel(
            f"""[bold cyan]Versioning:[/bold cyan]
• Retention Limit: {config_info['retention_limit']}
• Max Write Attempts: {config_info['max_write_attempts']}

[bold green]Storage:[/bold green]
• Backend: {config_info['storage_backend']}
• Path: {config_info['storage_path']}

[bold magenta]Files:[/bold magenta]
• Config File: {config_info['config_file']}
• Exists: {'Yes' if config_info['config_exists'] else 'No'}""",
            border_style="green",
        ))
        return

    console.print("Use [cyan]docversion config --show[/cyan] to see full configuration")
    console.print("Use [cyan]docversion config --create-default[/cyan] to create a default config file")


if __name__ == "__main__":
    app()
