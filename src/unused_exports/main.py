"""unused CLI - report exported functions nothing in the project references."""
import json
import time
from pathlib import Path
from typing import Optional

import click
import typer
from rich.markup import escape
from rich.table import Table

from .analyzer.manifest import ManifestCache
from .analyzer.report import exit_code, print_diagnostic
from .config import __version__, load_config
from .errors import ConfigurationError
from .session import clean as clean_manifest, run_session
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="unused",
    help="Find exported functions that nothing in the project references",
    add_completion=False
)
console = SafeConsole()

# Manifest management sub-command
manifest_app = typer.Typer(name="manifest", help="Inspect the incremental reference manifest")

CONFIG_ERROR_EXIT = 2


def _project_root(project_path: str) -> Path:
    root = Path(project_path).resolve()
    if not root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(root))}")
        raise typer.Exit(CONFIG_ERROR_EXIT)
    return root


def _load(root: Path, **overrides):
    try:
        return load_config(root, **overrides)
    except ConfigurationError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(CONFIG_ERROR_EXIT)


@app.command()
def check(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    severity: Optional[str] = typer.Option(None, "--severity", "-s", help="Severity of reports: hint, information, warning or error"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Number of worker threads tracing units"),
    force: bool = typer.Option(False, "--force", help="Ignore the manifest and retrace every unit"),
    output_format: str = typer.Option(
        "text", "--format", "-f",
        click_type=click.Choice(["text", "json"], case_sensitive=False),
        help="Output format",
    ),
):
    """Trace the project and report unused exported functions."""
    root = _project_root(project_path)
    config = _load(root, severity=severity, jobs=jobs)

    start_time = time.time()
    try:
        result = run_session(config, force=force)
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(CONFIG_ERROR_EXIT)
    elapsed = time.time() - start_time

    if output_format.lower() == "json":
        typer.echo(json.dumps([d.to_dict() for d in result.diagnostics], indent=2))
        raise typer.Exit(exit_code(result.diagnostics, config.fail_on))

    for unit_id, reason in sorted(result.failed_units.items()):
        console.print(f"[yellow]⚠ Skipped {escape(unit_id)}:[/yellow] {escape(reason)}")

    for diagnostic in result.diagnostics:
        print_diagnostic(diagnostic, console)

    console.print(
        f"\n[dim]{len(result.diagnostics)} unused of {result.exported_count} exported "
        f"({len(result.traced_units)} traced, {len(result.reused_units)} reused, "
        f"{elapsed:.2f}s)[/dim]"
    )
    raise typer.Exit(exit_code(result.diagnostics, config.fail_on))


@app.command()
def clean(
    project_path: str = typer.Argument(".", help="Project root path"),
):
    """Delete the manifest, forcing a full trace on the next check."""
    root = _project_root(project_path)
    config = _load(root)
    clean_manifest(config)
    console.print(f"[green]✓ Manifest removed for {escape(str(root))}[/green]")


@manifest_app.command("stats")
def manifest_stats(
    project_path: str = typer.Argument(".", help="Project root path"),
):
    """Display manifest statistics for a project."""
    root = _project_root(project_path)
    config = _load(root)

    manifest = ManifestCache.load(config.manifest_path)
    stats = ManifestCache.stats(manifest)

    table = Table(title=f"Manifest: {escape(str(config.manifest_path))}", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")

    table.add_row("Units", str(stats['units']))
    table.add_row("Units Without References", str(stats['empty_units']))
    table.add_row("References", str(stats['references']))
    table.add_row("Distinct Symbols", str(stats['distinct_symbols']))

    console.print(table)


app.add_typer(manifest_app)


def _version_callback(value: bool):
    if value:
        typer.echo(f"unused {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
):
    """unused - Find exported functions nothing in the project references."""
    pass


if __name__ == "__main__":
    app()
