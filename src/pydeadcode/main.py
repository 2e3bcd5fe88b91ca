"""pydeadcode CLI - confidence-ranked dead code finder for Python."""
from contextlib import nullcontext
from typing import List, Optional

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn

from .analyzer.pipeline import analyze_sources
from .analyzer.sources import enumerate_sources, parse_exclude
from .config import Config, __version__
from .exceptions import ConfigurationError
from .report import render_json, render_text, render_warnings
from .utils.logger import setup_logging
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="pydeadcode",
    help="Find unused Python functions, classes, methods and module variables, ranked by confidence",
    add_completion=False,
)
console = SafeConsole(soft_wrap=True)
err_console = SafeConsole(stderr=True, soft_wrap=True)


def _version_callback(value: bool):
    if value:
        typer.echo(f"pydeadcode {__version__}")
        raise typer.Exit()


@app.command()
def audit(
    paths: Optional[List[str]] = typer.Argument(None, help="Python files or directories to analyze"),
    min_confidence: Optional[int] = typer.Option(None, "--min-confidence", "-m", help="Only report findings at or above this confidence (0-100, default 0)"),
    sort_by_size: bool = typer.Option(False, "--sort-by-size", "-s", help="Largest definitions first"),
    sort: Optional[str] = typer.Option(None, "--sort", help="Sort policy: by-location (default) or by-size"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Emit findings as JSON"),
    exclude: Optional[str] = typer.Option(None, "--exclude", "-e", help="Comma-separated glob patterns to skip"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Worker threads for per-file analysis"),
    explain: bool = typer.Option(False, "--explain", help="Show the reasons behind each confidence score"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr"),
    fail_on_findings: bool = typer.Option(False, "--fail-on-findings", help="Exit with status 1 when anything is reported"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"),
):
    """Scan Python sources and list unused symbols with a confidence score."""
    setup_logging(verbose=verbose)

    if not paths:
        err_console.print("Error: No paths specified", style="bold red", markup=False, highlight=False)
        raise typer.Exit(1)

    try:
        settings = Config().to_settings(
            min_confidence=min_confidence,
            sort_policy="by-size" if sort_by_size else sort,
            workers=workers,
            exclude=tuple(parse_exclude(exclude)) if exclude is not None else None,
        )
    except ConfigurationError as e:
        err_console.print(f"Error: {e.message}: {e.reason}", style="bold red", markup=False, highlight=False)
        raise typer.Exit(1)

    sources, warnings = enumerate_sources(paths, settings.exclude)

    show_progress = not json_output and err_console.is_terminal and len(sources) > 1
    if show_progress:
        progress_ctx = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=err_console,
            transient=True,
        )
    else:
        progress_ctx = nullcontext()

    with progress_ctx as progress:
        on_progress = None
        if show_progress:
            task = progress.add_task("Analyzing files...", total=len(sources))

            def on_progress(_path: str):
                progress.advance(task)

        result = analyze_sources(sources, settings, on_progress=on_progress)

    render_warnings(warnings + result.warnings, err_console)

    if json_output:
        typer.echo(render_json(result.findings, explain=explain))
    else:
        render_text(result.findings, console, explain=explain)

    if fail_on_findings and result.findings:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
