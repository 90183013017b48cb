"""CLI entry point for the visual diff engine."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sitediff.errors import DiffError
from sitediff.models.config import DiffConfig
from sitediff.orchestrator import DiffOrchestrator
from sitediff.progress import JsonRpcProgressSink, ProgressReporter

console = Console(stderr=True)

DEFAULT_CONFIG = "sitediff-config.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(path: str) -> DiffConfig:
    if Path(path).exists():
        return DiffConfig.load(path)
    if path != DEFAULT_CONFIG:
        console.print(f"[red]Config file not found: {path}[/red]")
        sys.exit(1)
    return DiffConfig()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression diff for generated sites"""
    setup_logging(verbose)


@cli.command()
@click.option("--generation-id", "-g", required=True, help="Generation to validate")
@click.option("--baselines", type=click.Choice(["cached", "recrawl"]), default="cached",
              help="Use cached crawl snapshots or re-capture the source pages")
@click.option("--width", type=int, default=None, help="Viewport width")
@click.option("--height", type=int, default=None, help="Viewport height")
@click.option("--device-scale", type=float, default=None, help="Device scale factor")
@click.option("--threshold", "-t", type=float, default=None, help="Pass threshold (0-1)")
@click.option("--report/--no-report", default=False, help="Render the aggregate HTML report")
@click.option("--progress-json", is_flag=True, help="Emit JSON-RPC progress notifications on stdout")
@click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")
def diff(
    generation_id: str,
    baselines: str,
    width: int | None,
    height: int | None,
    device_scale: float | None,
    threshold: float | None,
    report: bool,
    progress_json: bool,
    config: str,
) -> None:
    """Build, serve and visually diff the staged app against its baselines."""
    cfg = _load_config(config)

    progress = ProgressReporter()
    if progress_json:
        progress.subscribe(JsonRpcProgressSink(sys.stdout))

    viewport = cfg.default_viewport.model_copy(update={
        k: v for k, v in (("width", width), ("height", height), ("device_scale", device_scale))
        if v is not None
    })

    orchestrator = DiffOrchestrator(cfg, progress=progress)
    try:
        result = asyncio.run(orchestrator.diff(
            generation_id,
            baselines=baselines,
            viewport=viewport.model_dump(),
            threshold=threshold,
            render_report=report,
        ))
    except DiffError as e:
        console.print(f"[red]Diff failed ({e.code}):[/red] {e.message}")
        if e.data and "stderr" in e.data:
            console.print(str(e.data["stderr"])[-2000:], markup=False)
        sys.exit(1)

    console.print("\n[bold green]Diff Complete[/bold green]")
    table = Table(title=f"Routes ({result.diff_id})")
    table.add_column("Route", style="bold")
    table.add_column("Diff")
    table.add_column("Result")
    limit = threshold if threshold is not None else cfg.default_threshold
    for r in result.per_route:
        status = "[green]PASS[/green]" if r.diff_ratio <= limit else "[red]FAIL[/red]"
        if r.degraded:
            status += " [yellow](render fallback)[/yellow]"
        table.add_row(r.route, f"{r.diff_ratio:.2%}", status)
    console.print(table)
    console.print(
        f"Passed: [green]{result.summary.passed}[/green]  "
        f"Failed: [red]{result.summary.failed}[/red]  "
        f"Average: {result.summary.avg:.2%}"
    )
    if result.report_path:
        console.print(f"  HTML report: [blue]{result.report_path}[/blue]")


@cli.command()
@click.option("--workspace", "-w", default=".site2ts", help="site2ts workspace directory")
def init(workspace: str) -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG} already exists. Overwrite?"):
            return

    cfg = DiffConfig(workspace_dir=workspace)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]sitediff diff --generation-id <id> --report[/blue]")


if __name__ == "__main__":
    cli()
