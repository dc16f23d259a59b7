"""
Flow Replay - CLI Entry Point.

Configuration Priority:
    1. CLI arguments (--speed, --headless, etc.)
    2. Environment variables (FLOW_REPLAY__PLAYBACK__SPEED, etc.)
    3. Config file (config.yaml)

Usage:
    flow-replay record https://example.com
    flow-replay list
    flow-replay play <flow-id> --speed 2
    flow-replay dry-run <flow-id> --html page.html
"""

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from flow_replay.browsers.memory import MemorySurface
from flow_replay.config import Settings, load_config
from flow_replay.exceptions import FlowReplayError
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.models.flow import Flow
from flow_replay.playback.controller import PlaybackEvent, PlaybackSession
from flow_replay.registry import create_store, create_surface
from flow_replay.service import FlowReplayService
from flow_replay.storage import (
    backup_filename,
    export_flow,
    export_flows,
    flow_filename,
    import_flows,
    options_from_stored_settings,
    read_import_file,
    write_export,
)
from flow_replay.utils.logging import setup_logging

logger = logging.getLogger(__name__)

# Create the CLI app
app = typer.Typer(
    name="flow-replay",
    help="Record browser interactions as flows and replay them",
    add_completion=False,
)

console = Console()


# ==================== Shared setup ====================

def _load(
    config: Optional[Path],
    store: Optional[Path],
    verbose: bool,
) -> Settings:
    """Load settings, apply CLI overrides and configure logging."""
    settings = load_config(config_path=config)
    if store is not None:
        settings = settings.merge_with({"storage": {"backend": "json", "path": str(store)}})
    setup_logging(
        level="DEBUG" if verbose else settings.logging.level,
        log_file=settings.logging.file,
        json_format=settings.logging.json_format,
    )
    return settings


async def _require_flow(store: IFlowStore, flow_id: str) -> Flow:
    flow = await store.get_flow(flow_id)
    if flow is None:
        console.print(f"[red]✗ Flow not found: {flow_id}[/red]")
        raise typer.Exit(1)
    return flow


def _format_time(stamp: int) -> str:
    from datetime import datetime
    return datetime.fromtimestamp(stamp / 1000).strftime("%Y-%m-%d %H:%M")


def _run(coro) -> None:
    """Run a command coroutine, turning library errors into exit code 1."""
    try:
        asyncio.run(coro)
    except FlowReplayError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


ConfigOption = typer.Option(None, "--config", "-c", help="Path to a YAML config file")
StoreOption = typer.Option(None, "--store", "-s", help="Path to the JSON flow store")
VerboseOption = typer.Option(False, "--verbose", help="Enable verbose output")


# ==================== Flow management ====================

@app.command("list")
def list_flows(
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """List saved flows, newest first."""
    settings = _load(config, store, verbose)
    _run(_list_async(settings))


async def _list_async(settings: Settings) -> None:
    flows = await create_store(settings).get_flows()
    if not flows:
        console.print("[dim]No flows recorded yet.[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Steps", justify="right")
    table.add_column("Start URL")
    table.add_column("Updated")
    for flow in flows:
        table.add_row(
            flow.id, flow.name, str(len(flow.steps)), flow.start_url, _format_time(flow.updated_at)
        )
    console.print(table)


@app.command()
def show(
    flow_id: str = typer.Argument(..., help="Flow id"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Show the steps of a flow."""
    settings = _load(config, store, verbose)
    _run(_show_async(settings, flow_id))


async def _show_async(settings: Settings, flow_id: str) -> None:
    flow = await _require_flow(create_store(settings), flow_id)

    console.print(Panel.fit(
        f"[bold blue]{flow.name}[/bold blue]\n"
        f"[dim]ID:[/dim] {flow.id}\n"
        f"[dim]Start URL:[/dim] {flow.start_url}\n"
        f"[dim]Steps:[/dim] {len(flow.steps)}",
        border_style="blue",
    ))

    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Type")
    table.add_column("Description")
    table.add_column("Target", style="dim")
    table.add_column("Delay", justify="right")
    for index, step in enumerate(flow.steps, start=1):
        table.add_row(
            str(index),
            step.type.value,
            step.describe(),
            step.target.describe() if step.requires_element else "",
            f"{step.delay}ms",
        )
    console.print(table)


@app.command()
def rename(
    flow_id: str = typer.Argument(..., help="Flow id"),
    name: str = typer.Argument(..., help="New name"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Rename a flow."""
    settings = _load(config, store, verbose)
    _run(_rename_async(settings, flow_id, name))


async def _rename_async(settings: Settings, flow_id: str, name: str) -> None:
    flow = await create_store(settings).rename_flow(flow_id, name)
    if flow is None:
        console.print(f"[red]✗ Flow not found: {flow_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Renamed to '{flow.name}'[/green]")


@app.command()
def duplicate(
    flow_id: str = typer.Argument(..., help="Flow id"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Copy a flow under a new id."""
    settings = _load(config, store, verbose)
    _run(_duplicate_async(settings, flow_id))


async def _duplicate_async(settings: Settings, flow_id: str) -> None:
    copy = await create_store(settings).duplicate_flow(flow_id)
    if copy is None:
        console.print(f"[red]✗ Flow not found: {flow_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Created '{copy.name}'[/green] ({copy.id})")


@app.command()
def delete(
    flow_id: str = typer.Argument(..., help="Flow id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Delete a flow."""
    settings = _load(config, store, verbose)
    if not yes and not typer.confirm(f"Delete flow {flow_id}?"):
        raise typer.Exit(0)
    _run(_delete_async(settings, flow_id))


async def _delete_async(settings: Settings, flow_id: str) -> None:
    flow_store = create_store(settings)
    await _require_flow(flow_store, flow_id)
    await flow_store.delete_flow(flow_id)
    console.print(f"[green]✓ Deleted {flow_id}[/green]")


# ==================== Export / import ====================

@app.command()
def export(
    flow_id: Optional[str] = typer.Argument(None, help="Flow id (omit with --all)"),
    all_flows: bool = typer.Option(False, "--all", help="Export every flow as one backup file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Export one flow, or all flows, to a JSON file."""
    if not all_flows and not flow_id:
        console.print("[red]Error: give a flow id or --all[/red]")
        raise typer.Exit(1)
    settings = _load(config, store, verbose)
    _run(_export_async(settings, flow_id, all_flows, output))


async def _export_async(
    settings: Settings,
    flow_id: Optional[str],
    all_flows: bool,
    output: Optional[Path],
) -> None:
    flow_store = create_store(settings)
    export_dir = Path(settings.storage.export_dir)

    if all_flows:
        flows = await flow_store.get_flows()
        if not flows:
            console.print("[yellow]⚠ No flows to export[/yellow]")
            raise typer.Exit(1)
        path = write_export(export_flows(flows), output or export_dir / backup_filename())
        console.print(f"[green]✓ Exported {len(flows)} flows to {path}[/green]")
        return

    flow = await _require_flow(flow_store, flow_id)
    path = write_export(export_flow(flow), output or export_dir / flow_filename(flow))
    console.print(f"[green]✓ Exported '{flow.name}' to {path}[/green]")


@app.command("import")
def import_(
    file_path: Path = typer.Argument(..., help="Exported JSON file"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """Import flows from an exported JSON file."""
    settings = _load(config, store, verbose)
    if not file_path.exists():
        console.print(f"[red]✗ File not found: {file_path}[/red]")
        raise typer.Exit(1)
    _run(_import_async(settings, file_path))


async def _import_async(settings: Settings, file_path: Path) -> None:
    content = read_import_file(file_path)
    flows = await import_flows(create_store(settings), content)
    for flow in flows:
        console.print(f"[green]✓ Imported '{flow.name}'[/green] ({flow.id}, {len(flow.steps)} steps)")


# ==================== Recording ====================

@app.command()
def record(
    url: str = typer.Argument(..., help="Page to start recording on"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Flow name"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """
    Record a flow in a visible browser.

    Interact with the page, then press Enter in the terminal to stop.
    """
    settings = _load(config, store, verbose)
    settings = settings.merge_with({"browser": {"headless": False}})
    _run(_record_async(settings, url, name))


async def _record_async(settings: Settings, url: str, name: Optional[str]) -> None:
    surface = create_surface(settings)
    service = None
    try:
        console.print("[dim]⏳ Launching browser...[/dim]")
        await surface.launch()
        await surface.navigate(url)
        service = FlowReplayService(surface, create_store(settings), settings=settings)

        await service.recording.start()
        console.print(Panel.fit(
            f"[bold red]● Recording[/bold red]\n"
            f"[dim]Start URL:[/dim] {url}\n"
            f"[dim]Press Enter here to stop.[/dim]",
            border_style="red",
        ))
        await asyncio.to_thread(input)

        flow = await service.recording.stop(name)
        console.print(f"\n[green]✓ Saved '{flow.name}'[/green] ({flow.id}, {len(flow.steps)} steps)")
    finally:
        if service is not None:
            await service.aclose()
        await surface.close()


# ==================== Playback ====================

@app.command()
def play(
    flow_id: str = typer.Argument(..., help="Flow id"),
    speed: Optional[float] = typer.Option(None, "--speed", min=0.1, max=10.0, help="Pacing multiplier"),
    step_by_step: Optional[bool] = typer.Option(
        None, "--step-by-step/--continuous", help="Wait for Enter before every step"
    ),
    stop_on_error: Optional[bool] = typer.Option(
        None, "--stop-on-error/--keep-going", help="Halt on the first failed step"
    ),
    highlight: Optional[bool] = typer.Option(
        None, "--highlight/--no-highlight", help="Outline elements before acting"
    ),
    headless: bool = typer.Option(False, "--headless", help="Run the browser headless"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """
    Replay a flow in a browser.

    Options not given on the command line come from the stored settings.
    """
    settings = _load(config, store, verbose)
    settings = settings.merge_with({"browser": {"headless": headless}})
    overrides = dict(
        speed=speed,
        step_by_step=step_by_step,
        stop_on_error=stop_on_error,
        highlight_elements=highlight,
    )
    _run(_play_async(settings, flow_id, overrides))


async def _play_async(settings: Settings, flow_id: str, overrides: dict) -> None:
    flow_store = create_store(settings)
    flow = await _require_flow(flow_store, flow_id)

    surface = create_surface(settings)
    service = None
    try:
        console.print("[dim]⏳ Launching browser...[/dim]")
        await surface.launch()
        service = FlowReplayService(surface, flow_store, settings=settings)
        stored = options_from_stored_settings(await flow_store.get_settings())
        service.playback.set_options(**asdict(stored.merged(**overrides)))

        session = await _replay(service, flow)
        _print_summary(flow, session)
        if session is None or session.outcome != PlaybackEvent.COMPLETED:
            raise typer.Exit(1)
    finally:
        if service is not None:
            await service.aclose()
        await surface.close()


@app.command("dry-run")
def dry_run(
    flow_id: str = typer.Argument(..., help="Flow id"),
    html: Path = typer.Option(..., "--html", help="Markup served at the flow's start URL"),
    speed: float = typer.Option(10.0, "--speed", min=0.1, max=10.0, help="Pacing multiplier"),
    config: Optional[Path] = ConfigOption,
    store: Optional[Path] = StoreOption,
    verbose: bool = VerboseOption,
):
    """
    Replay a flow against a static HTML file without a browser.

    Useful to check that every target still resolves in new markup.
    """
    settings = _load(config, store, verbose)
    if not html.exists():
        console.print(f"[red]✗ File not found: {html}[/red]")
        raise typer.Exit(1)
    _run(_dry_run_async(settings, flow_id, html.read_text(encoding="utf-8"), speed))


async def _dry_run_async(settings: Settings, flow_id: str, markup: str, speed: float) -> None:
    flow_store = create_store(settings)
    flow = await _require_flow(flow_store, flow_id)

    surface = MemorySurface({flow.start_url: markup})
    service = FlowReplayService(surface, flow_store, settings=settings)
    service.playback.set_options(
        speed=speed, step_by_step=False, stop_on_error=False, highlight_elements=False
    )
    try:
        session = await _replay(service, flow)
        _print_summary(flow, session)
        if session is None or any(not result.success for result in session.results):
            raise typer.Exit(1)
    finally:
        await service.aclose()
        await surface.close()


async def _replay(service: FlowReplayService, flow: Flow) -> Optional[PlaybackSession]:
    """Play a flow to the end, echoing step outcomes and prompting in step-by-step mode."""
    controller = service.playback
    total = len(flow.steps)

    def on_event(event: PlaybackEvent, data: dict) -> None:
        if event == PlaybackEvent.STEP_STARTED:
            console.print(f"[bold cyan]Step {data['index'] + 1}/{total}:[/bold cyan] {data['step'].describe()}")
        elif event == PlaybackEvent.STEP_SUCCEEDED:
            console.print("  [green]✓ Done[/green]")
        elif event == PlaybackEvent.STEP_FAILED:
            console.print(f"  [red]✗ Failed:[/red] {data.get('error') or 'element not found'}")

    controller.on_event(on_event)
    await controller.start(flow.id)

    while controller.is_active:
        if controller.awaiting_advance:
            await asyncio.to_thread(input, "Press Enter for the next step...")
            controller.advance()
        else:
            await asyncio.sleep(0.1)

    await controller.scheduler.join()
    return controller.last_session


def _print_summary(flow: Flow, session: Optional[PlaybackSession]) -> None:
    console.print()
    if session is None:
        console.print("[red]✗ Playback did not run[/red]")
        return

    results = session.results
    failed: List[int] = [r.index + 1 for r in results if not r.success]
    body = (
        f"[dim]Flow:[/dim] {flow.name}\n"
        f"[dim]Outcome:[/dim] {session.outcome.value if session.outcome else 'unknown'}\n"
        f"[dim]Steps executed:[/dim] {len(results)}/{len(flow.steps)}"
    )
    if failed:
        body += f"\n[dim]Failed steps:[/dim] {', '.join(str(i) for i in failed)}"
    if session.error:
        body += f"\n[dim]Error:[/dim] {session.error}"

    ok = session.outcome == PlaybackEvent.COMPLETED and not failed
    console.print(Panel.fit(
        body,
        title="[green]✓ Success[/green]" if ok else "[red]✗ Finished with errors[/red]",
        border_style="green" if ok else "red",
    ))


if __name__ == "__main__":
    app()
