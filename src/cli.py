"""Scene Moderator CLI - run multi-character scenes from YAML scene files.

Commands:
    run       Run a scene and write transcript, metadata and logs
    validate  Check a scene file without calling any model
    parse     Show how a single character reply would be parsed
"""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from core.gateway import ProviderGateway
from core.models import SceneConfig, SceneResult
from core.response_parser import parse_response
from core.scene_moderator import SceneModerator
from utils.config_parser import (
    create_characters,
    create_completion_oracle,
    load_scene_file,
    validate_config,
)
from utils.logging_config import LogLevel
from utils.persistence import SceneOutputWriter, format_completion_reason

app = typer.Typer(
    name="scene-moderator",
    help="Scene Moderator - run multi-character scenes with independent LLM agents",
    add_completion=False,
)

console = Console()
DEFAULT_OUTPUT_DIR = Path("data/scenes")


def _load_scene(scene_file: Path) -> tuple[dict, SceneConfig]:
    try:
        config = load_scene_file(scene_file)
        scene = validate_config(config, base_dir=scene_file.parent)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Invalid scene file:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    return config, scene


async def _run_until_interrupted(moderator: SceneModerator, scene: SceneConfig) -> SceneResult:
    """Run the scene; Ctrl+C stops it at the next beat boundary."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        # No signal support here (Windows, or not the main thread).
        handler_installed = False

    try:
        return await moderator.run_scene(scene, cancel_event=cancel_event)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _print_summary(result: SceneResult, scene_dir: Optional[Path]) -> None:
    meta = result.metadata

    if result.transcript:
        console.print("\n[bold]=== TRANSCRIPT ===[/bold]\n")
        console.print(result.transcript, markup=False, highlight=False)

    table = Table(title="Scene Summary")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Scene", escape(meta.name))
    table.add_row("Success", "[green]yes[/green]" if result.success else "[red]no[/red]")
    table.add_row("Completion", format_completion_reason(meta.completion_reason))
    table.add_row("Beats", str(meta.total_beats))
    table.add_row("Characters", ", ".join(meta.characters))
    table.add_row("Duration", f"{meta.duration:.1f}s")
    table.add_row("Errors", str(len(meta.errors)))
    table.add_row("Parse warnings", str(len(meta.warnings)))
    if meta.costs:
        table.add_row("Tokens", f"{meta.costs.total_tokens} ({meta.costs.input_tokens} in, {meta.costs.output_tokens} out)")
    if scene_dir:
        table.add_row("Output", str(scene_dir))
    console.print()
    console.print(table)

    if result.error:
        console.print(f"[red]Error ({result.error.code}):[/red] {escape(result.error.message)}")


@app.command()
def run(
    scene_file: Path = typer.Argument(
        ...,
        help="Path to the scene YAML file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_dir: Path = typer.Option(
        DEFAULT_OUTPUT_DIR,
        "--output-dir", "-o",
        help="Directory for scene outputs",
    ),
    mock: bool = typer.Option(
        False,
        "--mock",
        help="Use mock characters instead of real LLM providers",
    ),
    max_beats: Optional[int] = typer.Option(
        None,
        "--max-beats", "-b",
        help="Override the scene's max_beats",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level", "-l",
        help="Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
) -> None:
    """Run a scene and write its transcript.

    Example:
        scene-moderator run scenes/office.yaml --max-beats 10
    """
    load_dotenv()

    try:
        level = LogLevel(log_level.upper())
    except ValueError:
        console.print(f"[red]Invalid log level:[/red] {log_level}")
        raise typer.Exit(1)

    config, scene = _load_scene(scene_file)
    if max_beats is not None:
        scene = scene.model_copy(update={"max_beats": max_beats})

    try:
        characters = create_characters(config, scene, base_dir=scene_file.parent, mock=mock)
    except (ValueError, ImportError) as e:
        console.print(f"[red]Could not create characters:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    unavailable = [c.name for c in characters if not c.llm_provider.is_available()]
    if unavailable:
        console.print(f"[red]LLM provider not available for:[/red] {', '.join(unavailable)}")
        console.print("[dim]Check API keys in .env and that local model servers are running.[/dim]")
        raise typer.Exit(1)

    llm_config = config.get("llm") or {}
    gateway = ProviderGateway(
        characters,
        input_cost_per_1k=float(llm_config.get("input_cost_per_1k", 0.0)),
        output_cost_per_1k=float(llm_config.get("output_cost_per_1k", 0.0)),
    )

    with SceneOutputWriter(scene.name, output_dir, min_log_level=level) as writer:
        moderator = SceneModerator(
            gateway,
            completion_oracle=create_completion_oracle(config),
            logger=writer.logger,
        )
        result = asyncio.run(_run_until_interrupted(moderator, scene))
        scene_dir = writer.write(result)

    _print_summary(result, scene_dir)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def validate(
    scene_file: Path = typer.Argument(
        ...,
        help="Path to the scene YAML file",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Validate a scene file without running it."""
    _, scene = _load_scene(scene_file)

    table = Table(title=f"Scene: {scene.name or '(unnamed)'}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Characters", ", ".join(scene.characters) or "-")
    table.add_row("Initial speaker", scene.initial_speaker or "-")
    table.add_row("Max beats", str(scene.max_beats))
    table.add_row("Context window", str(scene.context_window))
    table.add_row("Response timeout", f"{scene.response_timeout}s" if scene.response_timeout else "none")
    table.add_row("Scripted events", str(len(scene.scripted_events)))
    console.print(table)
    console.print("[green]Scene file is valid.[/green]")


@app.command()
def parse(
    text: str = typer.Argument(..., help="Raw character reply to parse"),
    as_json: bool = typer.Option(False, "--json", help="Print the parsed response as JSON"),
) -> None:
    """Show how a character reply is parsed.

    Example:
        scene-moderator parse '[TO: Bob, TONE: angry] "Why?"'
    """
    parsed = parse_response(text)

    if as_json:
        console.print_json(parsed.model_dump_json())
        return

    table = Table(title="Parsed Response")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field, value in parsed.model_dump().items():
        table.add_row(field, "-" if value is None else escape(str(value)))
    console.print(table)


if __name__ == "__main__":
    app()
