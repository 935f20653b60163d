"""CLI commands for Battle Master."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from battle_master.config import get_settings

app = typer.Typer(
    name="battle-master",
    help="AI-assisted D&D 5e combat encounter designer",
    add_completion=False,
)
console = Console()


def get_controller(player=None):
    """Get a session controller wired from settings."""
    from battle_master.encounter import EncounterSessionController
    from battle_master.llm import create_client_from_settings

    settings = get_settings()
    return EncounterSessionController(
        create_client_from_settings(settings),
        settings=settings,
        player=player,
    )


def _make_player(silent: bool):
    from battle_master.audio import NullPlayer, SounddevicePlayer

    return NullPlayer() if silent else SounddevicePlayer()


async def _run_session(controller, params, flesh_out: bool, voice_style, progress, task):
    from battle_master.encounter import NarrationOutcome

    try:
        await controller.generate(params)
        if controller.session.last_error is not None:
            return

        if flesh_out:
            progress.update(task, description="Adding tactics, environment and treasure...")
            await controller.flesh_out()

        if voice_style is not None:
            progress.update(task, description="Synthesizing narration...")
            outcome = await controller.narrate(voice_style)
            if outcome == NarrationOutcome.PLAYING:
                progress.update(task, description="Narrating...")
                while controller.session.speaking:
                    await asyncio.sleep(0.05)
    finally:
        controller.stop_narration()
        await controller.aclose()


@app.command()
def generate(
    party_size: int = typer.Option(4, "--party-size", "-n", help="Number of adventurers (1-12)"),
    level: int = typer.Option(5, "--level", "-l", help="Average character level (1-20)"),
    difficulty: str = typer.Option(
        "Medium", "--difficulty", "-d", help="Easy, Medium, Hard or Deadly"
    ),
    terrain: str = typer.Option("Forest Ruin", "--terrain", "-t", help="Encounter terrain"),
    flavor: str = typer.Option(
        "A patrol guarding a magical artifact.", "--flavor", "-f", help="Flavor or context"
    ),
    enemies: int = typer.Option(5, "--enemies", "-e", help="Total number of enemies (1-20)"),
    any_count: bool = typer.Option(
        False, "--any-count", help="Let the designer choose the number of enemies"
    ),
    flesh_out: bool = typer.Option(
        False, "--flesh-out", help="Add tactics, environment and treasure sections"
    ),
    narrate: Optional[str] = typer.Option(
        None, "--narrate", help="Read the opening aloud: dramatic or monotone"
    ),
    save_audio: Optional[Path] = typer.Option(
        None, "--save-audio", help="Write the narration to a WAV file instead of playing it"
    ),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Design a combat encounter for your party."""
    from battle_master.encounter import Difficulty, EncounterRequestParams, VoiceStyle

    try:
        difficulty_enum = Difficulty(difficulty.capitalize())
    except ValueError:
        console.print(f"[red]Invalid difficulty: {difficulty}. Use Easy, Medium, Hard or Deadly[/red]")
        raise typer.Exit(1)

    voice_style = None
    if narrate is not None:
        try:
            voice_style = VoiceStyle(narrate.lower())
        except ValueError:
            console.print(f"[red]Invalid narration style: {narrate}. Use dramatic or monotone[/red]")
            raise typer.Exit(1)

    if save_audio is not None and voice_style is None:
        voice_style = VoiceStyle.DRAMATIC

    params = EncounterRequestParams.clamped(
        party_size=party_size,
        average_level=level,
        enemy_count=None if any_count else enemies,
        difficulty=difficulty_enum,
        terrain=terrain,
        flavor=flavor,
    )

    controller = get_controller(_make_player(silent=save_audio is not None or output_json))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Designing encounter...", total=None)
        asyncio.run(_run_session(controller, params, flesh_out, voice_style, progress, task))
        progress.update(task, completed=True)

    session = controller.snapshot()

    if save_audio is not None and controller.last_clip is not None:
        save_audio.write_bytes(controller.last_clip.wav_bytes)

    if output_json:
        typer.echo(json.dumps(session.to_public_dict(), indent=2))
    else:
        _display_session(session)
        if save_audio is not None and controller.last_clip is not None:
            console.print(
                f"[green]Saved {controller.last_clip.duration_seconds:.1f}s narration to {save_audio}[/green]"
            )

    if session.last_error is not None:
        raise typer.Exit(1)


def _display_session(session):
    """Display an encounter session in rich format."""
    from battle_master.render import render_citations, render_markdown

    if session.narrative_text:
        console.print(
            Panel(render_markdown(session.narrative_text), title="Encounter", border_style="red")
        )

    citations = render_citations(session.citations)
    if citations is not None:
        console.print(citations)

    if session.last_error is not None:
        console.print(f"[red]{session.last_error.message}[/red]")


@app.command()
def whoami(
    token: Optional[str] = typer.Option(None, "--token", help="Custom sign-in token"),
):
    """Show the identity this session would run under."""
    from battle_master.identity import resolve_identity

    identity = resolve_identity(get_settings(), token=token)

    table = Table(title="Session Identity")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("App ID", identity.app_id)
    table.add_row("User ID", identity.user_id)
    table.add_row("Sign-in", "anonymous" if identity.anonymous else "custom token")
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting Battle Master API server on {host}:{port}")
    uvicorn.run(
        "battle_master.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def stats():
    """Show generative-AI call, retry and playback statistics."""
    from battle_master.observability import get_observability_logger

    obs = get_observability_logger()

    table = Table(title="Telemetry")
    table.add_column("Log")
    table.add_column("Events", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Avg duration (ms)", justify="right")
    for log_type in ("llm", "http", "audio"):
        summary = obs.get_stats(log_type)
        table.add_row(
            log_type,
            str(summary["total"]),
            str(summary.get("errors", 0)),
            f"{summary.get('avg_duration_ms', 0.0):.1f}",
        )
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from battle_master import __version__

    console.print(f"Battle Master v{__version__}")
