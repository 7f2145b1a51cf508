"""CLI commands for avatarflow using Typer and Rich.

Implements:
- voices: List available voices
- avatars: List available avatars
- generate: Walk the creation workflow and generate a video
- status: Show the status of a generated video
- videos: List generated videos
- delete: Delete a generated video
- publish: Publish a video URL to Field59
"""

import asyncio
import logging
from typing import Optional

import httpx
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from avatarflow.config import settings
from avatarflow.errors import (
    ConfigurationError,
    IncompleteWorkflowError,
    PollError,
    SubmissionError,
    VendorSchemaError,
)
from avatarflow.orchestrator.coordinator import AdvanceResult
from avatarflow.orchestrator.poller import PollEvent, PollEventKind, map_status
from avatarflow.orchestrator.session import CreationSession
from avatarflow.orchestrator.state import MIN_SCRIPT_LENGTH
from avatarflow.schemas.field59 import Field59Video
from avatarflow.schemas.heygen import Avatar, Voice
from avatarflow.schemas.jobs import AvatarSettings, VoiceSettings
from avatarflow.services.field59_client import Field59Client
from avatarflow.services.heygen_adapter import HeyGenGenerationAdapter
from avatarflow.services.heygen_client import close_heygen_client, get_heygen_client

app = typer.Typer(name="avatarflow", help="Guided avatar video creation over the HeyGen API")
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging before any command runs."""
    level = logging.DEBUG if verbose else getattr(logging, settings.logging.level, logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _fail(message: str, code: int = 1) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(code=code)


def _describe_invalid(e: ValidationError) -> str:
    """Flatten a ValidationError to 'field: message; field: message'."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in e.errors()
    )


@app.command()
def voices():
    """List the voices available for narration."""
    asyncio.run(_voices_async())


async def _voices_async():
    try:
        client = await get_heygen_client()
        voice_list = await client.list_voices()
    except (ConfigurationError, VendorSchemaError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await close_heygen_client()

    table = Table(title=f"Voices ({len(voice_list)})")
    table.add_column("Voice ID", style="cyan")
    table.add_column("Name")
    table.add_column("Language")
    table.add_column("Gender")
    for voice in voice_list:
        table.add_row(voice.voice_id, voice.name, voice.language, voice.gender)
    console.print(table)


@app.command()
def avatars():
    """List the avatars available to speak a script."""
    asyncio.run(_avatars_async())


async def _avatars_async():
    try:
        client = await get_heygen_client()
        avatar_list = await client.list_avatars()
    except (ConfigurationError, VendorSchemaError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await close_heygen_client()

    table = Table(title=f"Avatars ({len(avatar_list)})")
    table.add_column("Avatar ID", style="cyan")
    table.add_column("Name")
    table.add_column("Gender")
    table.add_column("Premium")
    for avatar in avatar_list:
        table.add_row(
            avatar.avatar_id, avatar.avatar_name, avatar.gender,
            "yes" if avatar.premium else "",
        )
    console.print(table)


@app.command()
def generate(
    voice: str = typer.Option(..., "--voice", help="HeyGen voice ID"),
    avatar: str = typer.Option(..., "--avatar", help="HeyGen avatar ID"),
    script: str = typer.Option(..., "--script", "-s", help="Text the avatar will speak"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Video title"),
    interval: Optional[float] = typer.Option(
        None, "--interval", "-i", min=0.001, help="Seconds between status checks",
    ),
    test_mode: bool = typer.Option(
        False, "--test-mode", help="Use the faster test polling interval",
    ),
    speed: float = typer.Option(1.0, "--speed", help="Voice speed (0.5-1.5)"),
    pitch: int = typer.Option(0, "--pitch", help="Voice pitch (-50 to 50)"),
    avatar_style: str = typer.Option(
        "normal", "--avatar-style", help="normal, closeUp or circle",
    ),
    scale: float = typer.Option(1.0, "--scale", help="Avatar scale (0.5-2.0)"),
    offset_x: float = typer.Option(0.0, "--offset-x", help="Horizontal avatar offset (-2 to 2)"),
    offset_y: float = typer.Option(0.0, "--offset-y", help="Vertical avatar offset (-2 to 2)"),
):
    """Generate a video from a voice, an avatar and a script.

    Walks the five workflow steps (voice, avatar, script, summary, video),
    submits the request and polls until the video is ready.
    """
    if interval is None:
        interval = (
            settings.polling.test_interval_seconds
            if test_mode
            else settings.polling.interval_seconds
        )
    try:
        voice_settings = VoiceSettings(speed=speed, pitch=pitch)
        avatar_settings = AvatarSettings(
            style=avatar_style, scale=scale, offset_x=offset_x, offset_y=offset_y,
        )
    except ValidationError as e:
        _fail(f"Invalid video settings: {_describe_invalid(e)}")
    asyncio.run(_generate_async(
        voice, avatar, script, title, interval, voice_settings, avatar_settings,
    ))


async def _generate_async(
    voice_id: str,
    avatar_id: str,
    script: str,
    title: Optional[str],
    interval: float,
    voice_settings: VoiceSettings,
    avatar_settings: AvatarSettings,
):
    """Async implementation of generate command."""
    try:
        client = await get_heygen_client()
    except ConfigurationError as e:
        _fail(str(e))

    adapter = HeyGenGenerationAdapter(
        client,
        title=title or settings.heygen.default_title,
        width=settings.heygen.video_width,
        height=settings.heygen.video_height,
    )
    session = CreationSession(adapter, poll_interval=interval)
    workflow = session.coordinator

    try:
        workflow.select_voice(Voice(voice_id=voice_id), voice_settings)
        workflow.advance()
        workflow.select_avatar(Avatar(avatar_id=avatar_id), avatar_settings)
        workflow.advance()
        if not workflow.update_script(script):
            _fail(f"Script must be longer than {MIN_SCRIPT_LENGTH} characters")
        workflow.advance()

        console.print(Panel(
            f"[bold]Voice:[/bold] {voice_id} "
            f"(speed {voice_settings.speed}, pitch {voice_settings.pitch})\n"
            f"[bold]Avatar:[/bold] {avatar_id} "
            f"({avatar_settings.style}, scale {avatar_settings.scale}, "
            f"offset {avatar_settings.offset_x}/{avatar_settings.offset_y})\n"
            f"[bold]Script:[/bold] {escape(script)}",
            title="Video Creation Summary",
        ))
        workflow.confirm_summary()
        if workflow.advance() is not AdvanceResult.ADVANCED:
            _fail(workflow.active_step.guidance_message)

        with console.status("[bold green]Submitting video generation request...") as status:

            def on_event(event: PollEvent):
                if event.kind is PollEventKind.STATUS:
                    status.update(
                        f"[bold green]Processing your video... "
                        f"(status: {event.job.raw_status})"
                    )
                elif event.kind is PollEventKind.COMPLETED:
                    status.update("[bold green]Video complete!")

            handle = await session.start_generation(on_event)
            console.print(f"[green]Submitted video:[/green] {handle.job_id}")
            status.update("[bold green]Checking video status...")
            job = await handle.wait()

        console.print("[green]✓[/green] Video ready!")
        console.print(f"[green]Video URL:[/green] {job.result_url}")
        if job.thumbnail_url:
            console.print(f"[green]Thumbnail:[/green] {job.thumbnail_url}")

    except IncompleteWorkflowError as e:
        _fail(str(e))
    except SubmissionError as e:
        console.print(f"[red]✗ Video generation failed:[/red] {escape(str(e))}")
        console.print("[yellow]Check your selections and retry the command.[/yellow]")
        raise typer.Exit(code=1)
    except PollError as e:
        if e.transient:
            console.print(f"[red]✗ {escape(str(e))}[/red]")
        else:
            console.print(f"[red]✗ Video generation failed:[/red] {escape(e.detail)}")
        console.print(f"[yellow]Check progress later with:[/yellow] avatarflow status {e.job_id}")
        raise typer.Exit(code=1)
    finally:
        session.cancel()
        await close_heygen_client()


@app.command()
def status(
    video_id: str = typer.Argument(..., help="HeyGen video ID"),
):
    """Show the current status of a generated video."""
    asyncio.run(_status_async(video_id))


async def _status_async(video_id: str):
    try:
        client = await get_heygen_client()
        data = await client.get_video_status(video_id)
    except (ConfigurationError, VendorSchemaError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await close_heygen_client()

    mapped = map_status(data.status)
    lines = [
        f"[bold]Video:[/bold] {video_id}",
        f"[bold]Status:[/bold] {mapped.value} ({data.status})",
    ]
    if data.video_url:
        lines.append(f"[bold]Video URL:[/bold] {data.video_url}")
    if data.thumbnail_url:
        lines.append(f"[bold]Thumbnail:[/bold] {data.thumbnail_url}")
    if data.error:
        lines.append(f"[bold red]Error:[/bold red] {data.error}")
    console.print(Panel("\n".join(lines), title="Video Status"))


@app.command("videos")
def list_videos(
    token: Optional[str] = typer.Option(None, "--token", help="Pagination token"),
):
    """List generated videos."""
    asyncio.run(_list_videos_async(token))


async def _list_videos_async(token: Optional[str]):
    try:
        client = await get_heygen_client()
        page = await client.list_videos(token)
    except (ConfigurationError, VendorSchemaError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await close_heygen_client()

    if not page.videos:
        console.print("[yellow]No videos found.[/yellow]")
        return

    table = Table(title="Videos")
    table.add_column("Video ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    for video in page.videos:
        table.add_row(video.video_id, video.video_title or "", video.status)
    console.print(table)
    if page.token:
        console.print(f"Next page: avatarflow videos --token {page.token}")


@app.command()
def delete(
    video_id: str = typer.Argument(..., help="HeyGen video ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a generated video."""
    if not yes:
        typer.confirm(f"Delete video {video_id}?", abort=True)
    asyncio.run(_delete_async(video_id))


async def _delete_async(video_id: str):
    try:
        client = await get_heygen_client()
        await client.delete_video(video_id)
    except (ConfigurationError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await close_heygen_client()
    console.print(f"[green]Deleted video:[/green] {video_id}")


@app.command()
def publish(
    url: str = typer.Argument(..., help="URL of the finished video"),
    title: str = typer.Option(..., "--title", "-t", help="Video title"),
    summary: str = typer.Option("", "--summary", help="Short summary"),
    category: str = typer.Option("", "--category", help="Field59 category"),
    tag: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
):
    """Publish a finished video to Field59."""
    try:
        video = Field59Video(
            url=url, title=title, summary=summary, category=category, tags=tag or [],
        )
    except ValidationError as e:
        _fail(f"Invalid video: {_describe_invalid(e)}")
    asyncio.run(_publish_async(video))


async def _publish_async(video: Field59Video):
    try:
        client = Field59Client(
            settings.field59.username,
            settings.field59.password,
            base_url=settings.field59.base_url,
        )
    except ConfigurationError as e:
        _fail(str(e))

    try:
        key = await client.create_video(video)
    except (VendorSchemaError, httpx.HTTPError) as e:
        _fail(str(e))
    finally:
        await client.close()
    console.print(f"[green]Published to Field59:[/green] {key}")
