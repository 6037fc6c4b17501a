"""
Inkling command line client.

A terminal UI over CaptureStateMachine: every command drives the machine and
prints what it ends up showing. No transcription logic lives here.

    inkling transcribe note.jpg --copy
    inkling scan
    inkling health
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import httpx
import typer

from inkling.client.camera import CameraController
from inkling.client.clipboard import SystemClipboard
from inkling.client.config import client_settings
from inkling.client.models import Mode
from inkling.client.relay import RelayClient
from inkling.client.state_machine import CaptureStateMachine

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="inkling",
    help="Inkling: turn photos of handwriting into text.",
    no_args_is_help=True,
)


def configure_client_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or client_settings.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_machine(server: Optional[str] = None) -> CaptureStateMachine:
    # cv2 is only loaded when a command actually needs a camera source
    from inkling.client.opencv_source import OpenCVFrameSource

    source = OpenCVFrameSource(
        preferred_index=client_settings.camera_index,
        fallback_index=client_settings.fallback_camera_index,
    )
    camera = CameraController(
        source,
        jpeg_quality=client_settings.jpeg_quality,
        bind_timeout=client_settings.bind_timeout,
    )
    return CaptureStateMachine(
        relay=RelayClient(base_url=server),
        camera=camera,
        clipboard=SystemClipboard(),
    )


class ConsoleSurface:
    """Live view for a terminal: there is no picture, so it just says the camera is live."""

    def attach(self, stream: Any) -> None:
        typer.echo(typer.style("● Camera live.", fg=typer.colors.GREEN) + " Press Enter to capture, q then Enter to cancel.")


def _show_outcome(machine: CaptureStateMachine, copy: bool, edit: bool) -> None:
    if machine.error is not None:
        typer.echo(typer.style(f"✗ {machine.error}", fg=typer.colors.RED, bold=True), err=True)
        typer.echo("Try again with a clearer photo, or check that the server is running.", err=True)
        raise typer.Exit(code=1)

    if edit:
        edited = typer.edit(machine.text or "")
        if edited is not None:
            machine.edit_result(edited.rstrip("\n"))

    text = machine.text or ""
    if text:
        typer.echo(text)
    else:
        typer.echo(typer.style("(no text found in the image)", fg=typer.colors.YELLOW), err=True)

    if copy:
        if machine.copy_result():
            typer.echo(typer.style("✓ Copied to clipboard", fg=typer.colors.GREEN), err=True)
        elif text:
            typer.echo(typer.style("⚠ Could not reach the clipboard", fg=typer.colors.YELLOW), err=True)


@app.command()
def transcribe(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Image to transcribe"),
    copy: bool = typer.Option(False, "--copy", "-c", help="Copy the result to the clipboard"),
    edit: bool = typer.Option(False, "--edit", "-e", help="Open the result in $EDITOR before copying"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Server URL (default: INKLING_SERVER_URL)"),
) -> None:
    """Transcribe the text in an image file."""
    configure_client_logging()
    machine = build_machine(server)

    accepted = asyncio.run(machine.select_file(file))
    if not accepted:
        typer.echo(typer.style(f"✗ {machine.error}", fg=typer.colors.RED, bold=True), err=True)
        raise typer.Exit(code=1)
    _show_outcome(machine, copy, edit)


async def _scan(machine: CaptureStateMachine) -> bool:
    machine.surface_mounted(ConsoleSurface())
    try:
        if not await machine.start_scan():
            return False
        answer = await asyncio.to_thread(input)
        if answer.strip().lower() == "q":
            machine.cancel_scan()
            return False
        typer.echo("Transcribing...", err=True)
        await machine.capture_photo()
        return machine.mode is Mode.RESULT
    finally:
        # Ctrl-C or a closed stdin while the camera is live
        if machine.mode is Mode.CAMERA:
            machine.cancel_scan()


@app.command()
def scan(
    copy: bool = typer.Option(False, "--copy", "-c", help="Copy the result to the clipboard"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Server URL (default: INKLING_SERVER_URL)"),
) -> None:
    """Capture a photo with the camera and transcribe it."""
    configure_client_logging()
    machine = build_machine(server)

    captured = asyncio.run(_scan(machine))
    if not captured:
        if machine.error is not None:
            typer.echo(typer.style(f"✗ {machine.error}", fg=typer.colors.RED, bold=True), err=True)
            raise typer.Exit(code=1)
        typer.echo("Cancelled.", err=True)
        return
    _show_outcome(machine, copy, edit=False)


@app.command()
def health(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Server URL (default: INKLING_SERVER_URL)"),
) -> None:
    """Check that the transcription server is up."""
    configure_client_logging()
    relay = RelayClient(base_url=server)
    try:
        body = asyncio.run(relay.health())
    except httpx.HTTPError as e:
        typer.echo(typer.style(f"✗ {relay.base_url} unreachable: {e}", fg=typer.colors.RED, bold=True), err=True)
        raise typer.Exit(code=1)
    except ValueError as e:
        typer.echo(typer.style(f"✗ {relay.base_url} answered, but not like an Inkling server: {e}", fg=typer.colors.RED, bold=True), err=True)
        raise typer.Exit(code=1)
    typer.echo(
        typer.style("✓ ", fg=typer.colors.GREEN)
        + f"{relay.base_url}: {body.get('status')} (engine {body.get('engine')}, circuit {body.get('circuit', 'n/a')})"
    )


if __name__ == "__main__":
    app()
