"""facerig command line entry point."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from facerig import __version__
from facerig.cli.config_commands import config_app
from facerig.config.loader import load_config
from facerig.telemetry.exporter import MetricsExporter
from facerig.vtuber.errors import FaceRigError
from facerig.vtuber.session import run_session
from facerig.vtuber.status import LogBuffer, configure_logging

app = typer.Typer(name="facerig", help="Drive an avatar rig from webcam face tracking")
app.add_typer(config_app, name="config")

console = Console()


@app.command("version")
def version() -> None:
    console.print(f"facerig {__version__}")


@app.command("run")
def run(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
    camera: int | None = typer.Option(None, "--camera", help="Camera device index"),
    model: Path | None = typer.Option(None, "--model", "-m", help="Face landmarker .task model"),
    rig: str | None = typer.Option(None, "--rig", help="Avatar rig model path"),
    max_frames: int | None = typer.Option(None, "--max-frames", min=1, help="Stop after N frames"),
    dump_logs: Path | None = typer.Option(None, "--dump-logs", help="Write the session log here"),
) -> None:
    config = load_config(config_path)
    if camera is not None:
        config.camera.index = camera
    if model is not None:
        config.tracker.model_path = str(model)
    if rig is not None:
        config.rig.model_path = rig

    buffer = configure_logging(config.logging.level, LogBuffer(config.logging.buffer_size))
    MetricsExporter(config.metrics.port, enabled=config.metrics.enabled).start()

    exit_code = 0
    try:
        result = asyncio.run(run_session(config, max_frames=max_frames))
    except FaceRigError as e:
        console.print(f"[red]Failed:[/red] {e}")
        exit_code = 1
    except KeyboardInterrupt:
        console.print("Stopped")
    else:
        table = Table(title="Session")
        table.add_column("Frames", justify="right")
        table.add_column("Applied", justify="right")
        table.add_column("Errors", justify="right")
        table.add_column("Status")
        table.add_row(
            str(result.frames),
            str(result.frames_applied),
            str(result.errors),
            result.status.text,
        )
        console.print(table)
    finally:
        if dump_logs is not None:
            dump_logs.write_text(buffer.dump() + "\n", encoding="utf-8")
        buffer.detach()

    if exit_code:
        raise typer.Exit(exit_code)


if __name__ == "__main__":
    app()
