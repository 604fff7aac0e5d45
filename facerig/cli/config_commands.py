"""CLI commands for inspecting and writing configuration."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from facerig.config.loader import convert_to_camel, get_config_path, load_config, save_config
from facerig.config.schema import FaceRigConfig

config_app = typer.Typer(
    name="config",
    help="Show or initialise the facerig configuration",
)

console = Console()


def _flatten(data: dict, prefix: str = "") -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and key != "gains":
            rows.extend(_flatten(value, name))
        else:
            rows.append((name, json.dumps(value)))
    return rows


@config_app.command("show")
def config_show(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    config = load_config(config_path)
    data = convert_to_camel(config.model_dump())

    if json_output:
        console.print_json(json.dumps(data))
        return

    table = Table(title="facerig configuration")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in _flatten(data):
        table.add_row(key, value)
    console.print(table)


@config_app.command("init")
def config_init(
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    path = config_path or get_config_path()
    if path.exists() and not force:
        console.print(f"Config already exists at {path} (use --force to overwrite)")
        raise typer.Exit(1)
    save_config(FaceRigConfig(), path)
    console.print(f"Created config at {path}")
