# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for the ibmi CLI.

Shows the effective configuration and checks the directories it names.
"""

from pathlib import Path
from typing import Optional

import typer

from ibmi.compiler import list_flows
from ibmi.config import get_config_path, load_config

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """
    Validate configuration file.

    Loads the config (unknown keys are rejected) and reports where flows,
    storage and the event log live.
    """
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(1)

    path = get_config_path(config_path)
    if path.exists():
        typer.echo(f"Config file: {path}")
    else:
        typer.echo(f"No config file at {path}, using defaults")

    for key in sorted(config):
        typer.echo(f"  {key}: {config[key]}")

    flows_dir = Path(config["flows_dir"]).expanduser() if config.get("flows_dir") else None
    if flows_dir is not None and not flows_dir.is_dir():
        typer.echo(f"Warning: flows_dir does not exist: {flows_dir}", err=True)
    typer.echo(f"Flows available: {len(list_flows(flows_dir))}")

    typer.echo("Configuration validation complete!")
