# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Storage command for the ibmi CLI.

Copies local files into the internal storage so flows can reference them
as storage:// URIs (e.g. a COBOL source for cobol.create_program).
"""

from pathlib import Path
from typing import Optional

import typer

from ibmi.config import load_config
from ibmi.storage import STORAGE_SCHEME, InternalStorage, StorageError

app = typer.Typer(help="Manage files in the internal storage")


@app.command()
def put(
    local_file: Path = typer.Argument(..., help="Local file to store"),
    uri: Optional[str] = typer.Argument(None, help="Target storage:// URI (default: storage://<file name>)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Store a local file and print its storage:// URI."""
    if not local_file.is_file():
        typer.echo(f"Error: file not found: {local_file}", err=True)
        raise typer.Exit(1)

    try:
        config = load_config(config_path)
        storage = InternalStorage(config["storage_dir"])
        stored = storage.put_file(uri or f"{STORAGE_SCHEME}{local_file.name}", local_file.read_bytes())
    except (StorageError, FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(stored)
