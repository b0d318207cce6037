# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for the ibmi runner.

Dumb trigger: parses args, compiles the flow, executes, renders output.
No IBM i logic - all of it lives in the ibmi_jobs tasks.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from ibmi import __version__
from ibmi.compiler import CompileError, compile_flow, list_flows, load_flow_yaml
from ibmi.config import load_config
from ibmi.executor import execute, render_run_record


app = typer.Typer(
    name="ibmi",
    help="Run COBOL compile, call and submit flows against IBM i",
    no_args_is_help=True,
)


def _parse_value(value: str) -> Any:
    """Interpret a CLI input value: bool, null, JSON list/object, number, else text."""
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    if value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            pass
    return value


def _parse_kv_args(args: Optional[List[str]]) -> Dict[str, str]:
    """Turn key=value flow inputs into a dict of raw strings; only the first '=' splits.

    Declared inputs are coerced to their declared type by the compiler, so
    a STRING "007" keeps its zeros.
    """
    inputs: Dict[str, str] = {}
    for arg in args or []:
        key, sep, value = arg.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {arg}")
        inputs[key] = value
    return inputs


def _flow_inputs(args: Optional[List[str]], flow_def: Dict[str, Any]) -> Dict[str, Any]:
    """Raw CLI inputs, with values of undeclared inputs guessed by _parse_value."""
    declared = {d["id"] for d in flow_def.get("inputs") or [] if isinstance(d, dict) and d.get("id")}
    return {
        key: value if key in declared else _parse_value(value)
        for key, value in _parse_kv_args(args).items()
    }


def _configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s - %(message)s",
    )


def _flows_dir(config: dict, flows_dir: Optional[str]) -> Optional[Path]:
    selected = flows_dir or config.get("flows_dir")
    return Path(selected).expanduser() if selected else None


@app.command()
def run(
    flow: str = typer.Argument(..., help="Flow id or path to a flow YAML file"),
    args: Optional[List[str]] = typer.Argument(None, help="key=value flow inputs"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would run without connecting"),
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, csv"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    flows_dir: Optional[str] = typer.Option(None, "--flows-dir", help="Directory of flow YAML files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run a flow with input arguments."""
    try:
        config = load_config(config_path)
        _configure_logging(config.get("log_level", "INFO"), verbose)

        # Build context
        ctx = {
            "storage_dir": config.get("storage_dir"),
            "events_log": config.get("events_log"),
        }
        if dry_run:
            ctx["dry_run"] = True

        # Load flow YAML
        flow_def = load_flow_yaml(flow, _flows_dir(config, flows_dir))
        inputs = _flow_inputs(args, flow_def)

        # Compile: check structure, resolve inputs
        instance = compile_flow(flow_def, inputs=inputs)

        # Execute: render properties, run tasks
        record = execute(instance, ctx=ctx)

        # Render output
        render_run_record(record, format_type=format)

    except CompileError as e:
        typer.echo(f"Compile error: {e}", err=True)
        raise typer.Exit(1)
    except typer.BadParameter:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def validate(
    flow: str = typer.Argument(..., help="Flow id or path to a flow YAML file"),
    args: Optional[List[str]] = typer.Argument(None, help="key=value flow inputs"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    flows_dir: Optional[str] = typer.Option(None, "--flows-dir", help="Directory of flow YAML files"),
):
    """Compile a flow without running it."""
    try:
        config = load_config(config_path)
        flow_def = load_flow_yaml(flow, _flows_dir(config, flows_dir))
        instance = compile_flow(flow_def, inputs=_flow_inputs(args, flow_def))
    except (CompileError, FileNotFoundError, ValueError) as e:
        typer.echo(f"Compile error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Flow {instance.namespace}.{instance.flow_id} is valid")
    for task in instance.tasks:
        typer.echo(f"  {task.task_id}: {task.type}")


@app.command()
def version():
    """Show version information."""
    typer.echo(f"ibmi version {__version__}")


@app.command()
def flows(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    flows_dir: Optional[str] = typer.Option(None, "--flows-dir", help="Directory of flow YAML files"),
):
    """List available flows."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    for flow_id in list_flows(_flows_dir(config, flows_dir)):
        typer.echo(flow_id)


# Static commands (config, storage)
from ibmi.commands import config, storage

app.add_typer(config.app, name="config")
app.add_typer(storage.app, name="storage")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
