# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Compiler - Transform flow YAML + inputs into a FlowInstance.

Checks the flow structure and resolves inputs:
- declared inputs get their defaults
- provided values are coerced to the declared type
- missing required inputs fail compilation

Task properties are kept as written; their {{ ... }} templates are rendered
by the run context when the task runs, since they may refer to outputs of
earlier tasks and to secrets.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ibmi.schemas import FlowInstance, TaskInstance
from ibmi_jobs import TASK_TYPES


# Bundled flow definitions directory
FLOWS_DIR = Path(__file__).parent / "flows"

# Task keys that configure the runner rather than the task itself
RESERVED_TASK_KEYS = {"id", "type", "allow_failure", "description"}

INPUT_TYPES = {"STRING", "INT", "FLOAT", "BOOLEAN", "JSON"}

BOOLEAN_STRINGS = {"true": True, "yes": True, "1": True, "false": False, "no": False, "0": False}


class CompileError(Exception):
    """Raised when compilation fails."""
    pass


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


def load_flow_yaml(flow_ref: str, flows_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Load a flow definition by file path or by flow id."""
    candidate = Path(flow_ref).expanduser()
    if candidate.suffix in (".yaml", ".yml") and candidate.is_file():
        yaml_path = candidate
    else:
        yaml_path = Path(flows_dir or FLOWS_DIR).expanduser() / f"{flow_ref}.yaml"
        if not yaml_path.exists():
            raise CompileError(f"Flow not found: {flow_ref}")

    try:
        flow_def = yaml.safe_load(yaml_path.read_text())
    except yaml.YAMLError as e:
        raise CompileError(f"Invalid YAML in {yaml_path}: {e}") from e

    if not isinstance(flow_def, dict):
        raise CompileError(f"Flow must be a mapping: {yaml_path}")
    return flow_def


def list_flows(flows_dir: Optional[Path] = None) -> List[str]:
    """List flow ids available in a flows directory."""
    directory = Path(flows_dir or FLOWS_DIR).expanduser()
    if not directory.is_dir():
        return []
    return sorted(p.stem for p in directory.glob("*.yaml"))


def compile_flow(
    flow_def: Dict[str, Any],
    inputs: Optional[Dict[str, Any]] = None,
) -> FlowInstance:
    """
    Compile flow YAML → FlowInstance.

    Args:
        flow_def: The entire YAML dict
        inputs: Values for the flow's declared inputs

    Returns:
        FlowInstance ready for execution
    """
    for key in ("id", "namespace"):
        if not flow_def.get(key):
            raise CompileError(f"Flow is missing '{key}'")

    tasks = flow_def.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        raise CompileError(f"Flow {flow_def['id']} has no tasks")

    resolved_inputs = _resolve_inputs(flow_def.get("inputs") or [], inputs or {})

    compiled_tasks = []
    seen_ids = set()
    for index, task_data in enumerate(tasks):
        compiled_tasks.append(_compile_task(task_data, index, seen_ids))

    return FlowInstance(
        flow_id=flow_def["id"],
        namespace=flow_def["namespace"],
        revision=int(flow_def.get("revision", 1)),
        compiled_at=_utcnow(),
        inputs=resolved_inputs,
        tasks=tuple(compiled_tasks),
    )


def _compile_task(task_data: Any, index: int, seen_ids: set) -> TaskInstance:
    if not isinstance(task_data, dict):
        raise CompileError(f"Task #{index + 1} must be a mapping")

    task_id = task_data.get("id")
    task_type = task_data.get("type")
    if not task_id:
        raise CompileError(f"Task #{index + 1} is missing 'id'")
    if not task_type:
        raise CompileError(f"Task {task_id} is missing 'type'")
    if task_id in seen_ids:
        raise CompileError(f"Duplicate task id: {task_id}")
    if task_type not in TASK_TYPES:
        known = ", ".join(sorted(TASK_TYPES))
        raise CompileError(f"Unknown task type '{task_type}' for task {task_id} (known: {known})")
    seen_ids.add(task_id)

    return TaskInstance(
        task_id=task_id,
        type=task_type,
        properties={k: v for k, v in task_data.items() if k not in RESERVED_TASK_KEYS},
        allow_failure=bool(task_data.get("allow_failure", False)),
    )


def _resolve_inputs(declared: List[Dict[str, Any]], provided: Dict[str, Any]) -> Dict[str, Any]:
    """Merge declared defaults with provided values."""
    resolved = {}
    declared_ids = set()

    for decl in declared:
        if not isinstance(decl, dict) or not decl.get("id"):
            raise CompileError(f"Invalid input declaration: {decl}")
        input_id = decl["id"]
        input_type = str(decl.get("type", "STRING")).upper()
        if input_type not in INPUT_TYPES:
            raise CompileError(f"Unknown type '{input_type}' for input {input_id}")
        declared_ids.add(input_id)

        if input_id in provided:
            resolved[input_id] = _coerce_input(input_id, input_type, provided[input_id])
        elif "defaults" in decl:
            resolved[input_id] = decl["defaults"]
        elif decl.get("required", True):
            raise CompileError(f"Missing required input: {input_id}")
        else:
            resolved[input_id] = None

    # Undeclared values pass through untouched
    for key, value in provided.items():
        if key not in declared_ids:
            resolved[key] = value

    return resolved


def _coerce_input(input_id: str, input_type: str, value: Any) -> Any:
    if value is None:
        return None
    try:
        if input_type == "STRING":
            return str(value)
        if input_type == "INT":
            return int(value)
        if input_type == "FLOAT":
            return float(value)
        if input_type == "BOOLEAN":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text not in BOOLEAN_STRINGS:
                raise ValueError(text)
            return BOOLEAN_STRINGS[text]
        if input_type == "JSON" and isinstance(value, str):
            return json.loads(value)
    except (TypeError, ValueError) as e:
        raise CompileError(f"Input {input_id} is not a valid {input_type}: {value!r}") from e
    return value
