# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Executor - Execute a compiled FlowInstance.

Runs tasks in order, each with its own RunContext.
Outputs of finished tasks are visible to later ones as {{ outputs.<id> }}.
Produces RunRecord with task outcomes.
"""

import csv
import inspect
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ibmi.event_client import EventClient
from ibmi.run_context import RunContext
from ibmi.schemas import FlowInstance, TaskInstance, TaskOutcome, RunRecord
from ibmi.storage import InternalStorage
from ibmi_jobs import TASK_TYPES

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# Task Dispatch
# =============================================================================

def _dispatch_task(task: TaskInstance, run_context: RunContext, ctx: Dict[str, Any]) -> TaskOutcome:
    """Run a task's function and wrap the result in an outcome."""
    handler = TASK_TYPES.get(task.type)
    if handler is None:
        return TaskOutcome(
            task_id=task.task_id,
            status="failed",
            error=f"Unknown task type: {task.type}",
        )

    if ctx.get("dry_run", False):
        return TaskOutcome(
            task_id=task.task_id,
            status="completed",
            output={"dry_run": True, "type": task.type, "properties": sorted(task.properties)},
        )

    # Unknown or missing properties in the flow YAML
    try:
        inspect.signature(handler).bind(run_context, **task.properties)
    except TypeError as e:
        return TaskOutcome(
            task_id=task.task_id,
            status="failed",
            error=f"Invalid properties for {task.type}: {e}",
        )

    try:
        output = handler(run_context, **task.properties)
    except Exception as e:
        run_context.logger.error(f"Task {task.task_id} failed: {e}")
        return TaskOutcome(task_id=task.task_id, status="failed", error=str(e))

    return TaskOutcome(task_id=task.task_id, status="completed", output=output)


# =============================================================================
# Flow Execution
# =============================================================================

def execute(instance: FlowInstance, ctx: Optional[Dict[str, Any]] = None) -> RunRecord:
    """
    Execute a compiled FlowInstance.

    ctx keys:
        dry_run: Skip task functions, report what would run
        storage_dir: Root of the internal storage (storage://)
        events_log: JSONL file for task events

    Returns RunRecord with outcomes.
    """
    ctx = ctx or {}
    execution_id = str(uuid.uuid4())
    started_at = _utcnow()
    task_outputs: Dict[str, Any] = {}
    outcomes: List[TaskOutcome] = []
    success = True

    storage = InternalStorage(ctx["storage_dir"]) if ctx.get("storage_dir") else None
    events = None
    if ctx.get("events_log"):
        events = EventClient(Path(ctx["events_log"]), instance.flow_id, instance.namespace, execution_id)
    flow = {"id": instance.flow_id, "namespace": instance.namespace, "revision": instance.revision}

    logger.info(f"Executing flow {instance.namespace}.{instance.flow_id} ({execution_id})")

    for task in instance.tasks:
        run_context = RunContext(
            flow=flow,
            execution_id=execution_id,
            task_id=task.task_id,
            inputs=instance.inputs,
            outputs=dict(task_outputs),
            storage=storage,
        )

        if events:
            events.task_started(task)

        outcome = _dispatch_task(task, run_context, ctx)
        outcomes.append(outcome)

        if events:
            events.task_finished(task, outcome)

        # Store output for {{ outputs.<task_id> }} in later tasks
        if outcome.output is not None:
            task_outputs[task.task_id] = outcome.output

        if outcome.status == "failed" and not task.allow_failure:
            success = False
            break

    return RunRecord(
        execution_id=execution_id,
        flow_id=instance.flow_id,
        namespace=instance.namespace,
        success=success,
        started_at=started_at,
        completed_at=_utcnow(),
        outcomes=outcomes,
    )


# =============================================================================
# Output Rendering
# =============================================================================

def render_run_record(record: RunRecord, format_type: str = "table") -> None:
    """Render a RunRecord to stdout."""
    if not record.success:
        print(f"Flow {record.namespace}.{record.flow_id} FAILED", file=sys.stderr)
        for outcome in record.outcomes:
            if outcome.status == "failed":
                print(f"  Task '{outcome.task_id}': {outcome.error}", file=sys.stderr)
        sys.exit(1)

    rows = _outcome_rows(record)
    if format_type == "json":
        for outcome in record.outcomes:
            print(json.dumps({"task_id": outcome.task_id, "status": outcome.status,
                              "output": outcome.output}, default=str))
    elif format_type == "csv":
        writer = csv.DictWriter(sys.stdout, fieldnames=["task_id", "status", "summary"])
        writer.writeheader()
        writer.writerows(rows)
    else:
        _render_status(record)
        _render_table(rows)


def _summarize(output: Any) -> str:
    """One-line summary of a task output."""
    if not isinstance(output, dict):
        return "" if output is None else str(output)
    parts = []
    for key in ("success", "submitted", "return_code", "program_path", "command"):
        if key in output:
            parts.append(f"{key}={output[key]}")
    job = output.get("job")
    if isinstance(job, dict) and job.get("qualified_job_name"):
        parts.append(f"job={job['qualified_job_name']}")
    return " ".join(parts)


def _outcome_rows(record: RunRecord) -> List[Dict[str, str]]:
    return [
        {
            "task_id": outcome.task_id,
            "status": outcome.status,
            "summary": outcome.error or _summarize(outcome.output),
        }
        for outcome in record.outcomes
    ]


def _render_table(rows: List[Dict]) -> None:
    """Render rows as a simple table."""
    if not rows:
        print("(no rows)")
        return
    keys = list(rows[0].keys())
    widths = {k: max(len(str(k)), max(len(str(r.get(k, ""))) for r in rows)) for k in keys}
    header = " | ".join(str(k).ljust(widths[k]) for k in keys)
    print(header)
    print("-" * len(header))
    for row in rows:
        print(" | ".join(str(row.get(k, "")).ljust(widths[k]) for k in keys))


def _render_status(record: RunRecord) -> None:
    """Render run record header."""
    print(f"Flow: {record.namespace}.{record.flow_id}")
    print(f"Execution ID: {record.execution_id}")
    print(f"Status: {'ok' if record.success else 'FAILED'}")
    print(f"Tasks: {len(record.outcomes)}")
