# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Append-only JSONL log of task events for one flow execution."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ibmi.schemas import TaskInstance, TaskOutcome


class EventClient:
    """Writes task.started / task.completed / task.failed lines."""

    def __init__(self, log_path: Path, flow_id: str, namespace: str, execution_id: str):
        self.log_path = Path(log_path).expanduser()
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.flow_id = flow_id
        self.namespace = namespace
        self.execution_id = execution_id

    def task_started(self, task: TaskInstance) -> None:
        self._append("task.started", "running", task)

    def task_finished(self, task: TaskInstance, outcome: TaskOutcome) -> None:
        self._append(f"task.{outcome.status}", outcome.status, task, error_message=outcome.error)

    def _append(
        self,
        event_type: str,
        status: str,
        task: TaskInstance,
        error_message: Optional[str] = None,
    ) -> None:
        event: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "execution_id": self.execution_id,
            "status": status,
            "payload": {
                "namespace": self.namespace,
                "flow_id": self.flow_id,
                "task_id": task.task_id,
                "type": task.type,
            },
        }
        if error_message:
            event["error_message"] = error_message

        with open(self.log_path, "a") as f:
            f.write(json.dumps(event) + "\n")
