# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Flow instance and run record schemas.

- Flow (YAML) → compile → FlowInstance → execute → RunRecord
- Inputs are resolved at compile time
- Task properties stay templated until the task runs
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class TaskInstance:
    """A compiled task ready for execution.

    properties holds the raw (unrendered) task fields from the flow YAML.
    """
    task_id: str
    type: str  # e.g., "cobol.call_job"
    properties: Dict[str, Any] = field(default_factory=dict)
    allow_failure: bool = False


@dataclass
class FlowInstance:
    """A compiled flow ready for execution."""
    flow_id: str
    namespace: str
    revision: int
    compiled_at: datetime
    inputs: Dict[str, Any]
    tasks: Tuple[TaskInstance, ...]


@dataclass
class TaskOutcome:
    """Result of executing a single task."""
    task_id: str
    status: str  # "completed", "failed"
    output: Any = None
    error: Optional[str] = None


@dataclass
class RunRecord:
    """Result of executing a flow."""
    execution_id: str
    flow_id: str
    namespace: str
    success: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[TaskOutcome] = field(default_factory=list)
