# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Flow schemas."""

from ibmi.schemas.flow import (
    FlowInstance,
    TaskInstance,
    TaskOutcome,
    RunRecord,
)

__all__ = [
    "FlowInstance",
    "TaskInstance",
    "TaskOutcome",
    "RunRecord",
]
