"""COBOL tasks for IBM i.

Each task is a plain function taking a run context plus the task's
properties from the flow YAML, and returning a simple dict of outputs.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

from ibmi_jobs.call_job import call_job
from ibmi_jobs.create_program import create_program
from ibmi_jobs.submit_job import submit_job

# Flow task type -> task function
TASK_TYPES = {
    "cobol.create_program": create_program,
    "cobol.call_job": call_job,
    "cobol.submit_job": submit_job,
}

__all__ = [
    "TASK_TYPES",
    "call_job",
    "create_program",
    "submit_job",
]
