"""Call an existing COBOL program synchronously on IBM i.

Implementation rules enforced here:
- Never print (log through the run context)
- Always return simple dicts
- Side effects: one remote program call only

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

# I/O declaration for static analysis and auditing
__io__ = {
    "reads": [],
    "writes": [],
    "external": ["ibmi.qcmdexc"],
}

import time
from typing import Any, Dict, List, Optional

from ibmi_jobs.base import (
    collect_messages,
    connect,
    disconnect,
    program_path,
    render_required,
)

DEFAULT_TASK_TIMEOUT = 300


def render_parameters(run_context, parameters: Optional[List[Any]]) -> List[str]:
    """Render program parameters to a list of strings."""
    if not parameters:
        return []
    if not isinstance(parameters, list):
        raise ValueError("'parameters' must be a list")
    rendered = []
    for index, value in enumerate(parameters, start=1):
        if value is None:
            raise ValueError(f"Parameter {index} is null")
        rendered.append(str(run_context.render(value)))
    return rendered


def call_job(
    run_context,
    connection: Dict[str, Any],
    library: str,
    program: str,
    parameters: Optional[List[Any]] = None,
    task_timeout: int = DEFAULT_TASK_TIMEOUT,
) -> Dict[str, Any]:
    """Call a program and wait for it to end.

    External: ibmi.qcmdexc (CALL PGM)

    Args:
        run_context: Run context used for rendering and logging
        connection: {host, user, password, port?, timeout?, database?}
        library: Library containing the program (dynamic)
        program: Program name without extension (dynamic)
        parameters: String parameters, each passed as 256-character text
        task_timeout: Seconds to wait for the call before it is cancelled

    Returns:
        {return_code, success, messages, job, duration_ms}
    """
    start_time = time.time()
    lib = render_required(run_context, library, "library")
    pgm = render_required(run_context, program, "program")
    logger = run_context.logger
    system = None

    try:
        system = connect(run_context, connection)
        logger.info(f"Calling program: {program_path(lib, pgm)}")

        params = render_parameters(run_context, parameters)
        if params:
            logger.info(f"Set {len(params)} parameter(s)")

        logger.info("Executing program...")
        result = system.call_program(lib, pgm, params, timeout=task_timeout)
        messages = collect_messages(run_context, result.messages)

        job = None
        try:
            job_info = system.server_job()
            if job_info is not None:
                job = job_info.to_dict()
        except Exception as e:
            logger.warning(f"Could not retrieve job info: {e}")

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Program completed with status: {'SUCCESS' if result.success else 'FAILED'} "
            f"in {duration_ms}ms"
        )

        return {
            "return_code": 0 if result.success else 1,
            "success": result.success,
            "messages": messages,
            "job": job,
            "duration_ms": duration_ms,
        }
    finally:
        disconnect(system, run_context)
