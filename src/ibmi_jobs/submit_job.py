"""Submit a COBOL batch job asynchronously on IBM i.

Implementation rules enforced here:
- Never print (log through the run context)
- Always return simple dicts
- Side effects: one SBMJOB command only

The job is not awaited. The submitted job's identity is read back from the
completion message, typically:

    CPC1221: Job 123456/QUSER/EODBATCH submitted to job queue QBATCH in library QGPL.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

# I/O declaration for static analysis and auditing
__io__ = {
    "reads": [],
    "writes": [],
    "external": ["ibmi.qcmdexc"],
}

from typing import Any, Dict, List, Optional, Sequence

from ibmi_jobs.base import (
    collect_messages,
    connect,
    disconnect,
    qualified_program,
    quote_parameter,
    render_required,
)
from ibmi_jobs.call_job import render_parameters
from ibmi_jobs.client import Message
from ibmi_jobs.models import JobConfig, JobInfo


def build_submit_command(
    library: str,
    program: str,
    parameters: Optional[Sequence[str]] = None,
    job: Optional[JobConfig] = None,
) -> str:
    """Build SBMJOB CMD(CALL PGM(LIB/PGM) PARM(...)) JOB(..) JOBQ(..) USER(..)."""
    command = f"SBMJOB CMD(CALL PGM({qualified_program(library, program)})"
    if parameters:
        command += " PARM(" + " ".join(quote_parameter(p) for p in parameters) + ")"
    command += ")"

    if job is not None:
        if job.job_name:
            command += f" JOB({job.job_name})"
        if job.job_queue:
            command += f" JOBQ({job.job_queue})"
        if job.user_profile:
            command += f" USER({job.user_profile})"

    return command


def extract_job_info(messages: Optional[Sequence[Message]]) -> Optional[JobInfo]:
    """Find the submitted job's number/user/name in the submission messages."""
    if not messages:
        return None

    for message in messages:
        text = message.text or ""
        if "submitted" not in text and "SBMJOB" not in text:
            continue
        for token in text.split():
            job = JobInfo.parse(token.rstrip(".,;:"))
            if job is not None:
                return job

    return None


def _render_job(run_context, job: Optional[JobConfig]) -> Optional[JobConfig]:
    if job is None:
        return None
    return JobConfig(
        job_name=run_context.render(job.job_name),
        job_queue=run_context.render(job.job_queue),
        user_profile=run_context.render(job.user_profile),
    )


def submit_job(
    run_context,
    connection: Dict[str, Any],
    library: str,
    program: str,
    parameters: Optional[List[Any]] = None,
    job: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Submit a batch job that calls a program, without waiting for it.

    External: ibmi.qcmdexc (SBMJOB)

    Args:
        run_context: Run context used for rendering and logging
        connection: {host, user, password, port?, timeout?, database?}
        library: Library containing the program (dynamic)
        program: Program name without extension (dynamic)
        parameters: String parameters for the program
        job: {job_name?, job_queue?, user_profile?} (dynamic values)

    Returns:
        {submitted, job, messages, command}
    """
    lib = render_required(run_context, library, "library")
    pgm = render_required(run_context, program, "program")
    job_config = _render_job(run_context, JobConfig.from_dict(job))
    logger = run_context.logger
    system = None

    try:
        system = connect(run_context, connection)

        command = build_submit_command(
            lib, pgm, render_parameters(run_context, parameters), job_config
        )
        logger.info(f"Submitting job with command: {command}")

        result = system.run_command(command)
        messages = collect_messages(run_context, result.messages)
        job_info = extract_job_info(result.messages)

        if result.success:
            logger.info("Job submitted successfully")
        else:
            logger.warning("Job submission may have failed, check messages")

        return {
            "submitted": result.success,
            "job": job_info.to_dict() if job_info else None,
            "messages": messages,
            "command": command,
        }
    finally:
        disconnect(system, run_context)
