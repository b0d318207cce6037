"""Create and compile a COBOL program on IBM i from source.

Implementation rules enforced here:
- Never print (log through the run context)
- Always return simple dicts
- Side effects: IFS upload/delete, CRTBNDCBL on the remote system only

Flow:
1. Upload the COBOL source to a temporary IFS stream file
2. Compile it with CRTBNDCBL ... SRCSTMF(...)
3. Remove the temporary file (best effort)

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

# I/O declaration for static analysis and auditing
__io__ = {
    "reads": ["source.uri"],
    "writes": ["ifs:/tmp/*.cbl"],
    "external": ["ibmi.qcmdexc", "ibmi.ifs_write"],
}

import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ibmi.storage import STORAGE_SCHEME, StorageError
from ibmi_jobs.base import (
    collect_messages,
    connect,
    disconnect,
    ifs_path,
    program_path,
    qualified_program,
    render_required,
)
from ibmi_jobs.client import IBMiSystem
from ibmi_jobs.models import SourceConfig


def build_compile_command(
    library: str,
    program: str,
    source_file: str,
    compile_options: Optional[str] = None,
) -> str:
    """Build the CRTBNDCBL command for a source stream file."""
    command = f"CRTBNDCBL PGM({qualified_program(library, program)}) SRCSTMF('{source_file}')"
    if compile_options:
        command += f" {compile_options}"
    return command


def source_file_name(library: str, program: str, millis: Optional[int] = None) -> str:
    if millis is None:
        millis = int(time.time() * 1000)
    return f"{library}_{program}_{millis}.cbl"


def _download_source(run_context, uri: str, timeout: int) -> str:
    """Fetch source text from internal storage or an HTTP(S) URL."""
    if uri.startswith(STORAGE_SCHEME):
        if run_context.storage is None:
            raise StorageError(f"Internal storage is not configured, cannot read {uri} (set storage_dir)")
        return run_context.storage.get_file(uri).decode("utf-8")

    if urlparse(uri).scheme in ("http", "https"):
        response = requests.get(uri, timeout=timeout)
        response.raise_for_status()
        return response.content.decode("utf-8")

    raise ValueError(f"Unsupported source URI: {uri} (expected {STORAGE_SCHEME}, http:// or https://)")


def _upload_source(
    system: IBMiSystem,
    run_context,
    source: SourceConfig,
    library: str,
    program: str,
) -> str:
    """Write the source text to a fresh IFS file and return its path."""
    path = ifs_path(source_file_name(library, program))

    if source.is_inline:
        content = run_context.render(source.inline)
    else:
        content = _download_source(run_context, run_context.render(source.uri), system.timeout)

    system.write_text_file(path, content)
    return path


def _delete_ifs_file(system: IBMiSystem, path: str) -> None:
    if system.exists(path):
        system.delete_file(path)


def create_program(
    run_context,
    connection: Dict[str, Any],
    library: str,
    program: str,
    source: Dict[str, Any],
    compile_options: Optional[str] = None,
) -> Dict[str, Any]:
    """Upload COBOL source and compile it into a bound program.

    External: ibmi.ifs_write, ibmi.qcmdexc (CRTBNDCBL, RMVLNK)

    Args:
        run_context: Run context used for rendering and logging
        connection: {host, user, password, port?, timeout?, database?}
        library: Target library (dynamic)
        program: Program name without extension (dynamic)
        source: {inline: ...} or {uri: ...} (dynamic values)
        compile_options: Extra CRTBNDCBL options, e.g. "DBGVIEW(*SOURCE)"

    Returns:
        {success, program_path, compile_messages, source_file}
    """
    source_config = SourceConfig.from_dict(source)
    source_config.validate()

    lib = render_required(run_context, library, "library")
    pgm = render_required(run_context, program, "program")
    logger = run_context.logger
    system = None

    try:
        system = connect(run_context, connection)

        source_file = _upload_source(system, run_context, source_config, lib, pgm)
        logger.info(f"Source uploaded to: {source_file}")

        options = run_context.render(compile_options) if compile_options else None
        command = build_compile_command(lib, pgm, source_file, options)
        logger.info(f"Compiling with command: {command}")

        result = system.run_command(command)
        messages = collect_messages(run_context, result.messages, by_severity=True)

        try:
            _delete_ifs_file(system, source_file)
            logger.info("Cleaned up temporary source file")
        except Exception as e:
            logger.warning(f"Could not delete temporary file: {e}")

        path = program_path(lib, pgm)
        if result.success:
            logger.info(f"Program compiled successfully: {path}")
        else:
            logger.error("Program compilation failed")

        return {
            "success": result.success,
            "program_path": path,
            "compile_messages": messages,
            "source_file": source_file,
        }
    finally:
        disconnect(system, run_context)
