# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Connection handling and naming helpers shared by the COBOL tasks."""

from typing import Any, Dict, List, Optional, Sequence

from ibmi_jobs.client import (
    IBMiConnectionError,
    IBMiSystem,
    Message,
    quote_cl_string,
    severity_label,
)
from ibmi_jobs.models import CobolConnection

# Directory on the IFS for transient files
IFS_TEMP_DIR = "/tmp"


def require(value: Any, name: str) -> Any:
    """Reject missing or blank required properties."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"Missing required property: {name}")
    return value


def render_required(run_context, value: Any, name: str) -> str:
    """Render a dynamic required property, rejecting blank results."""
    require(value, name)
    return require(run_context.render(value), name)


def connect(run_context, connection: Dict[str, Any]) -> IBMiSystem:
    """Establish a connection to the IBM i system."""
    conn = CobolConnection.from_dict(connection).render(run_context)
    for name in ("host", "user", "password"):
        require(getattr(conn, name), f"connection.{name}")

    try:
        system = IBMiSystem(
            host=conn.host,
            user=conn.user,
            password=conn.password,
            port=conn.port,
            timeout=conn.timeout,
            database=conn.database,
        ).connect()
    except IBMiConnectionError:
        raise
    except Exception as e:
        raise IBMiConnectionError(f"Failed to connect to IBM i system: {e}") from e

    run_context.logger.info(f"Connected to IBM i system: {conn.host} as user: {conn.user}")
    return system


def disconnect(system: Optional[IBMiSystem], run_context) -> None:
    """Disconnect from the IBM i system, logging instead of raising."""
    if system is None:
        return
    try:
        system.disconnect()
        run_context.logger.info("Disconnected from IBM i system")
    except Exception as e:
        run_context.logger.warning(f"Error during disconnect: {e}")


def program_path(library: str, program: str) -> str:
    """Build the QSYS path of a program object."""
    return f"/QSYS.LIB/{library.upper()}.LIB/{program.upper()}.PGM"


def qualified_program(library: str, program: str) -> str:
    return f"{library.upper()}/{program.upper()}"


def ifs_path(file_name: str) -> str:
    """Build the IFS path for a temporary file."""
    return f"{IFS_TEMP_DIR}/{file_name}"


def quote_parameter(value: str) -> str:
    return quote_cl_string(value)


def collect_messages(
    run_context,
    messages: Optional[Sequence[Message]],
    by_severity: bool = False,
) -> List[str]:
    """Format messages as 'ID: text' and log each one.

    With by_severity, each message is logged at the level matching its
    severity and tagged [ERROR], [WARN] or [INFO].
    """
    collected = []
    for message in messages or []:
        text = message.formatted
        collected.append(text)
        if by_severity:
            run_context.logger.log(message.level, f"[{severity_label(message.severity)}] {text}")
        else:
            run_context.logger.info(f"Message: {text}")
    return collected
