# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""IBM i access client over the ibm-db driver.

All remote work goes through IBM i SQL services on a single database
connection to the system:

- CL commands: CALL QSYS2.QCMDEXC(?)
- Command messages: QSYS2.JOBLOG_INFO('*') of the server job
- Server job identity: the QSYS2.JOB_NAME global variable
- IFS stream files: QSYS2.IFS_WRITE_UTF8 / QSYS2.IFS_OBJECT_STATISTICS

The driver is imported at connect() time so that a missing ibm-db install
surfaces as an IBMiConnectionError instead of an import failure.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from ibmi_jobs.models import DEFAULT_PORT, DEFAULT_TIMEOUT, JobInfo

# Program parameters are passed as fixed-length text
PARAMETER_LENGTH = 256

# Message severities (0-99) at or above these are warnings / errors
WARNING_SEVERITY = 10
ERROR_SEVERITY = 30

_JOBLOG_MARK_SQL = (
    "SELECT COALESCE(MAX(ORDINAL_POSITION), 0) "
    "FROM TABLE(QSYS2.JOBLOG_INFO('*')) X"
)
_JOBLOG_MESSAGES_SQL = (
    "SELECT MESSAGE_ID, MESSAGE_TEXT, SEVERITY, MESSAGE_TYPE "
    "FROM TABLE(QSYS2.JOBLOG_INFO('*')) X "
    "WHERE ORDINAL_POSITION > ? AND MESSAGE_ID IS NOT NULL "
    "AND MESSAGE_TYPE <> 'REQUEST' "
    "ORDER BY ORDINAL_POSITION"
)
_QCMDEXC_SQL = "CALL QSYS2.QCMDEXC(?)"
_JOB_NAME_SQL = "VALUES QSYS2.JOB_NAME"
_IFS_WRITE_SQL = (
    "CALL QSYS2.IFS_WRITE_UTF8("
    "PATH_NAME => ?, LINE => ?, OVERWRITE => 'REPLACE', END_OF_LINE => 'NONE')"
)
_IFS_EXISTS_SQL = (
    "SELECT COUNT(*) FROM TABLE(QSYS2.IFS_OBJECT_STATISTICS("
    "START_PATH_NAME => ?, SUBTREE_DIRECTORIES => 'NO')) X"
)


class IBMiError(Exception):
    """Raised when a remote operation on the IBM i system fails."""
    pass


class IBMiConnectionError(IBMiError):
    """Raised when the IBM i system cannot be reached or signed on to."""
    pass


def severity_label(severity: int) -> str:
    """Classify a message severity as ERROR, WARN or INFO."""
    if severity >= ERROR_SEVERITY:
        return "ERROR"
    if severity >= WARNING_SEVERITY:
        return "WARN"
    return "INFO"


def severity_level(severity: int) -> int:
    """Map a message severity to a logging level."""
    return {
        "ERROR": logging.ERROR,
        "WARN": logging.WARNING,
        "INFO": logging.INFO,
    }[severity_label(severity)]


def quote_cl_string(value: str, length: Optional[int] = None) -> str:
    """Quote a value as a CL character literal.

    Embedded single quotes are doubled. When length is given the value is
    padded with blanks to exactly that many characters.
    """
    text = str(value)
    if length is not None:
        if len(text) > length:
            raise ValueError(f"Value longer than {length} characters: {text[:20]}...")
        text = text.ljust(length)
    return "'" + text.replace("'", "''") + "'"


@dataclass(frozen=True)
class Message:
    """A message returned by the IBM i system."""
    id: str
    text: str
    severity: int = 0
    type: Optional[str] = None

    @property
    def formatted(self) -> str:
        return f"{self.id}: {self.text}"

    @property
    def level(self) -> int:
        return severity_level(self.severity)


@dataclass
class CommandResult:
    """Outcome of a CL command or program call."""
    success: bool
    messages: List[Message] = field(default_factory=list)


def _load_driver():
    try:
        import ibm_db
    except ImportError:
        raise IBMiConnectionError(
            "ibm-db is required to reach IBM i. Install with: pip install ibm-db"
        ) from None
    return ibm_db


class IBMiSystem:
    """A signed-on session with one IBM i system."""

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = DEFAULT_PORT,
        timeout: int = DEFAULT_TIMEOUT,
        database: Optional[str] = None,
    ):
        self.host = host
        self.user = user
        self._password = password
        self.port = port
        self.timeout = timeout
        self.database = database or "*LOCAL"
        self.logger = logging.getLogger(__name__)
        self._db: Any = None
        self._conn: Any = None

    def __repr__(self) -> str:
        return f"IBMiSystem(host={self.host!r}, user={self.user!r}, port={self.port})"

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _dsn(self) -> str:
        return (
            f"DATABASE={self.database};"
            f"HOSTNAME={self.host};"
            f"PORT={self.port};"
            f"PROTOCOL=TCPIP;"
            f"UID={self.user};"
            f"PWD={self._password};"
            f"CONNECTTIMEOUT={self.timeout};"
        )

    def connect(self) -> "IBMiSystem":
        """Sign on to the system."""
        db = _load_driver()
        try:
            self._conn = db.connect(self._dsn(), "", "")
        except Exception as e:
            raise IBMiConnectionError(f"Failed to connect to IBM i system: {e}") from e
        self._db = db
        self.logger.debug(f"Signed on to {self.host}:{self.port} as {self.user}")
        return self

    def disconnect(self) -> None:
        """Close the session. Safe to call when not connected."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        self._db.close(conn)

    # -------------------------------------------------------------------------
    # Statement helpers
    # -------------------------------------------------------------------------

    def _require_connection(self):
        if self._conn is None:
            raise IBMiError("Not connected to IBM i system")
        return self._db

    def _execute(self, sql: str, params: Sequence[Any] = (), timeout: Optional[int] = None):
        db = self._require_connection()
        stmt = db.prepare(self._conn, sql)
        if timeout:
            db.set_option(stmt, {db.SQL_ATTR_QUERY_TIMEOUT: int(timeout)}, 0)
        if params:
            db.execute(stmt, tuple(params))
        else:
            db.execute(stmt)
        return stmt

    def _fetch_all(self, stmt) -> List[tuple]:
        rows = []
        row = self._db.fetch_tuple(stmt)
        while row:
            rows.append(row)
            row = self._db.fetch_tuple(stmt)
        return rows

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[tuple]:
        try:
            return self._fetch_all(self._execute(sql, params))
        except IBMiError:
            raise
        except Exception as e:
            raise IBMiError(f"Query failed: {e}") from e

    def _joblog_mark(self) -> int:
        rows = self._query(_JOBLOG_MARK_SQL)
        return int(rows[0][0]) if rows else 0

    def _messages_since(self, mark: int) -> List[Message]:
        messages = []
        for message_id, text, severity, message_type in self._query(_JOBLOG_MESSAGES_SQL, (mark,)):
            messages.append(Message(
                id=str(message_id).strip(),
                text=(text or "").strip(),
                severity=int(severity or 0),
                type=message_type,
            ))
        return messages

    # -------------------------------------------------------------------------
    # Commands and programs
    # -------------------------------------------------------------------------

    def run_command(self, command: str, timeout: Optional[int] = None) -> CommandResult:
        """Run a CL command and collect the messages it logged.

        A command that ends in an escape message is reported as
        success=False, not raised.
        """
        mark = self._joblog_mark()
        try:
            self._execute(_QCMDEXC_SQL, (command,), timeout=timeout)
            success = True
        except IBMiError:
            raise
        except Exception as e:
            self.logger.debug(f"Command ended in error: {e}")
            success = False
        return CommandResult(success=success, messages=self._messages_since(mark))

    def call_program(
        self,
        library: str,
        program: str,
        parameters: Optional[Sequence[str]] = None,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """Call a program, passing each parameter as 256-character text."""
        return self.run_command(
            build_call_command(library, program, parameters, length=PARAMETER_LENGTH),
            timeout=timeout,
        )

    def server_job(self) -> Optional[JobInfo]:
        """Identify the server job this session runs in."""
        rows = self._query(_JOB_NAME_SQL)
        if not rows:
            return None
        return JobInfo.parse(str(rows[0][0]))

    # -------------------------------------------------------------------------
    # IFS
    # -------------------------------------------------------------------------

    def write_text_file(self, path: str, content: str) -> None:
        """Create or replace an IFS stream file with UTF-8 text."""
        try:
            self._execute(_IFS_WRITE_SQL, (path, content))
        except IBMiError:
            raise
        except Exception as e:
            raise IBMiError(f"Could not write {path}: {e}") from e

    def exists(self, path: str) -> bool:
        rows = self._query(_IFS_EXISTS_SQL, (path,))
        return bool(rows) and int(rows[0][0]) > 0

    def delete_file(self, path: str) -> None:
        result = self.run_command(f"RMVLNK OBJLNK({quote_cl_string(path)})")
        if not result.success:
            detail = "; ".join(m.formatted for m in result.messages) or "unknown error"
            raise IBMiError(f"Could not delete {path}: {detail}")


def build_call_command(
    library: str,
    program: str,
    parameters: Optional[Sequence[str]] = None,
    length: Optional[int] = None,
) -> str:
    """Build CALL PGM(LIB/PGM) [PARM('...' ...)]."""
    command = f"CALL PGM({library.upper()}/{program.upper()})"
    if parameters:
        quoted = " ".join(quote_cl_string(p, length) for p in parameters)
        command += f" PARM({quoted})"
    return command
