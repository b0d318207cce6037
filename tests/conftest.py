# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: a fake IBM i session, a fake ibm_db driver, run contexts."""

import base64
import sys
from unittest.mock import patch

import pytest

from ibmi.run_context import RunContext
from ibmi.storage import InternalStorage
from ibmi_jobs.client import CommandResult, IBMiError, Message


CONNECTION = {
    "host": "{{ secret('IBMI_HOST') }}",
    "user": "{{ secret('IBMI_USER') }}",
    "password": "{{ secret('IBMI_PASSWORD') }}",
}


def encode_secret(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


class FakeSystem:
    """Stands in for IBMiSystem in task tests."""

    def __init__(self, command_result=None, server_job=None, timeout=30):
        self.timeout = timeout
        self.command_result = command_result or CommandResult(success=True)
        self.commands = []
        self.calls = []
        self.files = {}
        self.deleted = []
        self.disconnected = False
        self._server_job = server_job
        self.server_job_error = None
        self.delete_error = None

    def run_command(self, command, timeout=None):
        self.commands.append(command)
        return self.command_result

    def call_program(self, library, program, parameters=None, timeout=None):
        self.calls.append((library, program, list(parameters or []), timeout))
        return self.command_result

    def server_job(self):
        if self.server_job_error:
            raise self.server_job_error
        return self._server_job

    def write_text_file(self, path, content):
        self.files[path] = content

    def exists(self, path):
        return path in self.files

    def delete_file(self, path):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(path)
        self.files.pop(path, None)

    def disconnect(self):
        self.disconnected = True


class FakeDriver:
    """Minimal ibm_db module: canned rows per SQL fragment, scripted failures."""

    SQL_ATTR_QUERY_TIMEOUT = 1008

    def __init__(self):
        self.results = {}
        self.failures = {}
        self.executed = []
        self.options = []
        self.closed = []
        self.dsn = None
        self.connect_error = None

    def connect(self, dsn, user, password):
        self.dsn = dsn
        if self.connect_error:
            raise self.connect_error
        return "conn"

    def _rows_for(self, sql):
        for fragment, rows in self.results.items():
            if fragment in sql:
                return list(rows)
        return []

    def prepare(self, conn, sql):
        return {"sql": sql, "rows": self._rows_for(sql)}

    def set_option(self, stmt, options, option_type):
        self.options.append((stmt["sql"], options, option_type))

    def execute(self, stmt, params=None):
        self.executed.append((stmt["sql"], params))
        for fragment, error in self.failures.items():
            if fragment in stmt["sql"]:
                raise error
        return True

    def fetch_tuple(self, stmt):
        if stmt["rows"]:
            return stmt["rows"].pop(0)
        return False

    def close(self, conn):
        self.closed.append(conn)
        return True


@pytest.fixture
def secrets(monkeypatch):
    """Provide IBMI_HOST/USER/PASSWORD secrets."""
    monkeypatch.setenv("SECRET_IBMI_HOST", encode_secret("ibmi.example.com"))
    monkeypatch.setenv("SECRET_IBMI_USER", encode_secret("BATCHUSR"))
    monkeypatch.setenv("SECRET_IBMI_PASSWORD", encode_secret("s3cret"))


@pytest.fixture
def run_context(tmp_path, secrets):
    """Run context for a task in a test flow."""
    return RunContext(
        flow={"id": "test_flow", "namespace": "legacy.ibm_i"},
        execution_id="exec-1",
        task_id="task_1",
        inputs={"run_date": "2026-01-31", "library": "finlib"},
        outputs={},
        storage=InternalStorage(tmp_path / "storage"),
    )


@pytest.fixture
def fake_driver():
    """Install a fake ibm_db module."""
    driver = FakeDriver()
    with patch.dict(sys.modules, {"ibm_db": driver}):
        yield driver


def messages(*entries):
    """Build Message objects from (id, text, severity) tuples."""
    return [Message(id=i, text=t, severity=s) for i, t, s in entries]


__all__ = ["CONNECTION", "FakeSystem", "FakeDriver", "IBMiError", "messages", "encode_secret"]
