"""Tests for ibmi_jobs.models.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import pytest

from ibmi_jobs.models import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    CobolConnection,
    JobConfig,
    JobInfo,
    SourceConfig,
)
from conftest import CONNECTION


class TestCobolConnection:
    """Tests for CobolConnection."""

    def test_from_dict_defaults(self):
        """Should default port and timeout."""
        conn = CobolConnection.from_dict({"host": "h", "user": "u", "password": "p"})

        assert conn.port == DEFAULT_PORT
        assert conn.timeout == DEFAULT_TIMEOUT
        assert conn.database is None

    def test_from_dict_explicit_values(self):
        """Should keep explicit port, timeout and database."""
        conn = CobolConnection.from_dict({
            "host": "h", "user": "u", "password": "p",
            "port": "8471", "timeout": 5, "database": "PROD",
        })

        assert conn.port == 8471
        assert conn.timeout == 5
        assert conn.database == "PROD"

    def test_from_dict_null_port_and_timeout_use_defaults(self):
        conn = CobolConnection.from_dict({
            "host": "h", "user": "u", "password": "p", "port": None, "timeout": None,
        })

        assert conn.port == DEFAULT_PORT
        assert conn.timeout == DEFAULT_TIMEOUT

    def test_from_dict_non_numeric_port(self):
        with pytest.raises(ValueError, match="'port' must be an integer"):
            CobolConnection.from_dict({"host": "h", "user": "u", "password": "p", "port": "telnet"})

    def test_from_dict_missing_fields(self):
        """Should name every missing required field."""
        with pytest.raises(ValueError, match="user, password"):
            CobolConnection.from_dict({"host": "h"})

    def test_from_dict_not_a_mapping(self):
        """Should reject non-mapping connection blocks."""
        with pytest.raises(ValueError, match="must be a mapping"):
            CobolConnection.from_dict("ibmi.example.com")

    def test_render_resolves_secrets(self, run_context):
        """Should render host, user and password through the run context."""
        conn = CobolConnection.from_dict({**CONNECTION, "timeout": 10}).render(run_context)

        assert conn.host == "ibmi.example.com"
        assert conn.user == "BATCHUSR"
        assert conn.password == "s3cret"
        assert conn.timeout == 10

    def test_repr_hides_password(self):
        """Password must not appear in repr."""
        conn = CobolConnection(host="h", user="u", password="topsecret")
        assert "topsecret" not in repr(conn)


class TestSourceConfig:
    """Tests for SourceConfig validation."""

    def test_inline_is_valid(self):
        source = SourceConfig(inline="IDENTIFICATION DIVISION.")
        source.validate()
        assert source.is_inline is True

    def test_uri_is_valid(self):
        source = SourceConfig(uri="https://repo.example.com/HELLO.cbl")
        source.validate()
        assert source.is_inline is False

    def test_neither_is_invalid(self):
        with pytest.raises(ValueError, match="Must specify either 'inline' or 'uri'"):
            SourceConfig().validate()

    def test_both_is_invalid(self):
        with pytest.raises(ValueError, match="Cannot specify both"):
            SourceConfig(inline="x", uri="https://example.com/x.cbl").validate()

    def test_empty_inline_counts_as_set(self):
        """An empty string is still a specified source."""
        SourceConfig(inline="").validate()

    def test_from_dict(self):
        source = SourceConfig.from_dict({"uri": "storage://HELLO.cbl"})
        assert source.uri == "storage://HELLO.cbl"
        assert source.inline is None


class TestJobInfo:
    """Tests for JobInfo."""

    def test_from_parts_builds_qualified_name(self):
        job = JobInfo.from_parts("123456", "QUSER", "EODBATCH")

        assert job.number == "123456"
        assert job.user == "QUSER"
        assert job.name == "EODBATCH"
        assert job.qualified_job_name == "123456/QUSER/EODBATCH"

    def test_parse(self):
        job = JobInfo.parse("654321/BATCHUSR/QZDASOINIT")
        assert job == JobInfo.from_parts("654321", "BATCHUSR", "QZDASOINIT")

    @pytest.mark.parametrize("value", [None, "", "123456/QUSER", "a/b/c/d", "123456//NAME"])
    def test_parse_rejects_malformed(self, value):
        assert JobInfo.parse(value) is None

    def test_to_dict(self):
        assert JobInfo.from_parts("1", "U", "N").to_dict() == {
            "name": "N",
            "number": "1",
            "user": "U",
            "qualified_job_name": "1/U/N",
        }


class TestJobConfig:
    """Tests for JobConfig."""

    def test_none_stays_none(self):
        assert JobConfig.from_dict(None) is None

    def test_partial(self):
        job = JobConfig.from_dict({"job_queue": "QBATCH"})
        assert job.job_queue == "QBATCH"
        assert job.job_name is None
        assert job.user_profile is None

    def test_not_a_mapping(self):
        with pytest.raises(ValueError):
            JobConfig.from_dict(["EODBATCH"])
