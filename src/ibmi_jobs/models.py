# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Flat data classes shared by the COBOL tasks.

- CobolConnection: where and as whom to sign on
- SourceConfig: inline COBOL text or a URI to fetch it from
- JobInfo: number/user/name triple identifying an IBM i job
- JobConfig: SBMJOB job attributes
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_PORT = 446
DEFAULT_TIMEOUT = 30


def _int_field(data: Dict[str, Any], key: str, default: int) -> int:
    """Integer connection field; absent or null means the default."""
    value = data.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Connection field '{key}' must be an integer, got: {value!r}") from None


@dataclass(frozen=True)
class CobolConnection:
    """Connection configuration for an IBM i system.

    host, user and password are dynamic: they are rendered through the run
    context so they can come from secrets. port, timeout and database are
    used as given.
    """
    host: str
    user: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    timeout: int = DEFAULT_TIMEOUT
    database: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CobolConnection":
        """Build a connection from a task's `connection:` mapping."""
        if not isinstance(data, dict):
            raise ValueError("'connection' must be a mapping with host, user and password")

        missing = [key for key in ("host", "user", "password") if not data.get(key)]
        if missing:
            raise ValueError(f"Missing connection field(s): {', '.join(missing)}")

        return cls(
            host=data["host"],
            user=data["user"],
            password=data["password"],
            port=_int_field(data, "port", DEFAULT_PORT),
            timeout=_int_field(data, "timeout", DEFAULT_TIMEOUT),
            database=data.get("database"),
        )

    def render(self, run_context) -> "CobolConnection":
        """Return a copy with host, user and password resolved."""
        return CobolConnection(
            host=run_context.render(self.host),
            user=run_context.render(self.user),
            password=run_context.render(self.password),
            port=self.port,
            timeout=self.timeout,
            database=self.database,
        )


@dataclass(frozen=True)
class SourceConfig:
    """COBOL source: either inline text or a URI, never both."""
    inline: Optional[str] = None
    uri: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SourceConfig":
        if not isinstance(data, dict):
            raise ValueError("'source' must be a mapping with 'inline' or 'uri'")
        return cls(inline=data.get("inline"), uri=data.get("uri"))

    def validate(self) -> None:
        """Check that exactly one source method is specified."""
        if self.inline is None and self.uri is None:
            raise ValueError("Must specify either 'inline' or 'uri' for source")
        if self.inline is not None and self.uri is not None:
            raise ValueError("Cannot specify both 'inline' and 'uri' for source")

    @property
    def is_inline(self) -> bool:
        return self.inline is not None


@dataclass(frozen=True)
class JobInfo:
    """Information about an IBM i job."""
    name: str
    number: str
    user: str
    qualified_job_name: str

    @classmethod
    def from_parts(cls, number: str, user: str, name: str) -> "JobInfo":
        return cls(
            name=name,
            number=number,
            user=user,
            qualified_job_name=f"{number}/{user}/{name}",
        )

    @classmethod
    def parse(cls, qualified: Optional[str]) -> Optional["JobInfo"]:
        """Parse 'number/user/name'. Returns None for anything else."""
        if not qualified:
            return None
        parts = qualified.strip().split("/")
        if len(parts) != 3 or not all(parts):
            return None
        return cls.from_parts(parts[0], parts[1], parts[2])

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "number": self.number,
            "user": self.user,
            "qualified_job_name": self.qualified_job_name,
        }


@dataclass(frozen=True)
class JobConfig:
    """Attributes of a submitted batch job (SBMJOB JOB/JOBQ/USER)."""
    job_name: Optional[str] = None
    job_queue: Optional[str] = None
    user_profile: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["JobConfig"]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError("'job' must be a mapping")
        return cls(
            job_name=data.get("job_name"),
            job_queue=data.get("job_queue"),
            user_profile=data.get("user_profile"),
        )
