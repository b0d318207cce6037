# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Run context - what a task sees while it runs.

Renders dynamic properties with Jinja2:
- {{ inputs.name }}             flow inputs
- {{ outputs.task_id.field }}   outputs of earlier tasks
- {{ flow.id }}, {{ flow.namespace }}, {{ execution.id }}, {{ task.id }}
- {{ secret('NAME') }}          secrets from SECRET_<NAME> env vars

Also hands out the task logger and the internal storage.
"""

import base64
import binascii
import logging
import os
from typing import Any, Dict, Optional

import jinja2

from ibmi.storage import InternalStorage

SECRET_ENV_PREFIX = "SECRET_"


class RenderError(Exception):
    """Raised when a dynamic property cannot be rendered."""
    pass


class SecretNotFoundError(RenderError):
    """Raised when a secret is missing or not valid base64."""
    pass


def get_secret(name: str) -> str:
    """
    Resolve a secret from the environment.

    Secrets are stored base64-encoded in SECRET_<NAME> variables, e.g.
    SECRET_IBMI_PASSWORD=cGFzc3dvcmQ= for secret('IBMI_PASSWORD').
    """
    env_key = f"{SECRET_ENV_PREFIX}{name}"
    encoded = os.environ.get(env_key)
    if encoded is None:
        raise SecretNotFoundError(f"Secret not found: {name} (set {env_key})")
    try:
        return base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise SecretNotFoundError(f"Secret {name} is not valid base64: {e}") from e


def _build_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.globals["secret"] = get_secret
    return env


_ENV = _build_environment()


class RunContext:
    """Rendering, logging and storage for one task run."""

    def __init__(
        self,
        flow: Dict[str, Any],
        execution_id: str,
        task_id: str,
        inputs: Optional[Dict[str, Any]] = None,
        outputs: Optional[Dict[str, Any]] = None,
        storage: Optional[InternalStorage] = None,
    ):
        self.flow = flow
        self.execution_id = execution_id
        self.task_id = task_id
        self.inputs = inputs or {}
        self.outputs = outputs or {}
        self.storage = storage
        self.logger = logging.getLogger(
            f"ibmi.flow.{flow.get('namespace', 'default')}.{flow.get('id', 'flow')}.{task_id}"
        )

    @property
    def variables(self) -> Dict[str, Any]:
        return {
            "flow": self.flow,
            "execution": {"id": self.execution_id},
            "task": {"id": self.task_id},
            "inputs": self.inputs,
            "outputs": self.outputs,
        }

    def render(self, value: Any) -> Any:
        """
        Render a dynamic property.

        Strings are templates; lists and dicts are rendered item by item.
        Anything else (None, numbers, booleans) is returned unchanged.
        """
        if isinstance(value, str):
            return self._render_string(value)
        elif isinstance(value, dict):
            return {k: self.render(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.render(v) for v in value]
        else:
            return value

    def _render_string(self, template: str) -> str:
        if "{{" not in template and "{%" not in template:
            return template
        try:
            return _ENV.from_string(template).render(**self.variables)
        except jinja2.UndefinedError as e:
            raise RenderError(f"Cannot render '{template}': {e}") from e
        except jinja2.TemplateSyntaxError as e:
            raise RenderError(f"Invalid template '{template}': {e}") from e
