# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for the ibmi runner.

Lookup order:
1. Explicit path (--config)
2. $IBMI_CONFIG
3. ~/.ibmi/config.yaml (optional, defaults apply when absent)
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = "~/.ibmi/config.yaml"

DEFAULTS: Dict[str, Any] = {
    "flows_dir": None,
    "storage_dir": "~/.ibmi/storage",
    "events_log": "~/.ibmi/events.jsonl",
    "log_level": "INFO",
}


def get_config_path(config_path: Optional[str] = None) -> Path:
    """Resolve which config file to read."""
    if config_path:
        return Path(config_path).expanduser()
    env_path = os.environ.get("IBMI_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path(DEFAULT_CONFIG_PATH).expanduser()


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration merged over the defaults.

    Raises:
        FileNotFoundError: If an explicitly named config file is missing
        ValueError: If the file is not a YAML mapping
    """
    path = get_config_path(config_path)
    explicit = bool(config_path or os.environ.get("IBMI_CONFIG"))

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return dict(DEFAULTS)

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")

    unknown = set(data) - set(DEFAULTS)
    if unknown:
        raise ValueError(f"Unknown config key(s): {', '.join(sorted(unknown))}")

    return {**DEFAULTS, **data}
