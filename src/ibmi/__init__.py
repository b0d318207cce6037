# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""YAML flow runner for IBM i COBOL tasks."""

__version__ = "0.1.0"
