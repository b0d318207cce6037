# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Internal storage: a local directory addressed by storage:// URIs."""

from pathlib import Path
from typing import Union

STORAGE_SCHEME = "storage://"


class StorageError(Exception):
    """Raised when an internal storage URI cannot be resolved."""
    pass


class InternalStorage:
    """Read and write files under a root directory.

    storage://legacy/cobol/CALCINT.cbl -> <root>/legacy/cobol/CALCINT.cbl
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser().resolve()

    def _resolve(self, uri: str) -> Path:
        if not uri.startswith(STORAGE_SCHEME):
            raise StorageError(f"Not an internal storage URI: {uri}")

        relative = uri[len(STORAGE_SCHEME):].lstrip("/")
        if not relative:
            raise StorageError(f"Empty internal storage path: {uri}")

        path = (self.root / relative).resolve()
        if not path.is_relative_to(self.root):
            raise StorageError(f"Path escapes storage root: {uri}")
        return path

    def get_file(self, uri: str) -> bytes:
        """Return the content of a stored file."""
        path = self._resolve(uri)
        if not path.is_file():
            raise StorageError(f"File not found in internal storage: {uri}")
        return path.read_bytes()

    def put_file(self, uri: str, content: bytes) -> str:
        """Store content at the given URI and return the URI."""
        path = self._resolve(uri)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return uri
