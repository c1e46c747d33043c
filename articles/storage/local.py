"""
Local filesystem blob store.

Files live under the configured upload directory; every path is resolved
against it and rejected if it escapes (path traversal).
"""

import re
from pathlib import Path
from typing import Optional

from loguru import logger

from articles.exceptions import StorageError
from articles.storage.base import StorageProvider

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Replace characters outside [a-zA-Z0-9._-] and cap the length at 255."""
    cleaned = _UNSAFE_CHARS.sub("_", filename)
    cleaned = re.sub(r"_{2,}", "_", cleaned)
    return cleaned[:255]


class LocalStorageProvider(StorageProvider):
    """Blob store backed by a directory on disk."""

    def __init__(self, base_dir: Path, base_url: str = "/api/files"):
        self.base_dir = Path(base_dir)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        root = self.base_dir.resolve()
        full = (root / path).resolve()
        if full != root and root not in full.parents:
            raise StorageError(f"Path escapes storage root: {path}", path=path)
        return full

    def save_file(self, path: str, content: bytes) -> str:
        full = self._resolve(path)
        try:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}", path=path) from e
        logger.debug(f"Stored {path} ({len(content)} bytes)")
        return path

    def get_file(self, path: str) -> Optional[bytes]:
        full = self._resolve(path)
        if not full.is_file():
            return None
        return full.read_bytes()

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except StorageError:
            return False

    def delete_file(self, path: str) -> None:
        full = self._resolve(path)
        try:
            full.unlink()
        except FileNotFoundError as e:
            raise StorageError(f"File not found: {path}", path=path) from e
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}", path=path) from e
        logger.debug(f"Deleted blob {path}")

    def get_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"
