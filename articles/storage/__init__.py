"""
Blob storage for attachment files.

get_storage() returns the process-wide provider built from settings.
"""

from functools import lru_cache

from articles.config import settings
from articles.storage.base import StorageProvider
from articles.storage.local import LocalStorageProvider, sanitize_filename


@lru_cache()
def get_storage() -> StorageProvider:
    """Get the configured storage provider (cached)."""
    return LocalStorageProvider(settings.storage.upload_dir, settings.storage.base_url)


__all__ = [
    "StorageProvider",
    "LocalStorageProvider",
    "get_storage",
    "sanitize_filename",
]
