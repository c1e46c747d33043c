"""
Base blob store interface for attachment files.

Paths handed to a provider are relative to its root, exactly as stored in
Attachment.file_path.
"""

from abc import ABC, abstractmethod
from typing import Optional


class StorageProvider(ABC):
    """Abstract base class for blob stores."""

    @abstractmethod
    def save_file(self, path: str, content: bytes) -> str:
        """Write content at path, creating parent folders. Returns the stored path."""
        pass

    @abstractmethod
    def get_file(self, path: str) -> Optional[bytes]:
        """Read a file, or None if it does not exist."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """
        Delete a file.

        Raises:
            StorageError: if the file is missing or can not be removed
        """
        pass

    @abstractmethod
    def get_url(self, path: str) -> str:
        """Public URL for the file."""
        pass
