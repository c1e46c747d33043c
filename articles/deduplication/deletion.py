"""
Article and attachment removal.

Metadata is the source of truth: rows are removed in one transaction, and
the backing files are removed afterwards on a best-effort basis. A file
that can not be deleted is logged and left for out-of-band cleanup.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from articles.exceptions import NotFoundError, StorageError
from articles.repository import ArticleRepository
from articles.storage import StorageProvider


@dataclass
class FileCleanup:
    """Result of removing backing files."""
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class DeleteResult:
    """Outcome of deleting an article."""
    article_id: uuid.UUID
    attachments_removed: int
    files_removed: int = 0
    files_failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True


@dataclass
class AttachmentDeleteResult:
    """Outcome of deleting attachments."""
    deleted_count: int
    files_removed: int = 0
    files_failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True


def remove_article_rows(repository: ArticleRepository, article_id: uuid.UUID) -> tuple[int, list[str]]:
    """
    Delete an article with its attachment, tag and source id rows.

    Returns the number of attachment rows removed and the file paths they
    referenced. Attachments without a file path count but have no path.

    Raises:
        NotFoundError: if the article does not exist
    """
    if repository.get_article(article_id) is None:
        raise NotFoundError([article_id])

    paths = [a.file_path for a in repository.list_attachments(article_id) if a.file_path]
    removed = repository.delete_article(article_id)
    logger.info(f"Deleted article {article_id} with {removed} attachment row(s)")
    return removed, paths


def remove_attachment_rows(
    repository: ArticleRepository, attachment_ids: Iterable[uuid.UUID]
) -> tuple[int, list[str]]:
    """
    Delete attachment rows.

    Returns the number of rows removed and the file paths they referenced.

    Raises:
        NotFoundError: if any attachment does not exist (nothing is deleted)
    """
    ids = list(dict.fromkeys(attachment_ids))
    found = repository.get_attachments(ids)
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundError(missing, kind="attachment")

    removed = 0
    paths = []
    for attachment_id in ids:
        if found[attachment_id].file_path:
            paths.append(found[attachment_id].file_path)
        removed += repository.delete_attachment(attachment_id)
    return removed, paths


def purge_files(storage: StorageProvider, paths: Iterable[str]) -> FileCleanup:
    """Delete backing files, logging and skipping any the store fails on."""
    cleanup = FileCleanup()
    for path in paths:
        try:
            storage.delete_file(path)
            cleanup.removed.append(path)
        except StorageError as e:
            logger.warning(f"Could not delete file {path}: {e}")
            cleanup.failed.append(path)
    return cleanup
