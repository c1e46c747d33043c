"""
Operator-facing entry points of the engine.

Each merge or delete runs inside exactly one transaction opened from the
session factory; detection reads on a plain session. HTTP routes and CLI
commands go through this class only.
"""

import uuid
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from articles.database import SessionLocal
from articles.deduplication.deletion import (
    AttachmentDeleteResult,
    DeleteResult,
    purge_files,
    remove_article_rows,
    remove_attachment_rows,
)
from articles.deduplication.detector import DuplicateGroup, DuplicateReport, find_duplicates, list_duplicate_groups
from articles.deduplication.files import DuplicateFileReport, find_duplicate_attachments
from articles.deduplication.merge import MergeRequest, MergeResult, merge_articles
from articles.repository import read_session, unit_of_work
from articles.storage import StorageProvider, get_storage
from articles.utils.logging import operation_context


class DeduplicationService:
    """Duplicate detection, merge and deletion bound to a store and a blob store."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        storage: Optional[StorageProvider] = None,
    ):
        self.session_factory = session_factory
        self.storage = storage or get_storage()

    def list_duplicate_groups(self) -> list[DuplicateGroup]:
        with operation_context("detect"), read_session(self.session_factory) as repo:
            return list_duplicate_groups(repo)

    def find_duplicates(self) -> DuplicateReport:
        with operation_context("detect"), read_session(self.session_factory) as repo:
            return find_duplicates(repo)

    def merge(self, request: MergeRequest) -> MergeResult:
        """
        Merge request.discard_ids into request.survivor_id atomically.

        Raises:
            NotFoundError: a referenced article does not exist (nothing applied)
            TransactionError: the store aborted the merge (nothing applied)
        """
        with operation_context("merge"):
            logger.info(f"Merging {[str(i) for i in request.discard_ids]} into {request.survivor_id}")
            with unit_of_work(self.session_factory) as repo:
                return merge_articles(repo, request)

    def merge_group(self, survivor_id, discard_ids: Iterable) -> MergeResult:
        return self.merge(MergeRequest.build(survivor_id, discard_ids))

    def delete_article(self, article_id: uuid.UUID) -> DeleteResult:
        """
        Delete an article and its dependent rows, then its files.

        File failures are logged and reported in the result; they never undo
        the metadata removal.
        """
        with operation_context("delete"):
            with unit_of_work(self.session_factory) as repo:
                removed, paths = remove_article_rows(repo, article_id)
            cleanup = purge_files(self.storage, paths)

        return DeleteResult(
            article_id=article_id,
            attachments_removed=removed,
            files_removed=len(cleanup.removed),
            files_failed=cleanup.failed,
        )

    def find_duplicate_attachments(self) -> DuplicateFileReport:
        with operation_context("detect"), read_session(self.session_factory) as repo:
            return find_duplicate_attachments(repo)

    def delete_attachments(self, attachment_ids: Iterable[uuid.UUID]) -> AttachmentDeleteResult:
        with operation_context("delete"):
            with unit_of_work(self.session_factory) as repo:
                removed, paths = remove_attachment_rows(repo, attachment_ids)
            cleanup = purge_files(self.storage, paths)
            logger.info(f"Deleted {removed} attachment(s), {len(cleanup.failed)} file(s) left behind")

        return AttachmentDeleteResult(
            deleted_count=removed,
            files_removed=len(cleanup.removed),
            files_failed=cleanup.failed,
        )
