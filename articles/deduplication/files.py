"""
Duplicate attachment detection.

Attachments are grouped in three passes, strongest first:

- exact: same original filename (case-insensitive)
- similar: same base name once the extension is dropped and separators
  are unified, but with differing extensions
- size: same byte size (over 1 KB) inside the same article, typically an
  accidental double upload

An attachment is reported in at most one group; earlier passes win.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from articles.database import Attachment
from articles.repository import ArticleRepository

# Tiny files share sizes by coincidence
MIN_SIZE_MATCH_BYTES = 1024

_SEPARATORS = re.compile(r"[_\-\s]+")


def split_extension(file_name: str) -> tuple[str, str]:
    """Split into (base, extension); a leading dot is not an extension."""
    dot = file_name.rfind(".")
    if dot <= 0:
        return file_name, ""
    return file_name[:dot], file_name[dot:].lower()


def normalize_file_name(file_name: str) -> str:
    """Lowercase base name with runs of '_', '-' and whitespace unified to '_'."""
    base, _ = split_extension(file_name)
    return _SEPARATORS.sub("_", base.lower()).strip()


@dataclass
class DuplicateFile:
    id: uuid.UUID
    article_id: uuid.UUID
    article_title: str
    attachment_type: str
    file_name: str
    original_file_name: str
    file_path: str
    file_size: Optional[int]
    caption: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_attachment(cls, attachment: Attachment) -> "DuplicateFile":
        return cls(
            id=attachment.id,
            article_id=attachment.article_id,
            article_title=attachment.article.title if attachment.article else "Unknown Article",
            attachment_type=attachment.attachment_type,
            file_name=attachment.file_name,
            original_file_name=attachment.original_file_name,
            file_path=attachment.file_path,
            file_size=attachment.file_size,
            caption=attachment.caption,
            created_at=attachment.created_at,
        )


@dataclass
class DuplicateFileGroup:
    key: str
    match_type: str  # exact, similar, size
    files: list[DuplicateFile]


@dataclass
class DuplicateFileReport:
    total_files: int
    groups: list[DuplicateFileGroup]

    @property
    def total_duplicates(self) -> int:
        return sum(len(g.files) - 1 for g in self.groups)


def _bucket(attachments, key_fn) -> dict[str, list[Attachment]]:
    buckets: dict[str, list[Attachment]] = {}
    for attachment in attachments:
        key = key_fn(attachment)
        if key is not None:
            buckets.setdefault(key, []).append(attachment)
    return buckets


def group_duplicate_attachments(attachments: list[Attachment]) -> list[DuplicateFileGroup]:
    """Group attachments that look like copies of each other."""
    by_exact = _bucket(attachments, lambda a: a.original_file_name.lower())
    by_normalized = _bucket(attachments, lambda a: normalize_file_name(a.original_file_name))
    by_size = _bucket(
        attachments,
        lambda a: f"size_{a.file_size}" if a.file_size and a.file_size > MIN_SIZE_MATCH_BYTES else None,
    )

    groups: list[DuplicateFileGroup] = []
    processed: set[uuid.UUID] = set()

    def claim(key: str, match_type: str, files: list[Attachment]) -> None:
        groups.append(DuplicateFileGroup(
            key=key,
            match_type=match_type,
            files=[DuplicateFile.from_attachment(f) for f in files],
        ))
        processed.update(f.id for f in files)

    for key, files in by_exact.items():
        unprocessed = [f for f in files if f.id not in processed]
        if len(unprocessed) > 1:
            claim(f"exact_{key}", "exact", unprocessed)

    for key, files in by_normalized.items():
        unprocessed = [f for f in files if f.id not in processed]
        if len(unprocessed) < 2:
            continue
        extensions = {split_extension(f.original_file_name)[1] for f in unprocessed}
        if len(extensions) > 1:
            claim(f"similar_{key}", "similar", unprocessed)

    for key, files in by_size.items():
        unprocessed = [f for f in files if f.id not in processed]
        if len(unprocessed) < 2:
            continue
        by_article: dict[uuid.UUID, list[Attachment]] = {}
        for f in unprocessed:
            by_article.setdefault(f.article_id, []).append(f)
        for article_id, article_files in by_article.items():
            if len(article_files) > 1:
                claim(f"{key}_{article_id}", "size", article_files)

    return groups


def find_duplicate_attachments(repository: ArticleRepository) -> DuplicateFileReport:
    attachments = repository.list_all_attachments()
    return DuplicateFileReport(
        total_files=len(attachments),
        groups=group_duplicate_attachments(attachments),
    )
