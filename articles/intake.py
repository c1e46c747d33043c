"""
Submission intake with re-import recognition.

Intake runs repeatedly over the same form exports. A submission whose
source id is already held by an article (including ids folded into a
survivor by a merge) is skipped; anything else becomes a new article.
Title/author duplicates are not rejected here; they are found later by
the duplicate detector and merged by an operator.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from articles.config import ATTACHMENT_TYPES, MULTIMEDIA_TYPES
from articles.database import (
    Article,
    ArticleMultimediaType,
    ArticleSourceId,
    Attachment,
    Author,
    SessionLocal,
)
from articles.exceptions import ValidationError
from articles.repository import ArticleRepository, unit_of_work
from articles.storage import StorageProvider, sanitize_filename


@dataclass
class SubmittedFile:
    """A file referenced by a submission, already present in the blob store."""
    file_path: str
    original_file_name: str
    attachment_type: str = "other"
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    caption: Optional[str] = None
    photo_number: Optional[int] = None


@dataclass
class Submission:
    """One row of a form export."""
    source_id: str
    title: str
    author_email: Optional[str] = None
    given_name: str = ""
    surname: str = ""
    multimedia_types: list[str] = field(default_factory=list)
    content: Optional[str] = None
    submitted_at: Optional[datetime] = None
    files: list[SubmittedFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Submission":
        """
        Build a submission from an export row.

        Raises:
            ValidationError: if the row is not an object, lacks source_id or
                title, or has a malformed timestamp or file entry
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Submission must be an object: {data!r}")
        if not data.get("source_id") or not data.get("title"):
            raise ValidationError(f"Submission needs source_id and title: {data!r}")
        try:
            return cls._parse(data)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Malformed submission {data.get('source_id')}: {e}") from e

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "Submission":
        submitted_at = data.get("submitted_at")
        if isinstance(submitted_at, str):
            submitted_at = datetime.fromisoformat(submitted_at.replace("Z", "+00:00")).replace(tzinfo=None)
        elif submitted_at is not None and not isinstance(submitted_at, datetime):
            raise TypeError(f"submitted_at must be an ISO timestamp, got {submitted_at!r}")
        return cls(
            source_id=str(data["source_id"]),
            title=data["title"],
            author_email=data.get("author_email") or None,
            given_name=data.get("given_name") or "",
            surname=data.get("surname") or "",
            multimedia_types=list(data.get("multimedia_types") or []),
            content=data.get("content"),
            submitted_at=submitted_at,
            files=[SubmittedFile(**f) for f in data.get("files") or []],
        )


@dataclass
class ImportStats:
    """Result of an intake run."""
    created: int = 0
    skipped: int = 0
    authors_created: int = 0
    errors: list[str] = field(default_factory=list)


def load_submissions(path: Path) -> list[Submission]:
    """Read a JSON export: a list of submission objects."""
    with open(path, encoding="utf-8") as f:
        try:
            rows = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(rows, list):
        raise ValidationError(f"{path} must contain a list of submissions")
    return [Submission.from_dict(row) for row in rows]


def _resolve_author(repo: ArticleRepository, submission: Submission) -> tuple[Optional[Author], bool]:
    """Find the author by email or create one. Returns (author, created)."""
    if submission.author_email:
        author = repo.find_author_by_email(submission.author_email)
        if author is not None:
            return author, False
        email = submission.author_email.lower()
    elif submission.given_name or submission.surname:
        email = None
    else:
        return None, False

    author = Author(given_name=submission.given_name, surname=submission.surname, email=email)
    repo.add(author)
    return author, True


def _create_article(repo: ArticleRepository, submission: Submission, author: Optional[Author]) -> Article:
    article = Article(
        title=submission.title,
        author_id=author.id if author else None,
        content=submission.content,
        submitted_at=submission.submitted_at,
    )
    repo.add(article)

    rows = [ArticleSourceId(article_id=article.id, source_id=submission.source_id)]
    labels = []
    for label in submission.multimedia_types:
        if label not in MULTIMEDIA_TYPES:
            logger.warning(f"Unknown multimedia type {label!r} on {submission.source_id}, storing as Other")
            label = "Other"
        if label not in labels:
            labels.append(label)
    rows.extend(ArticleMultimediaType(article_id=article.id, multimedia_type=label) for label in labels)
    for f in submission.files:
        rows.append(Attachment(
            article_id=article.id,
            attachment_type=f.attachment_type if f.attachment_type in ATTACHMENT_TYPES else "other",
            file_name=Path(f.file_path).name,
            original_file_name=f.original_file_name,
            file_path=f.file_path,
            file_size=f.file_size,
            mime_type=f.mime_type,
            caption=f.caption,
            photo_number=f.photo_number,
        ))
    repo.add(*rows)
    return article


def import_submissions(
    submissions: Iterable[Submission],
    session_factory: sessionmaker = SessionLocal,
) -> ImportStats:
    """
    Create articles for submissions whose source id is not yet known.

    Each submission is imported in its own transaction so one bad row does
    not block the rest of the export.
    """
    stats = ImportStats()
    for submission in submissions:
        try:
            with unit_of_work(session_factory) as repo:
                if repo.find_by_source_id(submission.source_id):
                    logger.debug(f"Skipping known submission {submission.source_id}")
                    stats.skipped += 1
                    continue
                author, author_created = _resolve_author(repo, submission)
                article_id = _create_article(repo, submission, author).id
            stats.created += 1
            stats.authors_created += int(author_created)
            logger.debug(f"Imported {submission.source_id} as article {article_id}")
        except Exception as e:
            logger.error(f"Failed to import {submission.source_id}: {e}")
            stats.errors.append(f"{submission.source_id}: {e}")

    logger.info(
        f"Intake complete: {stats.created} created, {stats.skipped} already present, "
        f"{stats.authors_created} new authors, {len(stats.errors)} errors"
    )
    return stats


def store_upload(storage: StorageProvider, folder: str, file_name: str, content: bytes) -> SubmittedFile:
    """Write an uploaded file into the blob store and describe it for a submission."""
    path = f"{sanitize_filename(folder)}/{sanitize_filename(file_name)}"
    storage.save_file(path, content)
    return SubmittedFile(
        file_path=path,
        original_file_name=file_name,
        file_size=len(content),
    )
