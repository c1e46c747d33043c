"""
Repository for articles and their dependent rows.

Every method runs on the session the repository was built with, so a
sequence of calls made inside one ``unit_of_work`` block commits or rolls
back as a whole.
"""

import uuid
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from articles.database import (
    Article,
    ArticleMultimediaType,
    ArticleSourceId,
    Attachment,
    Author,
    SessionLocal,
)
from articles.exceptions import DeskError, TransactionError


class ArticleRepository:
    """Data access for the duplicate detection, merge and deletion engine."""

    def __init__(self, session: Session):
        self.session = session

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def query_all_articles_with_author(self) -> list[Article]:
        """All current articles with author, tags, source ids and attachments loaded."""
        stmt = (
            select(Article)
            .options(
                joinedload(Article.author),
                selectinload(Article.multimedia_types),
                selectinload(Article.source_ids),
                selectinload(Article.attachments),
            )
            .order_by(Article.created_at, Article.id)
        )
        return list(self.session.scalars(stmt).unique())

    def get_article(self, article_id: uuid.UUID) -> Optional[Article]:
        return self.session.get(Article, article_id)

    def get_articles(self, article_ids: Iterable[uuid.UUID], lock: bool = False) -> dict[uuid.UUID, Article]:
        """
        Load several articles by id.

        With lock=True the rows are selected FOR UPDATE, so a concurrent merge
        touching the same articles waits for this transaction to finish.
        """
        ids = list(article_ids)
        if not ids:
            return {}
        stmt = select(Article).where(Article.id.in_(ids)).order_by(Article.id)
        if lock:
            stmt = stmt.with_for_update()
        return {article.id: article for article in self.session.scalars(stmt)}

    def list_attachments(self, article_id: uuid.UUID) -> list[Attachment]:
        stmt = select(Attachment).where(Attachment.article_id == article_id).order_by(Attachment.created_at)
        return list(self.session.scalars(stmt))

    def list_all_attachments(self) -> list[Attachment]:
        stmt = (
            select(Attachment)
            .options(joinedload(Attachment.article))
            .order_by(Attachment.original_file_name, Attachment.id)
        )
        return list(self.session.scalars(stmt))

    def get_attachments(self, attachment_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Attachment]:
        ids = list(attachment_ids)
        if not ids:
            return {}
        stmt = select(Attachment).where(Attachment.id.in_(ids))
        return {attachment.id: attachment for attachment in self.session.scalars(stmt)}

    def count_attachments(self, article_ids: Iterable[uuid.UUID]) -> int:
        stmt = select(func.count(Attachment.id)).where(Attachment.article_id.in_(list(article_ids)))
        return self.session.scalar(stmt) or 0

    def tags_for(self, article_ids: Iterable[uuid.UUID]) -> set[str]:
        stmt = select(ArticleMultimediaType.multimedia_type).where(
            ArticleMultimediaType.article_id.in_(list(article_ids))
        )
        return set(self.session.scalars(stmt))

    def source_ids_for(self, article_ids: Iterable[uuid.UUID]) -> set[str]:
        stmt = select(ArticleSourceId.source_id).where(ArticleSourceId.article_id.in_(list(article_ids)))
        return set(self.session.scalars(stmt))

    def find_by_source_id(self, source_id: str) -> list[Article]:
        """Articles holding the given provenance marker (normally at most one)."""
        stmt = (
            select(Article)
            .join(ArticleSourceId, ArticleSourceId.article_id == Article.id)
            .where(ArticleSourceId.source_id == source_id)
            .order_by(Article.created_at, Article.id)
        )
        return list(self.session.scalars(stmt))

    def find_author_by_email(self, email: str) -> Optional[Author]:
        stmt = select(Author).where(func.lower(Author.email) == email.lower())
        return self.session.scalars(stmt).first()

    def counts(self) -> dict[str, int]:
        return {
            "articles": self.session.scalar(select(func.count(Article.id))) or 0,
            "authors": self.session.scalar(select(func.count(Author.id))) or 0,
            "attachments": self.session.scalar(select(func.count(Attachment.id))) or 0,
        }

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, *rows) -> None:
        self.session.add_all(rows)
        self.session.flush()

    def reassign_attachments(self, from_id: uuid.UUID, to_id: uuid.UUID) -> int:
        """Move ownership of every attachment of from_id to to_id. Rows are updated, never copied."""
        result = self.session.execute(
            update(Attachment)
            .where(Attachment.article_id == from_id)
            .values(article_id=to_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def union_tags(self, from_id: uuid.UUID, to_id: uuid.UUID) -> list[str]:
        """Give to_id every tag of from_id it does not already hold. Returns the labels added."""
        existing = self.tags_for([to_id])
        added = sorted(self.tags_for([from_id]) - existing)
        for label in added:
            self.session.add(ArticleMultimediaType(article_id=to_id, multimedia_type=label))
        self.session.flush()
        return added

    def union_source_ids(self, from_ids: Iterable[uuid.UUID], to_id: uuid.UUID) -> list[str]:
        """Give to_id every source id held by any of from_ids. Returns the markers added."""
        existing = self.source_ids_for([to_id])
        added = sorted(self.source_ids_for(from_ids) - existing)
        for source_id in added:
            self.session.add(ArticleSourceId(article_id=to_id, source_id=source_id))
        self.session.flush()
        return added

    def delete_article(self, article_id: uuid.UUID) -> int:
        """
        Delete an article row with its tag, source id and attachment rows.

        Returns the number of attachment rows removed. Backing files are not
        touched here.
        """
        removed = self.session.execute(
            delete(Attachment).where(Attachment.article_id == article_id)
        ).rowcount or 0
        self.session.execute(
            delete(ArticleMultimediaType).where(ArticleMultimediaType.article_id == article_id)
        )
        self.session.execute(
            delete(ArticleSourceId).where(ArticleSourceId.article_id == article_id)
        )
        self.session.execute(
            delete(Article).where(Article.id == article_id).execution_options(synchronize_session="fetch")
        )
        return removed

    def delete_attachment(self, attachment_id: uuid.UUID) -> int:
        result = self.session.execute(
            delete(Attachment).where(Attachment.id == attachment_id).execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


@contextmanager
def unit_of_work(session_factory: sessionmaker = SessionLocal) -> Iterator[ArticleRepository]:
    """
    One explicit transaction around a block of repository calls.

    Commits when the block completes. Any failure rolls everything back;
    store failures are re-raised as TransactionError, engine errors as is.
    """
    session = session_factory()
    try:
        yield ArticleRepository(session)
        session.commit()
    except DeskError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise TransactionError("Transaction aborted, no changes applied") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_session(session_factory: sessionmaker = SessionLocal) -> Iterator[ArticleRepository]:
    """
    Repository for read-only work such as duplicate detection.

    Nothing is written, so store errors propagate unchanged and the session
    is simply rolled back and closed.
    """
    session = session_factory()
    try:
        yield ArticleRepository(session)
    finally:
        session.rollback()
        session.close()
