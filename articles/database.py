"""
Database models for the Article Desk.

Uses SQLAlchemy 2.0 declarative models. Column types are portable so the
same schema runs on PostgreSQL in production and SQLite in tests.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List

from sqlalchemy import (
    create_engine,
    String,
    Integer,
    DateTime,
    Text,
    ForeignKey,
    Index,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from articles.config import settings


# =============================================================================
# Database Engine and Session
# =============================================================================

def build_engine(url: str, echo: bool = False):
    """Create an engine for the given URL with backend-appropriate pooling."""
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across sessions
        pool_args = {"poolclass": StaticPool} if ":memory:" in url or url == "sqlite://" else {}
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            **pool_args,
        )

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,        # Connection timeout to prevent hanging
        pool_recycle=1800,      # Recycle connections every 30 minutes
        connect_args={
            "connect_timeout": 10,  # Connection timeout in seconds
            "options": "-c statement_timeout=30000"  # 30s query timeout
        }
    )


engine = build_engine(
    settings.database.url,
    echo=settings.runtime.log_level == "DEBUG",
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for FastAPI to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_session():
    """Context manager for database sessions."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# Base Model
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# =============================================================================
# Contributors
# =============================================================================

class Author(Base):
    """
    A contributor.

    The email is the contact key used when grouping duplicate submissions.
    Authors created from anonymous intake have no email.
    """
    __tablename__ = "authors"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    given_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    surname: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True, unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    articles: Mapped[List["Article"]] = relationship("Article", back_populates="author")

    @property
    def display_name(self) -> str:
        return f"{self.given_name} {self.surname}".strip()

    def __repr__(self) -> str:
        return f"<Author {self.display_name} <{self.email}>>"


# =============================================================================
# Articles (Submissions)
# =============================================================================

class Article(Base):
    """
    A contributor submission.

    Intake can run more than once over the same submission, so the same
    logical article may exist under several ids until an operator merges them.
    """
    __tablename__ = "articles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("authors.id"),
        nullable=True,
    )

    # Workflow (owned by the editing surface)
    status: Mapped[str] = mapped_column(String(50), default="Draft")
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # Markdown

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    author: Mapped[Optional["Author"]] = relationship("Author", back_populates="articles")
    attachments: Mapped[List["Attachment"]] = relationship(
        "Attachment", back_populates="article", order_by="Attachment.created_at"
    )
    multimedia_types: Mapped[List["ArticleMultimediaType"]] = relationship(
        "ArticleMultimediaType", back_populates="article"
    )
    source_ids: Mapped[List["ArticleSourceId"]] = relationship(
        "ArticleSourceId", back_populates="article"
    )

    __table_args__ = (
        Index("idx_articles_author", "author_id"),
        Index("idx_articles_created", "created_at"),
    )

    @property
    def tag_set(self) -> set[str]:
        return {t.multimedia_type for t in self.multimedia_types}

    @property
    def source_id_set(self) -> set[str]:
        return {s.source_id for s in self.source_ids}

    def __repr__(self) -> str:
        return f"<Article {self.title!r} ({self.id})>"


class ArticleMultimediaType(Base):
    """
    Classification label on an article.

    Labels form a set per article, enforced by a unique constraint.
    """
    __tablename__ = "article_multimedia_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )
    multimedia_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Relationships
    article: Mapped["Article"] = relationship("Article", back_populates="multimedia_types")

    __table_args__ = (
        UniqueConstraint("article_id", "multimedia_type", name="uq_article_multimedia_type"),
        Index("idx_multimedia_types_article", "article_id"),
    )

    def __repr__(self) -> str:
        return f"<ArticleMultimediaType {self.multimedia_type} (article={self.article_id})>"


class ArticleSourceId(Base):
    """
    Provenance marker from the intake event that produced an article.

    Merges fold the markers of discarded copies into the survivor, so a
    re-import of any of them is recognized as already present.
    """
    __tablename__ = "article_source_ids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )
    source_id: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    article: Mapped["Article"] = relationship("Article", back_populates="source_ids")

    __table_args__ = (
        UniqueConstraint("article_id", "source_id", name="uq_article_source_id"),
        Index("idx_source_ids_source", "source_id"),
    )

    def __repr__(self) -> str:
        return f"<ArticleSourceId {self.source_id} (article={self.article_id})>"


class Attachment(Base):
    """
    File reference (word document, photo, ...) owned by exactly one article.

    The file itself lives in the blob store under file_path.
    """
    __tablename__ = "attachments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    article_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )

    attachment_type: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # bytes
    mime_type: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    caption: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # For photos
    photo_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Relationships
    article: Mapped["Article"] = relationship("Article", back_populates="attachments")

    __table_args__ = (
        Index("idx_attachments_article", "article_id"),
    )

    def __repr__(self) -> str:
        return f"<Attachment {self.original_file_name} (article={self.article_id})>"


# =============================================================================
# Helper Functions
# =============================================================================

def create_all_tables(bind=None):
    """Create all database tables."""
    Base.metadata.create_all(bind=bind or engine)


def drop_all_tables(bind=None):
    """Drop all database tables. USE WITH CAUTION!"""
    Base.metadata.drop_all(bind=bind or engine)
