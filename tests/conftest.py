# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for Article Desk tests."""

import os
import uuid
from datetime import datetime, timedelta
from typing import Generator

import pytest

# Set test environment variables before importing app
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DISABLE_LOGGING", "1")
os.environ.setdefault("API_ADMIN_KEY", "test-admin-key")

ADMIN_KEY = os.environ["API_ADMIN_KEY"]
BASE_TIME = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables."""
    from articles.database import build_engine, create_all_tables

    engine = build_engine("sqlite://")
    create_all_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test database."""
    from sqlalchemy.orm import sessionmaker

    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator:
    """Session for seeding the test database. Seeded objects stay readable after commit."""
    session = session_factory(expire_on_commit=False)
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path):
    """Blob store rooted in a temporary directory."""
    from articles.storage import LocalStorageProvider

    return LocalStorageProvider(tmp_path / "uploads")


@pytest.fixture
def service(session_factory, storage):
    """Deduplication service bound to the test database and blob store."""
    from articles.deduplication import DeduplicationService

    return DeduplicationService(session_factory=session_factory, storage=storage)


class Seeder:
    """Helper that writes authors, articles and attachments and commits each call."""

    def __init__(self, session, storage):
        self.session = session
        self.storage = storage
        self._minutes = 0

    def _next_time(self) -> datetime:
        self._minutes += 1
        return BASE_TIME + timedelta(minutes=self._minutes)

    def author(self, email=None, given_name="Ada", surname="Lovelace"):
        from articles.database import Author

        author = Author(given_name=given_name, surname=surname, email=email)
        self.session.add(author)
        self.session.commit()
        return author

    def article(self, title, author=None, tags=(), source_ids=(), status="Draft", created_at=None):
        from articles.database import Article, ArticleMultimediaType, ArticleSourceId

        article = Article(
            title=title,
            author_id=author.id if author else None,
            status=status,
            created_at=created_at or self._next_time(),
        )
        self.session.add(article)
        self.session.flush()
        for label in tags:
            self.session.add(ArticleMultimediaType(article_id=article.id, multimedia_type=label))
        for source_id in source_ids:
            self.session.add(ArticleSourceId(article_id=article.id, source_id=source_id))
        self.session.commit()
        return article

    def attachment(self, article, name, content=b"data", store=True, file_size=None, attachment_type="other"):
        from articles.database import Attachment

        path = f"{article.id}/{uuid.uuid4().hex}_{name}"
        if store:
            self.storage.save_file(path, content)
        attachment = Attachment(
            article_id=article.id,
            attachment_type=attachment_type,
            file_name=path.rsplit("/", 1)[-1],
            original_file_name=name,
            file_path=path,
            file_size=file_size if file_size is not None else len(content),
            created_at=self._next_time(),
        )
        self.session.add(attachment)
        self.session.commit()
        return attachment


@pytest.fixture
def seed(db_session, storage) -> Seeder:
    """Seeding helper for the test database."""
    return Seeder(db_session, storage)


@pytest.fixture
def fresh_repo(session_factory) -> Generator:
    """Repository on its own session, for checking committed state."""
    from articles.repository import ArticleRepository

    session = session_factory()
    yield ArticleRepository(session)
    session.close()


@pytest.fixture
def test_client(session_factory, service) -> Generator:
    """Create a test client for the FastAPI application wired to the test database."""
    from fastapi.testclient import TestClient

    from api.main import app
    from api.routes.duplicates import get_deduplication_service
    from articles.database import get_db

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_deduplication_service] = lambda: service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Authorization header carrying the configured admin key."""
    return {"Authorization": f"Bearer {ADMIN_KEY}"}
