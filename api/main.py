"""
FastAPI Backend for Article Desk.

Operator API for finding duplicate article submissions, merging them into
a chosen survivor and deleting discarded articles.
"""

import logging
import os
import subprocess

from dotenv import load_dotenv

load_dotenv()

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.orm import Session

from api.routes import duplicates
from articles.config import get_settings
from articles.database import get_db
from articles.repository import ArticleRepository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings = get_settings()
    logger.info("Starting Article Desk API...")
    if not settings.api.admin_key:
        logger.warning("[STARTUP] API_ADMIN_KEY not set - merge and delete endpoints will return 503")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Article Desk API",
    description="Duplicate detection and merge for article submissions",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS - configured via API_CORS_ORIGINS env var
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(duplicates.router, prefix="/api/duplicates", tags=["duplicates"])


def _get_build_hash() -> str:
    """Get build hash from env var or git."""
    env_hash = os.environ.get("BUILD_HASH")
    if env_hash:
        return env_hash
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
        ).decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


BUILD_HASH = _get_build_hash()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "version": "1.0.0", "commit": BUILD_HASH, "service": "Article Desk API"}


@app.get("/api/stats")
async def stats(db: Session = Depends(get_db)):
    """Get database statistics. Never cached: counts change with every merge."""
    counts = ArticleRepository(db).counts()

    return {
        "total_articles": counts["articles"],
        "total_authors": counts["authors"],
        "total_attachments": counts["attachments"],
    }
