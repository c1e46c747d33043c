"""Grouping keys for duplicate detection."""

import re
from typing import Optional

from articles.database import Article

_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: Optional[str]) -> str:
    """Normalize an article title for exact-match grouping.

    Lowercases, collapses runs of whitespace to a single space and trims.
    Idempotent: normalize_title(normalize_title(x)) == normalize_title(x).

    Args:
        title: Raw title, may be None

    Returns:
        Normalized title, or empty string if input is empty/None
    """
    if not title:
        return ""
    return _WHITESPACE.sub(" ", title.lower()).strip()


def build_group_key(title: Optional[str], contact_key: Optional[str]) -> str:
    """Key shared by submissions with the same normalized title and contact key."""
    return f"{normalize_title(title)}|{(contact_key or '').lower()}"


def contact_key(article: Article) -> str:
    """Lowercased author email, or empty string for anonymous submissions."""
    email = article.author.email if article.author is not None else None
    return (email or "").lower()


def group_key(article: Article) -> str:
    """Grouping key of an article, using its author's email as contact key."""
    return build_group_key(article.title, contact_key(article))
