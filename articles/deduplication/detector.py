"""
Duplicate detection over the current article set.

Groups are recomputed from scratch on every call and never stored, so they
can not go stale after an edit, delete or merge.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger

from articles.database import Article
from articles.deduplication.normalizer import contact_key, group_key, normalize_title
from articles.repository import ArticleRepository


@dataclass
class DuplicateMember:
    """One article inside a duplicate group, flattened for display."""
    id: uuid.UUID
    title: str
    author_id: Optional[uuid.UUID]
    author_name: Optional[str]
    author_email: Optional[str]
    status: Optional[str]
    submitted_at: Optional[datetime]
    created_at: Optional[datetime]
    attachment_count: int = 0
    tags: list[str] = field(default_factory=list)
    source_ids: list[str] = field(default_factory=list)

    @classmethod
    def from_article(cls, article: Article) -> "DuplicateMember":
        author = article.author
        return cls(
            id=article.id,
            title=article.title,
            author_id=article.author_id,
            author_name=author.display_name if author else None,
            author_email=author.email if author else None,
            status=article.status,
            submitted_at=article.submitted_at,
            created_at=article.created_at,
            attachment_count=len(article.attachments),
            tags=sorted(article.tag_set),
            source_ids=sorted(article.source_id_set),
        )


@dataclass
class DuplicateGroup:
    """
    Articles sharing a grouping key.

    anonymous is set when the members have no contact key: such a group may
    mix unrelated submissions that only share a title, so the operator has
    to check it before merging.
    """
    key: str
    normalized_title: str
    contact_key: str
    members: list[DuplicateMember]

    @property
    def anonymous(self) -> bool:
        return self.contact_key == ""

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> list[uuid.UUID]:
        return [m.id for m in self.members]


@dataclass
class DuplicateReport:
    """Duplicate groups plus the totals shown to the operator."""
    total_articles: int
    groups: list[DuplicateGroup]

    @property
    def total_duplicates(self) -> int:
        return sum(group.size - 1 for group in self.groups)

    @property
    def anonymous_groups(self) -> int:
        return sum(1 for group in self.groups if group.anonymous)


def _sort_key(article: Article) -> tuple:
    return (article.created_at or datetime.min, str(article.id))


def _group_articles(articles: list[Article]) -> list[DuplicateGroup]:
    buckets: dict[str, list[Article]] = {}
    for article in articles:
        buckets.setdefault(group_key(article), []).append(article)

    groups = []
    for key in sorted(buckets):
        members = buckets[key]
        if len(members) < 2:
            continue
        members.sort(key=_sort_key)
        title = normalize_title(members[0].title)
        group = DuplicateGroup(
            key=key,
            normalized_title=title,
            contact_key=contact_key(members[0]),
            members=[DuplicateMember.from_article(a) for a in members],
        )
        if group.anonymous:
            logger.warning(
                f"Duplicate group {title!r} has no contact key; "
                f"{group.size} articles may be unrelated submissions sharing a title"
            )
        groups.append(group)
    return groups


def list_duplicate_groups(repository: ArticleRepository) -> list[DuplicateGroup]:
    """Scan all articles and return only groups with more than one member."""
    return _group_articles(repository.query_all_articles_with_author())


def find_duplicates(repository: ArticleRepository) -> DuplicateReport:
    """Duplicate groups with totals, from a single scan."""
    articles = repository.query_all_articles_with_author()
    groups = _group_articles(articles)
    report = DuplicateReport(total_articles=len(articles), groups=groups)
    logger.info(
        f"Scanned {report.total_articles} articles: {len(groups)} duplicate groups, "
        f"{report.total_duplicates} surplus copies"
    )
    return report
