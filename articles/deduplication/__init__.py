"""
Deduplication components.

These modules detect articles that denote the same submission, merge a
group into an operator-chosen survivor, and remove discarded records.
"""

from articles.deduplication.detector import (
    DuplicateGroup,
    DuplicateMember,
    DuplicateReport,
    find_duplicates,
    list_duplicate_groups,
)
from articles.deduplication.merge import MergeRequest, MergeResult, merge_articles
from articles.deduplication.normalizer import build_group_key, group_key, normalize_title
from articles.deduplication.service import DeduplicationService

__all__ = [
    "normalize_title",
    "build_group_key",
    "group_key",
    "DuplicateGroup",
    "DuplicateMember",
    "DuplicateReport",
    "list_duplicate_groups",
    "find_duplicates",
    "MergeRequest",
    "MergeResult",
    "merge_articles",
    "DeduplicationService",
]
