"""
Merge a group of duplicate articles into an operator-chosen survivor.

The survivor receives every attachment, classification tag and source id
of the discarded copies, then the discards are removed. All of it happens
on one repository, i.e. inside one transaction: the caller commits once
merge_articles returns, and any exception rolls the whole merge back.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Union

from loguru import logger

from articles.exceptions import NotFoundError, TransactionError, ValidationError
from articles.repository import ArticleRepository


def _as_uuid(value: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise ValidationError(f"Invalid article id: {value!r}") from e


@dataclass(frozen=True)
class MergeRequest:
    """Survivor id plus the ids to fold into it, validated on construction."""
    survivor_id: uuid.UUID
    discard_ids: tuple[uuid.UUID, ...]

    def __post_init__(self):
        object.__setattr__(self, "survivor_id", _as_uuid(self.survivor_id))
        object.__setattr__(self, "discard_ids", tuple(_as_uuid(i) for i in self.discard_ids))

        if not self.discard_ids:
            raise ValidationError("At least one article to discard is required")
        if self.survivor_id in self.discard_ids:
            raise ValidationError(f"Survivor {self.survivor_id} is also listed for discard")
        if len(set(self.discard_ids)) != len(self.discard_ids):
            raise ValidationError("Discard ids must not repeat")

    @classmethod
    def build(cls, survivor_id, discard_ids: Iterable) -> "MergeRequest":
        return cls(survivor_id=survivor_id, discard_ids=tuple(discard_ids))

    @property
    def all_ids(self) -> list[uuid.UUID]:
        return [self.survivor_id, *self.discard_ids]


@dataclass
class MergeResult:
    """Outcome of a committed merge."""
    survivor_id: uuid.UUID
    merged_count: int
    attachments_moved: int = 0
    tags_added: list[str] = field(default_factory=list)
    source_ids_added: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True


def merge_articles(repository: ArticleRepository, request: MergeRequest) -> MergeResult:
    """
    Fold request.discard_ids into request.survivor_id.

    Raises:
        NotFoundError: if the survivor or any discard does not exist
        TransactionError: if the result would violate a merge postcondition
    """
    found = repository.get_articles(request.all_ids, lock=True)
    missing = [i for i in request.all_ids if i not in found]
    if missing:
        raise NotFoundError(missing)

    survivor_id = request.survivor_id
    discards = list(request.discard_ids)

    # Snapshot for the postcondition check
    attachments_before = repository.count_attachments(request.all_ids)
    tags_before = repository.tags_for(request.all_ids)
    sources_before = repository.source_ids_for(request.all_ids)

    source_ids_added = repository.union_source_ids(discards, survivor_id)

    attachments_moved = 0
    tags_added: set[str] = set()
    for discard_id in discards:
        attachments_moved += repository.reassign_attachments(discard_id, survivor_id)
        tags_added.update(repository.union_tags(discard_id, survivor_id))

    for discard_id in discards:
        repository.delete_article(discard_id)

    _verify(repository, survivor_id, attachments_before, tags_before, sources_before)

    logger.info(
        f"Merged {len(discards)} article(s) into {survivor_id}: "
        f"{attachments_moved} attachments moved, tags added {sorted(tags_added)}, "
        f"{len(source_ids_added)} source ids folded in"
    )
    return MergeResult(
        survivor_id=survivor_id,
        merged_count=len(discards),
        attachments_moved=attachments_moved,
        tags_added=sorted(tags_added),
        source_ids_added=source_ids_added,
    )


def _verify(
    repository: ArticleRepository,
    survivor_id: uuid.UUID,
    attachments_before: int,
    tags_before: set[str],
    sources_before: set[str],
) -> None:
    attachments_after = repository.count_attachments([survivor_id])
    if attachments_after != attachments_before:
        raise TransactionError(
            f"Merge would leave {attachments_after} attachments on {survivor_id}, expected {attachments_before}"
        )
    tags_after = repository.tags_for([survivor_id])
    if tags_after != tags_before:
        raise TransactionError(f"Merge would leave tags {sorted(tags_after)}, expected {sorted(tags_before)}")
    lost = sources_before - repository.source_ids_for([survivor_id])
    if lost:
        raise TransactionError(f"Merge would drop source ids {sorted(lost)}")
