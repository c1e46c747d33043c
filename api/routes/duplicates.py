"""
Duplicates API Routes - detection, merge and deletion of duplicate articles.

Supports:
- Duplicate group listing (recomputed on every request, never cached)
- Merging a group into an operator-chosen survivor (admin)
- Deleting a single article (admin)
- Duplicate attachment listing and bulk deletion (admin)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from articles.deduplication import DeduplicationService, MergeRequest
from articles.exceptions import DeskError, NotFoundError, TransactionError, ValidationError
from api.services.admin_auth import require_admin

logger = logging.getLogger(__name__)
router = APIRouter()


def get_deduplication_service() -> DeduplicationService:
    """Dependency providing the engine bound to the default database and storage."""
    return DeduplicationService()


class MergeBody(BaseModel):
    """Request body for merging a duplicate group."""
    survivor_id: uuid.UUID = Field(..., description="Article to keep")
    discard_ids: list[uuid.UUID] = Field(..., description="Articles folded into the survivor and deleted")


class DeleteAttachmentsBody(BaseModel):
    """Request body for bulk attachment deletion."""
    attachment_ids: list[uuid.UUID] = Field(..., min_length=1)


def _raise_http(error: DeskError) -> None:
    """Translate an engine error into an HTTP error carrying the offending ids."""
    if isinstance(error, ValidationError):
        raise HTTPException(status_code=400, detail={"error": "validation_error", "message": str(error)})
    if isinstance(error, NotFoundError):
        raise HTTPException(
            status_code=404,
            detail={"error": "not_found", "message": str(error), "ids": error.ids},
        )
    if isinstance(error, TransactionError):
        raise HTTPException(
            status_code=409,
            detail={"error": "transaction_error", "message": "No changes applied. Safe to retry."},
        )
    raise HTTPException(status_code=500, detail={"error": "internal_error", "message": str(error)})


def _iso(value):
    return value.isoformat() if value else None


@router.get("/")
async def list_duplicates(service: DeduplicationService = Depends(get_deduplication_service)):
    """
    Find groups of articles sharing a normalized title and author email.

    Groups flagged anonymous have no author email: their members may be
    unrelated submissions that only share a title.
    """
    report = service.find_duplicates()

    groups = [
        {
            "key": group.key,
            "normalized_title": group.normalized_title,
            "contact_key": group.contact_key,
            "anonymous": group.anonymous,
            "articles": [
                {
                    "id": str(m.id),
                    "title": m.title,
                    "author_id": str(m.author_id) if m.author_id else None,
                    "author_name": m.author_name,
                    "author_email": m.author_email,
                    "status": m.status,
                    "submitted_at": _iso(m.submitted_at),
                    "created_at": _iso(m.created_at),
                    "attachment_count": m.attachment_count,
                    "tags": m.tags,
                    "source_ids": m.source_ids,
                }
                for m in group.members
            ],
        }
        for group in report.groups
    ]

    return {
        "total_articles": report.total_articles,
        "total_duplicates": report.total_duplicates,
        "anonymous_groups": report.anonymous_groups,
        "duplicate_groups": groups,
    }


@router.post("/merge")
async def merge_group(
    body: MergeBody,
    client_ip: str = Depends(require_admin),
    service: DeduplicationService = Depends(get_deduplication_service),
):
    """
    Merge discard_ids into survivor_id (admin only).

    Attachments, tags and source ids move to the survivor and the discarded
    articles are deleted, all in one transaction.
    """
    try:
        request = MergeRequest.build(body.survivor_id, body.discard_ids)
        result = service.merge(request)
    except DeskError as e:
        logger.warning(f"Merge into {body.survivor_id} refused: {e}")
        _raise_http(e)

    logger.info(f"Merged {result.merged_count} article(s) into {result.survivor_id} (from {client_ip})")
    return {
        "success": True,
        "survivor_id": str(result.survivor_id),
        "merged_count": result.merged_count,
        "attachments_moved": result.attachments_moved,
        "tags_added": result.tags_added,
        "source_ids_added": result.source_ids_added,
    }


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: uuid.UUID,
    client_ip: str = Depends(require_admin),
    service: DeduplicationService = Depends(get_deduplication_service),
):
    """Delete an article with its attachments and tags (admin only)."""
    try:
        result = service.delete_article(article_id)
    except DeskError as e:
        _raise_http(e)

    logger.info(f"Deleted article {article_id} (from {client_ip})")
    return {
        "success": True,
        "attachments_removed": result.attachments_removed,
        "files_failed": result.files_failed,
    }


@router.get("/files")
async def list_duplicate_files(service: DeduplicationService = Depends(get_deduplication_service)):
    """Find attachments that look like duplicate uploads."""
    report = service.find_duplicate_attachments()

    return {
        "total_files": report.total_files,
        "total_duplicates": report.total_duplicates,
        "duplicate_groups": [
            {
                "key": group.key,
                "match_type": group.match_type,
                "files": [
                    {
                        "id": str(f.id),
                        "article_id": str(f.article_id),
                        "article_title": f.article_title,
                        "attachment_type": f.attachment_type,
                        "file_name": f.file_name,
                        "original_file_name": f.original_file_name,
                        "file_path": f.file_path,
                        "file_size": f.file_size,
                        "caption": f.caption,
                        "created_at": _iso(f.created_at),
                    }
                    for f in group.files
                ],
            }
            for group in report.groups
        ],
    }


@router.post("/files/delete")
async def delete_files(
    body: DeleteAttachmentsBody,
    client_ip: str = Depends(require_admin),
    service: DeduplicationService = Depends(get_deduplication_service),
):
    """Delete attachments and their files (admin only)."""
    try:
        result = service.delete_attachments(body.attachment_ids)
    except DeskError as e:
        _raise_http(e)

    logger.info(f"Deleted {result.deleted_count} attachment(s) (from {client_ip})")
    return {
        "success": True,
        "deleted_count": result.deleted_count,
        "files_failed": result.files_failed,
    }
