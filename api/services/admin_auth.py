"""
Shared admin key verification.

Used by: merge, article deletion, attachment deletion.
"""

import logging
import secrets

from fastapi import Header, HTTPException, Request

from articles.config import get_settings

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP, respecting X-Forwarded-For for proxied requests."""
    ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    return ip


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract token from Authorization: Bearer <token> header."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authorization header must use Bearer scheme")
    return authorization[7:]  # Remove "Bearer " prefix


def require_admin(
    request: Request,
    authorization: str | None = Header(None, description="Bearer token for admin authentication"),
) -> str:
    """
    FastAPI dependency guarding data-destructive endpoints.

    Set the admin key via the API_ADMIN_KEY environment variable. Returns the
    client IP for audit logging.
    """
    configured_admin_key = get_settings().api.admin_key
    if not configured_admin_key:
        logger.warning("API_ADMIN_KEY not configured - merge/delete endpoints disabled")
        raise HTTPException(status_code=503, detail="Admin access not configured")

    admin_key = _extract_bearer_token(authorization)
    ip = get_client_ip(request)
    if not secrets.compare_digest(admin_key, configured_admin_key):
        logger.warning(f"Invalid admin key attempt from {ip}")
        raise HTTPException(status_code=403, detail="Invalid admin key")

    return ip
