"""
Shared services for the Article Desk API.
"""

from .admin_auth import get_client_ip, require_admin

__all__ = [
    "get_client_ip",
    "require_admin",
]
