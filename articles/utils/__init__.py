"""Utility modules for the engine."""

from articles.utils.logging import operation_context, setup_logging

__all__ = [
    "operation_context",
    "setup_logging",
]
