"""
Article Desk engine.

Duplicate detection, merge and deletion for contributor article submissions.
"""

__version__ = "1.0.0"
