# SPDX-License-Identifier: MIT
"""Tests for engine logging."""

import sys

import pytest
from loguru import logger

from articles.utils.logging import setup_logging


@pytest.fixture
def audit_log(tmp_path):
    """Engine log file configured for the test, handlers restored afterwards."""
    path = tmp_path / "logs" / "desk.log"
    setup_logging(level="DEBUG", log_file=path)
    yield path
    logger.remove()
    logger.add(sys.stderr)


class TestOperationContext:
    """Test that records carry the operation that produced them."""

    def test_merge_records_are_tagged(self, audit_log, seed, service):
        """Merge log lines carry the merge operation name."""
        author = seed.author(email="a@x.com")
        survivor = seed.article("Harbor", author=author)
        discard = seed.article("Harbor", author=author)

        service.merge_group(survivor.id, [discard.id])
        logger.remove()

        lines = [line for line in audit_log.read_text(encoding="utf-8").splitlines() if "Merged 1 article" in line]
        assert lines
        assert all("| merge " in line for line in lines)

    def test_delete_records_are_tagged(self, audit_log, seed, service):
        """Delete log lines carry the delete operation name."""
        article = seed.article("Harbor")

        service.delete_article(article.id)
        logger.remove()

        lines = [line for line in audit_log.read_text(encoding="utf-8").splitlines() if "Deleted article" in line]
        assert lines
        assert all("| delete " in line for line in lines)

    def test_untagged_records_use_placeholder(self, audit_log):
        """Records outside any operation show a dash."""
        logger.patch(lambda record: record.update(name="articles.test")).info("standalone")
        logger.remove()

        [line] = [line for line in audit_log.read_text(encoding="utf-8").splitlines() if "standalone" in line]
        assert "| - " in line

    def test_file_keeps_engine_records_only(self, audit_log):
        """Records from other packages stay out of the audit file."""
        logger.patch(lambda record: record.update(name="uvicorn.access")).info("GET /")
        logger.remove()

        assert "GET /" not in audit_log.read_text(encoding="utf-8")
