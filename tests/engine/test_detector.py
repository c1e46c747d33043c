# SPDX-License-Identifier: MIT
"""Tests for duplicate group detection."""

import pytest


class TestFindDuplicates:
    """Test grouping of articles into duplicate groups."""

    def test_title_case_and_whitespace_variants_group(self, seed, service):
        """Titles differing only in case and trailing space form one group."""
        author = seed.author(email="a@x.com")
        first = seed.article("Campus News", author=author)
        second = seed.article("campus news ", author=author)

        report = service.find_duplicates()

        assert len(report.groups) == 1
        group = report.groups[0]
        assert group.size == 2
        assert group.member_ids == [first.id, second.id]
        assert group.normalized_title == "campus news"
        assert group.contact_key == "a@x.com"
        assert not group.anonymous

    def test_singletons_are_not_reported(self, seed, service):
        """Groups with one member never appear."""
        author = seed.author(email="a@x.com")
        seed.article("Campus News", author=author)
        seed.article("Sports Day", author=author)

        report = service.find_duplicates()

        assert report.total_articles == 2
        assert report.groups == []
        assert report.total_duplicates == 0

    def test_email_case_is_ignored(self, seed, service):
        """Contact keys compare case-insensitively across authors."""
        upper = seed.author(email="Writer@Example.org", given_name="W", surname="One")
        lower = seed.author(email="writer@example.org", given_name="W", surname="Two")
        seed.article("Harbor", author=upper)
        seed.article("Harbor", author=lower)

        groups = service.find_duplicates().groups

        assert len(groups) == 1
        assert groups[0].contact_key == "writer@example.org"

    def test_different_authors_stay_apart(self, seed, service):
        """The same title from different contributors is not a duplicate."""
        seed.article("Harbor", author=seed.author(email="a@x.com"))
        seed.article("Harbor", author=seed.author(email="b@x.com"))

        assert service.list_duplicate_groups() == []

    def test_members_ordered_by_creation(self, seed, service):
        """Members are listed oldest first."""
        from datetime import datetime

        author = seed.author(email="a@x.com")
        newer = seed.article("Harbor", author=author, created_at=datetime(2024, 5, 2))
        older = seed.article("Harbor", author=author, created_at=datetime(2024, 5, 1))

        group = service.find_duplicates().groups[0]

        assert group.member_ids == [older.id, newer.id]

    def test_member_details(self, seed, service):
        """Members carry author, attachment count, tags and source ids for display."""
        author = seed.author(email="a@x.com", given_name="Grace", surname="Hopper")
        article = seed.article("Harbor", author=author, tags=["Video", "Photo"], source_ids=["form-1"])
        seed.attachment(article, "story.docx")
        seed.article("Harbor", author=author)

        member = service.find_duplicates().groups[0].members[0]

        assert member.id == article.id
        assert member.author_name == "Grace Hopper"
        assert member.author_email == "a@x.com"
        assert member.attachment_count == 1
        assert member.tags == ["Photo", "Video"]
        assert member.source_ids == ["form-1"]

    def test_report_totals(self, seed, service):
        """Surplus copies are counted across groups."""
        author = seed.author(email="a@x.com")
        for _ in range(3):
            seed.article("Harbor", author=author)
        for _ in range(2):
            seed.article("Campus News", author=author)
        seed.article("Unique", author=author)

        report = service.find_duplicates()

        assert report.total_articles == 6
        assert len(report.groups) == 2
        assert report.total_duplicates == 3


class TestAnonymousGroups:
    """Test groups whose members have no contact key."""

    def test_missing_author_groups_anonymously(self, seed, service):
        """Articles without author share one bucket per title and are flagged."""
        seed.article("Letters to the Editor")
        seed.article("letters to the editor")

        report = service.find_duplicates()

        assert len(report.groups) == 1
        assert report.groups[0].anonymous
        assert report.groups[0].contact_key == ""
        assert report.anonymous_groups == 1

    def test_author_without_email_is_anonymous(self, seed, service):
        """An author with no email contributes an empty contact key."""
        seed.article("Harbor", author=seed.author(email=None, given_name="A"))
        seed.article("Harbor")

        group = service.find_duplicates().groups[0]

        assert group.anonymous
        assert group.size == 2


class TestRecomputedPerCall:
    """Groups reflect the current store on every call."""

    def test_deleted_article_disappears_from_groups(self, seed, service):
        """After a delete the group no longer lists the removed article."""
        author = seed.author(email="a@x.com")
        keep = seed.article("Harbor", author=author)
        gone = seed.article("Harbor", author=author)
        seed.article("Harbor", author=author)

        service.delete_article(gone.id)
        report = service.find_duplicates()

        ids = [m for g in report.groups for m in g.member_ids]
        assert gone.id not in ids
        assert keep.id in ids
        assert report.groups[0].size == 2

    def test_merged_group_disappears(self, seed, service):
        """After merging a pair no group remains."""
        author = seed.author(email="a@x.com")
        survivor = seed.article("Harbor", author=author)
        discard = seed.article("Harbor", author=author)
        assert len(service.find_duplicates().groups) == 1

        service.merge_group(survivor.id, [discard.id])

        assert service.find_duplicates().groups == []


class TestStoreFailures:
    """Test that read failures reach the caller unchanged."""

    def test_store_error_propagates_unchanged(self, service, mocker):
        """A failing scan is not reported as an aborted transaction."""
        from sqlalchemy.exc import OperationalError

        mocker.patch(
            "articles.repository.ArticleRepository.query_all_articles_with_author",
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        )

        with pytest.raises(OperationalError):
            service.find_duplicates()

    def test_attachment_scan_error_propagates_unchanged(self, service, mocker):
        """Duplicate file detection also passes store errors through."""
        from sqlalchemy.exc import OperationalError

        mocker.patch(
            "articles.repository.ArticleRepository.list_all_attachments",
            side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
        )

        with pytest.raises(OperationalError):
            service.find_duplicate_attachments()
