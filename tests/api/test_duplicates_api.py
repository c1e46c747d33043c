# SPDX-License-Identifier: MIT
"""Tests for the duplicates endpoints."""

import ast
import inspect
import uuid

import pytest


@pytest.fixture
def pair(seed):
    """Two copies of one submission, the second with a photo."""
    author = seed.author(email="a@x.com")
    first = seed.article("Campus News", author=author, tags=["Photo"], source_ids=["form-1"])
    second = seed.article("campus news ", author=author, source_ids=["form-2"])
    photo = seed.attachment(second, "photo.jpg")
    return first, second, photo


class TestAdminAuth:
    """Test admin key enforcement on destructive endpoints."""

    def test_merge_requires_header(self, test_client, pair):
        """Merge without Authorization is rejected."""
        first, second, _ = pair
        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": [str(second.id)]},
        )
        assert response.status_code == 401

    def test_delete_rejects_wrong_key(self, test_client, pair):
        """A wrong admin key is forbidden."""
        first, _, _ = pair
        response = test_client.delete(
            f"/api/duplicates/articles/{first.id}",
            headers={"Authorization": "Bearer wrong-key"},
        )
        assert response.status_code == 403

    def test_rejects_non_bearer_scheme(self, test_client, pair):
        """Only the Bearer scheme is accepted."""
        first, _, _ = pair
        response = test_client.delete(
            f"/api/duplicates/articles/{first.id}",
            headers={"Authorization": "Basic abc"},
        )
        assert response.status_code == 401

    def test_unconfigured_key_disables_endpoints(self, test_client, admin_headers, pair, monkeypatch):
        """Without a configured key destructive endpoints are unavailable."""
        from articles.config import get_settings

        monkeypatch.setattr(get_settings().api, "admin_key", "")
        first, _, _ = pair
        response = test_client.delete(f"/api/duplicates/articles/{first.id}", headers=admin_headers)
        assert response.status_code == 503

    def test_admin_key_uses_timing_safe_comparison(self):
        """Admin key validation should use secrets.compare_digest."""
        from api.services import admin_auth

        tree = ast.parse(inspect.getsource(admin_auth))
        calls = [
            node.func.attr
            for node in ast.walk(tree)
            if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute)
        ]
        assert "compare_digest" in calls


class TestListDuplicates:
    """Test the duplicate group listing."""

    def test_lists_groups(self, test_client, pair):
        """Title variants from one author come back as one group."""
        first, second, _ = pair

        response = test_client.get("/api/duplicates/")

        assert response.status_code == 200
        data = response.json()
        assert data["total_articles"] == 2
        assert data["total_duplicates"] == 1
        [group] = data["duplicate_groups"]
        assert group["normalized_title"] == "campus news"
        assert group["anonymous"] is False
        assert [a["id"] for a in group["articles"]] == [str(first.id), str(second.id)]
        assert group["articles"][1]["attachment_count"] == 1

    def test_listing_needs_no_auth(self, test_client):
        """Reading groups is open."""
        assert test_client.get("/api/duplicates/").status_code == 200

    def test_anonymous_group_flagged(self, test_client, seed):
        """Groups without a contact key are flagged for the operator."""
        seed.article("Letters")
        seed.article("letters")

        data = test_client.get("/api/duplicates/").json()

        assert data["anonymous_groups"] == 1
        assert data["duplicate_groups"][0]["anonymous"] is True


class TestMergeEndpoint:
    """Test merging through the API."""

    def test_merge(self, test_client, admin_headers, pair, fresh_repo):
        """A merge moves attachments and removes the discard."""
        first, second, photo = pair

        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": [str(second.id)]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["merged_count"] == 1
        assert data["attachments_moved"] == 1
        assert data["source_ids_added"] == ["form-2"]
        assert fresh_repo.get_article(second.id) is None
        assert [a.id for a in fresh_repo.list_attachments(first.id)] == [photo.id]

    def test_merge_unknown_article(self, test_client, admin_headers, pair):
        """Unknown ids produce 404 listing the missing ids."""
        first, _, _ = pair
        missing = str(uuid.uuid4())

        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": [missing]},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"]["ids"] == [missing]

    def test_merge_survivor_in_discards(self, test_client, admin_headers, pair):
        """A survivor listed for discard is a bad request."""
        first, _, _ = pair

        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": [str(first.id)]},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_merge_empty_discards(self, test_client, admin_headers, pair):
        """An empty discard list is a bad request."""
        first, _, _ = pair

        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": []},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_merge_malformed_id(self, test_client, admin_headers):
        """Ids that are not UUIDs fail body validation."""
        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": "abc", "discard_ids": ["def"]},
            headers=admin_headers,
        )

        assert response.status_code == 422

    def test_merge_store_failure(self, test_client, admin_headers, pair, mocker):
        """A store failure reports a conflict with nothing applied."""
        from sqlalchemy.exc import OperationalError

        first, second, _ = pair
        mocker.patch(
            "articles.repository.ArticleRepository.reassign_attachments",
            side_effect=OperationalError("UPDATE", {}, Exception("locked")),
        )

        response = test_client.post(
            "/api/duplicates/merge",
            json={"survivor_id": str(first.id), "discard_ids": [str(second.id)]},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert test_client.get("/api/stats").json()["total_articles"] == 2


class TestDeleteEndpoints:
    """Test article and attachment deletion through the API."""

    def test_delete_article(self, test_client, admin_headers, pair, fresh_repo):
        """Deleting an article removes it and its attachments."""
        _, second, photo = pair

        response = test_client.delete(f"/api/duplicates/articles/{second.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["attachments_removed"] == 1
        assert fresh_repo.get_article(second.id) is None
        assert fresh_repo.get_attachments([photo.id]) == {}

    def test_delete_twice(self, test_client, admin_headers, pair):
        """The second delete of the same article is 404."""
        first, _, _ = pair
        test_client.delete(f"/api/duplicates/articles/{first.id}", headers=admin_headers)

        response = test_client.delete(f"/api/duplicates/articles/{first.id}", headers=admin_headers)

        assert response.status_code == 404

    def test_list_duplicate_files(self, test_client, seed):
        """Same-named uploads are listed as an exact match."""
        seed.attachment(seed.article("Harbor"), "story.docx")
        seed.attachment(seed.article("News"), "Story.docx")

        data = test_client.get("/api/duplicates/files").json()

        assert data["total_files"] == 2
        assert data["duplicate_groups"][0]["match_type"] == "exact"

    def test_delete_files(self, test_client, admin_headers, pair, storage):
        """Attachments are removed with their files."""
        _, _, photo = pair

        response = test_client.post(
            "/api/duplicates/files/delete",
            json={"attachment_ids": [str(photo.id)]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["deleted_count"] == 1
        assert not storage.exists(photo.file_path)

    def test_delete_files_requires_admin(self, test_client, pair):
        """Attachment deletion is guarded."""
        _, _, photo = pair
        response = test_client.post("/api/duplicates/files/delete", json={"attachment_ids": [str(photo.id)]})
        assert response.status_code == 401
