"""Tests for the HTTP trigger endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from errors import LedgerError
from models.job import RunResult, RunType
from pipeline import Pipeline
from server import create_app

CRON = {"Authorization": "Bearer cron-secret"}
ADMIN = {"Authorization": "Bearer admin-token"}


@pytest.fixture
def pipeline():
    mock = MagicMock()
    mock.run_once = AsyncMock(
        return_value=RunResult(success=True, articles_found=3, articles_processed=2, articles_failed=1,
                               errors=["Article a/1: Summarization API error: 500"])
    )
    mock.delete_articles = MagicMock(return_value=2)
    return mock


@pytest.fixture
def client(config, pipeline):
    return TestClient(create_app(config, pipeline))


class TestAuthorization:
    """Tests for the Bearer token checks."""

    @pytest.mark.parametrize("path,headers", [
        ("/api/cron/fetch-articles", {}),
        ("/api/cron/fetch-articles", {"Authorization": "Bearer wrong"}),
        ("/api/cron/fetch-articles", ADMIN),
        ("/api/admin/manual-fetch", CRON),
        ("/api/admin/manual-fetch", {"Authorization": "admin-token"}),
    ])
    def test_rejects_bad_token(self, client, pipeline, path, headers):
        response = client.post(path, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        pipeline.run_once.assert_not_awaited()

    def test_unset_secret_rejects_everything(self, config, pipeline):
        config.cron_secret = ""
        client = TestClient(create_app(config, pipeline))

        response = client.post("/api/cron/fetch-articles", headers={"Authorization": "Bearer "})

        assert response.status_code == 401

    def test_get_not_allowed(self, client):
        response = client.get("/api/cron/fetch-articles", headers=CRON)

        assert response.status_code == 405


class TestCronFetch:
    """Tests for POST /api/cron/fetch-articles."""

    def test_success_shape(self, client, pipeline):
        response = client.post("/api/cron/fetch-articles", headers=CRON)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Articles processed successfully",
            "data": {
                "articlesFound": 3,
                "articlesProcessed": 2,
                "articlesFailed": 1,
                "errors": ["Article a/1: Summarization API error: 500"],
            },
        }
        pipeline.run_once.assert_awaited_once_with(count=450, run_type=RunType.SCHEDULED, requested_by="cron")

    def test_explicit_manual_count(self, client, pipeline):
        response = client.post("/api/cron/fetch-articles", headers=CRON, json={"count": 25, "isManual": True})

        assert response.status_code == 200
        pipeline.run_once.assert_awaited_once_with(count=25, run_type=RunType.MANUAL, requested_by="cron")
        pipeline.record_manual_fetch.assert_not_called()

    @pytest.mark.parametrize("body", [{"count": 0}, {"count": -3}, {"count": "many"}])
    def test_invalid_count_rejected(self, client, pipeline, body):
        response = client.post("/api/cron/fetch-articles", headers=CRON, json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}
        pipeline.run_once.assert_not_awaited()

    def test_failed_run_returns_500(self, client, pipeline):
        pipeline.run_once.return_value = RunResult(success=False, errors=["Fetch failed: timeout"])

        response = client.post("/api/cron/fetch-articles", headers=CRON)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Processing completed with errors"
        assert body["data"]["errors"] == ["Fetch failed: timeout"]

    def test_raising_run_returns_500(self, client, pipeline):
        pipeline.run_once.side_effect = LedgerError("Run 7 is not open")

        response = client.post("/api/cron/fetch-articles", headers=CRON)

        assert response.status_code == 500
        assert response.json()["data"]["errors"] == ["Run 7 is not open"]


class TestManualFetch:
    """Tests for POST /api/admin/manual-fetch."""

    def test_defaults_to_manual_count(self, client, pipeline):
        response = client.post("/api/admin/manual-fetch", headers=ADMIN)

        assert response.status_code == 200
        pipeline.run_once.assert_awaited_once_with(count=10, run_type=RunType.MANUAL, requested_by="admin-api")
        pipeline.record_manual_fetch.assert_called_once_with(10, "admin-api")

    def test_admin_log_failure_returns_500(self, client, pipeline):
        pipeline.record_manual_fetch.side_effect = RuntimeError("database is locked")

        response = client.post("/api/admin/manual-fetch", headers=ADMIN)

        assert response.status_code == 500
        assert response.json()["data"]["errors"] == ["database is locked"]
        pipeline.run_once.assert_not_awaited()

    def test_is_manual_even_when_flag_false(self, client, pipeline):
        client.post("/api/admin/manual-fetch", headers=ADMIN, json={"count": 5, "isManual": False})

        pipeline.run_once.assert_awaited_once_with(count=5, run_type=RunType.MANUAL, requested_by="admin-api")


class TestDeleteArticles:
    """Tests for POST /api/admin/articles/delete."""

    def test_deletes(self, client, pipeline):
        response = client.post("/api/admin/articles/delete", headers=ADMIN, json={"articleIds": ["a/1", "a/2"]})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Successfully deleted 2 articles",
            "deletedCount": 2,
        }
        pipeline.delete_articles.assert_called_once_with(["a/1", "a/2"], requested_by="admin-api")

    @pytest.mark.parametrize("body", [{}, {"articleIds": []}, {"articleIds": "a/1"}])
    def test_invalid_body(self, client, pipeline, body):
        response = client.post("/api/admin/articles/delete", headers=ADMIN, json=body)

        assert response.status_code == 400
        pipeline.delete_articles.assert_not_called()

    def test_store_error_returns_500(self, client, pipeline):
        pipeline.delete_articles.side_effect = RuntimeError("database is locked")

        response = client.post("/api/admin/articles/delete", headers=ADMIN, json={"articleIds": ["a/1"]})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to delete articles"}

    def test_requires_admin_token(self, client):
        response = client.post("/api/admin/articles/delete", headers=CRON, json={"articleIds": ["a/1"]})

        assert response.status_code == 401


class TestEndToEnd:
    """A real pipeline behind the API with the external services mocked."""

    def test_manual_fetch_stores_summaries(self, config, db, fetcher, summarizer, make_article):
        fetcher.fetch_articles.return_value = [make_article("env/1"), make_article("env/2")]
        pipeline = Pipeline(config, db=db, fetcher=fetcher, summarizer=summarizer)
        client = TestClient(create_app(config, pipeline))

        first = client.post("/api/admin/manual-fetch", headers=ADMIN, json={"count": 2})
        second = client.post("/api/admin/manual-fetch", headers=ADMIN, json={"count": 2})

        assert first.json()["data"]["articlesProcessed"] == 2
        assert second.json()["data"]["articlesProcessed"] == 0
        assert second.json()["data"]["articlesFound"] == 2
        assert [r["run_type"] for r in db.recent_runs(2)] == ["MANUAL", "MANUAL"]
        assert [(e["action"], e["actor"]) for e in db.admin_actions()] == [
            ("MANUAL_FETCH", "admin-api"),
            ("MANUAL_FETCH", "admin-api"),
        ]

    def test_cron_manual_run_skips_admin_log(self, config, db, fetcher, summarizer):
        pipeline = Pipeline(config, db=db, fetcher=fetcher, summarizer=summarizer)
        client = TestClient(create_app(config, pipeline))

        response = client.post("/api/cron/fetch-articles", headers=CRON, json={"count": 3, "isManual": True})

        assert response.status_code == 200
        assert db.recent_runs(1)[0]["run_type"] == "MANUAL"
        assert db.admin_actions() == []
