"""Shared fixtures: a config pointed at tmp_path, a real SQLite store, and
factories for articles and summaries."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import Config
from database import Database
from models.article import SourceArticle
from models.summary import FAQ, ArticleSummary, SummaryResult

LONG_BODY = "<p>" + "The glacier retreated again this year, researchers said. " * 20 + "</p>"

SUMMARY_TEXT = (
    "Scientists watching the ice sheet say the melt season started early again.\n\n"
    "Their measurements show the retreat speeding up for the third year running.\n\n"
    "Local communities are already planning for a coastline that keeps moving inland."
)


@pytest.fixture
def config(tmp_path):
    return Config(
        guardian_api_key="guardian-test-key",
        openai_api_key="openai-test-key",
        db_path=tmp_path / "newsbrief.db",
        log_dir=tmp_path / "log",
        cron_secret="cron-secret",
        admin_token="admin-token",
    )


@pytest.fixture
def db(config):
    database = Database(config.db_path)
    yield database
    database.close()


@pytest.fixture
def make_article():
    def _make(
        article_id: str = "environment/2025/mar/02/glacier-retreat",
        section: str = "environment",
        body: str = LONG_BODY,
    ) -> SourceArticle:
        return SourceArticle(
            id=article_id,
            type="article",
            section=section,
            published_at=datetime(2025, 3, 2, 9, 30, tzinfo=timezone.utc),
            url=f"https://www.theguardian.com/{article_id}",
            thumbnail="https://media.guim.co.uk/thumb.jpg",
            body_text=body,
        )

    return _make


@pytest.fixture
def make_summary():
    def _make(heading: str = "Climate Crisis Deepens", **overrides) -> ArticleSummary:
        fields = {
            "heading": heading,
            "category": "Climate Science",
            "summary": SUMMARY_TEXT,
            "tldr": ["Melt started early", "Retreat is accelerating", "Coasts are adapting"],
            "faqs": [FAQ(question=f"Question {i}?", answer=f"Answer {i}.") for i in range(1, 6)],
        }
        fields.update(overrides)
        return ArticleSummary(**fields)

    return _make


@pytest.fixture
def make_result(make_summary):
    def _make(heading: str = "Climate Crisis Deepens", tokens: int = 1000) -> SummaryResult:
        return SummaryResult(
            summary=make_summary(heading),
            tokens_used=tokens,
            estimated_cost_usd=0.007,
        )

    return _make


@pytest.fixture
def summarizer(make_result):
    """Summarizer double returning one fixed heading for every article."""
    mock = MagicMock()
    mock.summarize = AsyncMock(return_value=make_result())
    return mock


@pytest.fixture
def fetcher():
    mock = MagicMock()
    mock.fetch_articles = AsyncMock(return_value=[])
    mock.fetch_single = AsyncMock(return_value=None)
    return mock
