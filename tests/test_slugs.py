"""Tests for the slugs module."""

import pytest

from errors import SlugExhaustedError
from slugs import FALLBACK_SLUG, SlugAssigner, generate_slug
from text import normalize


class TestGenerateSlug:
    """Tests for generate_slug."""

    def test_basic_heading(self):
        assert generate_slug("Climate Crisis Deepens") == "climate-crisis-deepens"

    def test_strips_punctuation(self):
        assert generate_slug("AI: What's Next?!") == "ai-whats-next"

    def test_collapses_hyphens_and_spaces(self):
        assert generate_slug("  Mars -- the   Red  Planet  ") == "mars-the-red-planet"

    def test_drops_non_ascii(self):
        assert generate_slug("Café culture über alles") == "caf-culture-ber-alles"

    def test_truncates_without_trailing_hyphen(self):
        heading = "word " * 20
        slug = generate_slug(heading)

        assert len(slug) <= 60
        assert not slug.endswith("-")

    def test_custom_max_length(self):
        assert generate_slug("Breaking News Today", max_length=8) == "breaking"

    def test_no_alphanumerics_gives_empty(self):
        assert generate_slug("!!! ???") == ""


class TestSlugAssigner:
    """Tests for SlugAssigner.assign against a real store."""

    def _complete(self, db, make_article, make_result, article_id, heading, slug):
        article = make_article(article_id)
        normalized = normalize(article.body_text)
        db.save_article(article, normalized)
        db.mark_processing(article_id)
        db.complete_summary(article_id, make_result(heading), slug, 1, 1, 1, 1)

    def test_free_base_slug(self, db):
        assigner = SlugAssigner(db)
        assert assigner.assign("Climate Crisis Deepens") == "climate-crisis-deepens"

    def test_taken_base_gets_suffix(self, db, make_article, make_result):
        self._complete(db, make_article, make_result, "a/1", "Breaking News", "breaking-news")
        assigner = SlugAssigner(db)

        assert assigner.assign("Breaking News") == "breaking-news-1"

    def test_suffixes_increment(self, db, make_article, make_result):
        self._complete(db, make_article, make_result, "a/1", "Breaking News", "breaking-news")
        self._complete(db, make_article, make_result, "a/2", "Breaking News", "breaking-news-1")
        assigner = SlugAssigner(db)

        assert assigner.assign("Breaking News") == "breaking-news-2"

    def test_own_slug_counts_as_free(self, db, make_article, make_result):
        self._complete(db, make_article, make_result, "a/1", "Breaking News", "breaking-news")
        assigner = SlugAssigner(db)

        assert assigner.assign("Breaking News", exclude_id="a/1") == "breaking-news"

    def test_empty_base_uses_fallback(self, db):
        assigner = SlugAssigner(db)
        assert assigner.assign("¿¡!?") == FALLBACK_SLUG

    def test_exhaustion_raises(self, db, make_article, make_result):
        self._complete(db, make_article, make_result, "a/1", "Breaking News", "breaking-news")
        self._complete(db, make_article, make_result, "a/2", "Breaking News", "breaking-news-1")
        assigner = SlugAssigner(db, max_suffix=1)

        with pytest.raises(SlugExhaustedError):
            assigner.assign("Breaking News")
