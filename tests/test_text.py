"""Tests for the text module."""

from text import clean_body_text, count_characters, count_words, normalize


class TestCleanBodyText:
    """Tests for clean_body_text."""

    def test_strips_tags_entities_and_whitespace(self):
        assert clean_body_text("<p>Hello   world</p>&nbsp;test") == "Hello world test"

    def test_removes_tags_with_attributes(self):
        assert clean_body_text('Read <a href="https://x.test">this report</a> now') == "Read this report now"

    def test_entities_are_decoded_after_tags_are_removed(self):
        # Escaped markup survives as literal text
        assert clean_body_text("&lt;b&gt;bold&lt;/b&gt;") == "<b>bold</b>"

    def test_entities_replaced_in_order(self):
        assert clean_body_text("&amp;quot;") == "&quot;"
        assert clean_body_text("&amp;lt;") == "<"

    def test_quotes_and_ampersands(self):
        assert clean_body_text("&quot;Salt &amp; pepper&quot;") == '"Salt & pepper"'

    def test_collapses_newlines_and_tabs(self):
        assert clean_body_text("  one\n\ntwo\tthree  ") == "one two three"

    def test_empty_and_none(self):
        assert clean_body_text("") == ""
        assert clean_body_text(None) == ""


class TestCounts:
    """Tests for count_words and count_characters."""

    def test_count_words(self):
        assert count_words("Hello world test") == 3

    def test_count_words_empty(self):
        assert count_words("") == 0

    def test_count_characters(self):
        assert count_characters("Hello world test") == 16


class TestNormalize:
    """Tests for normalize."""

    def test_returns_text_and_counts(self):
        result = normalize("<p>Hello   world</p>&nbsp;test")

        assert result.text == "Hello world test"
        assert result.word_count == 3
        assert result.character_count == 16

    def test_is_deterministic(self):
        raw = "<div>Same <b>input</b>&nbsp;twice</div>"
        assert normalize(raw) == normalize(raw)

    def test_none_gives_zero_counts(self):
        result = normalize(None)

        assert result.text == ""
        assert result.word_count == 0
        assert result.character_count == 0
