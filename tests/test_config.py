"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from config import DEFAULT_SECTIONS, Config


class TestLoad:
    """Tests for Config.load."""

    def test_defaults(self, monkeypatch):
        for key in ("DEFAULT_FETCH_COUNT", "MANUAL_FETCH_COUNT", "SUMMARY_MODEL", "DB_PATH", "LOG_FORMAT"):
            monkeypatch.delenv(key, raising=False)

        config = Config.load()

        assert config.default_fetch_count == 450
        assert config.manual_fetch_count == 10
        assert config.summary_model == "gpt-4o"
        assert config.db_path == Path("newsbrief.db")
        assert config.sections == DEFAULT_SECTIONS
        assert config.log_format == "text"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GUARDIAN_API_KEY", "g-key")
        monkeypatch.setenv("DEFAULT_FETCH_COUNT", "100")
        monkeypatch.setenv("SUMMARY_TEMPERATURE", "0.2")
        monkeypatch.setenv("ENABLE_LOGFIRE", "yes")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = Config.load()

        assert config.guardian_api_key == "g-key"
        assert config.default_fetch_count == 100
        assert config.summary_temperature == 0.2
        assert config.enable_logfire is True
        assert config.log_level == "DEBUG"

    def test_invalid_integer_raises(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_FETCH_COUNT", "lots")

        with pytest.raises(ValueError, match="DEFAULT_FETCH_COUNT"):
            Config.load()

    def test_sections_are_not_shared(self):
        first, second = Config(), Config()
        first.sections.pop("opinion")

        assert "opinion" in second.sections


class TestValidate:
    """Tests for Config.validate."""

    def test_valid(self, config):
        assert config.validate() is None

    @pytest.mark.parametrize("field,value,message", [
        ("guardian_api_key", "", "GUARDIAN_API_KEY"),
        ("openai_api_key", "", "OPENAI_API_KEY"),
        ("sections", {}, "No content sections"),
        ("manual_fetch_count", 0, "Fetch counts"),
        ("slug_max_suffix", 0, "SLUG_MAX_SUFFIX"),
        ("log_level", "LOUD", "LOG_LEVEL"),
        ("log_format", "xml", "LOG_FORMAT"),
    ])
    def test_invalid(self, config, field, value, message):
        setattr(config, field, value)

        assert message in config.validate()
