"""Tests for the command line entry point."""

import json

import pytest

from database import Database
from main import build_parser, main


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "log"))
    monkeypatch.setenv("GUARDIAN_API_KEY", "g-key")
    monkeypatch.setenv("OPENAI_API_KEY", "o-key")
    return tmp_path


class TestParser:
    """Tests for build_parser."""

    def test_run_flags(self):
        args = build_parser().parse_args(["run", "--manual", "--count", "5"])

        assert args.command == "run"
        assert args.manual
        assert args.count == 5
        assert not args.continuous

    def test_repeatable_ids(self):
        args = build_parser().parse_args(["delete", "--id", "a/1", "--id", "a/2"])

        assert args.ids == ["a/1", "a/2"]


class TestMain:
    """Tests for main()."""

    def test_status(self, env, capsys):
        assert main(["status"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["config"]["default_fetch_count"] == 450
        assert status["database"]["total_articles"] == 0

    def test_run_rejects_zero_count(self, env, capsys):
        assert main(["run", "--count", "0"]) == 1
        assert "--count must be at least 1" in capsys.readouterr().err

    def test_run_requires_api_keys(self, env, monkeypatch, capsys):
        monkeypatch.delenv("OPENAI_API_KEY")

        assert main(["run"]) == 1
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_store_commands_need_no_api_keys(self, env, monkeypatch, capsys):
        monkeypatch.delenv("GUARDIAN_API_KEY")
        monkeypatch.delenv("OPENAI_API_KEY")

        assert main(["runs"]) == 0
        assert "No runs recorded." in capsys.readouterr().out

    def test_delete_logs_admin_action(self, env, capsys):
        assert main(["delete", "--id", "missing/id"]) == 0

        assert "Deleted 0 of 1 article(s)." in capsys.readouterr().out
        with Database(env / "cli.db") as db:
            [entry] = db.admin_actions()
        assert entry["action"] == "DELETE_ARTICLE"
        assert entry["actor"] == "cli"

    def test_reprocess_unknown_article(self, env, capsys):
        assert main(["reprocess", "--id", "missing/id"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_no_command_prints_help(self, env, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
