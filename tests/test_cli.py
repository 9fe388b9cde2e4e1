"""
Tests for the CLI interface.
"""
import os
import tempfile

import pytest
from typer.testing import CliRunner

from ai_chat_router.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL, _format_cost
from ai_chat_router.config.loader import DB_ENV_VAR
from ai_chat_router.demo.catalog import DEMO_MODELS
from ai_chat_router.storage.repository import ChatRepository

runner = CliRunner()


@pytest.fixture
def db_path(monkeypatch):
    """Point the CLI at a throwaway database."""
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "cli.db")
    monkeypatch.setenv(DB_ENV_VAR, path)
    monkeypatch.delenv("AI_CHAT_ROUTER_CONFIG", raising=False)
    yield path
    import shutil
    shutil.rmtree(temp_dir, ignore_errors=True)


class TestCLI:
    """Test CLI commands."""

    def test_no_command(self, db_path):
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Use --help" in result.output

    def test_init(self, db_path):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized successfully" in result.output
        assert ChatRepository(db_path).list_active_models() == []

    def test_seed_demo(self, db_path):
        result = runner.invoke(app, ["seed-demo"])

        assert result.exit_code == EXIT_CODE_PASS
        assert f"Loaded {len(DEMO_MODELS)} demo models" in result.output
        assert len(ChatRepository(db_path).list_active_models()) == len(DEMO_MODELS)

    def test_models(self, db_path):
        runner.invoke(app, ["seed-demo"])

        result = runner.invoke(app, ["models"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Active Models" in result.output

    def test_models_empty_catalog(self, db_path):
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["models"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "No active models" in result.output

    def test_models_without_schema(self, db_path):
        result = runner.invoke(app, ["models"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Model catalog unavailable" in result.output

    def test_route(self, db_path):
        runner.invoke(app, ["seed-demo"])

        result = runner.invoke(app, ["route", "chat", "--complexity", "high"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Routing Decision" in result.output
        assert "gpt-5-2025-08-07" in result.output
        assert "chat-flagship" in result.output

    def test_route_invalid_complexity(self, db_path):
        runner.invoke(app, ["seed-demo"])

        result = runner.invoke(app, ["route", "chat", "-x", "extreme"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "complexity must be one of" in result.output

    def test_route_empty_catalog(self, db_path):
        runner.invoke(app, ["init"])

        result = runner.invoke(app, ["route", "chat"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "No active AI models available" in result.output

    def test_models_missing_config_file(self, db_path):
        missing = os.path.join(os.path.dirname(db_path), "missing.yaml")

        result = runner.invoke(app, ["models", "--config", missing])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Config file not found" in result.output

    def test_route_invalid_config_file(self, db_path):
        config_path = os.path.join(os.path.dirname(db_path), "bad.yaml")
        with open(config_path, "w", encoding="utf-8") as f:
            f.write("routing:\n  long_content: 10\n")

        result = runner.invoke(app, ["route", "chat", "-c", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown keys in routing" in result.output


class TestFormatCost:
    def test_format(self):
        assert _format_cost(None) == "$0"
        assert _format_cost(0.00000025) == "$0.00000025"
        assert _format_cost(0.0002) == "$0.0002"
