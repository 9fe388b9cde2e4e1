"""
Unit tests for configuration loading and validation.

Tests defaults, overrides and strict rejection of bad settings.
"""

import os
import tempfile

import pytest
import yaml

from ai_chat_router.config.loader import (
    CONFIG_ENV_VAR,
    DB_ENV_VAR,
    DEFAULT_SYSTEM_PREAMBLE,
    ConversationConfig,
    RoutingConfig,
    Settings,
    UpstreamConfig,
    load_config_file,
    load_settings,
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, data, name="config.yaml"):
        path = os.path.join(self.temp_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            if isinstance(data, str):
                f.write(data)
            else:
                yaml.safe_dump(data, f)
        return path

    def test_defaults(self):
        """Defaults match the documented values."""
        settings = Settings()
        assert settings.database_path == "ai_chat_router.db"
        assert settings.conversation.history_limit == 50
        assert settings.conversation.title_length == 50
        assert settings.conversation.system_preamble == DEFAULT_SYSTEM_PREAMBLE
        assert settings.routing.long_content_threshold == 5000
        assert settings.routing.default_estimated_tokens == 100
        assert settings.routing.base_latency_ms == 1000
        assert settings.routing.latency_multipliers == {"gpt-5": 1.5, "o3": 3.0}
        assert settings.upstream.max_output_tokens == 4000
        assert settings.upstream.temperature == 0.7
        assert settings.auth.tokens == {}

    def test_full_config(self):
        """Every section is parsed into its dataclass."""
        path = self._write({
            "database": {"path": "/tmp/chat.db"},
            "upstream": {"base_url": "http://localhost:1234/v1", "timeout_seconds": 30,
                         "max_output_tokens": 2000, "temperature": 0.2},
            "conversation": {"history_limit": 20, "title_length": 40, "system_preamble": "Be brief."},
            "routing": {"long_content_threshold": 8000, "latency_multipliers": {"o3": 4}},
            "auth": {"tokens": {"secret-token": "user-1"}},
        })

        settings = load_config_file(path)

        assert settings.database_path == "/tmp/chat.db"
        assert settings.upstream == UpstreamConfig(
            base_url="http://localhost:1234/v1", timeout_seconds=30,
            max_output_tokens=2000, temperature=0.2
        )
        assert settings.conversation == ConversationConfig(
            history_limit=20, title_length=40, system_preamble="Be brief."
        )
        assert settings.routing.long_content_threshold == 8000
        assert settings.routing.latency_multipliers == {"o3": 4.0}
        assert settings.routing.base_latency_ms == 1000
        assert settings.auth.tokens == {"secret-token": "user-1"}

    def test_partial_config_keeps_defaults(self):
        path = self._write({"conversation": {"history_limit": 10}})
        settings = load_config_file(path)
        assert settings.conversation.history_limit == 10
        assert settings.conversation.title_length == 50
        assert settings.upstream == UpstreamConfig()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config_file(os.path.join(self.temp_dir, "nope.yaml"))

    def test_empty_file(self):
        path = self._write("")
        with pytest.raises(ValueError, match="empty"):
            load_config_file(path)

    def test_invalid_yaml(self):
        path = self._write("database: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_config_file(path)

    def test_unknown_top_level_key(self):
        path = self._write({"databse": {"path": "x.db"}})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config_file(path)

    def test_unknown_section_key(self):
        path = self._write({"routing": {"long_content": 10}})
        with pytest.raises(ValueError, match="Unknown keys in routing"):
            load_config_file(path)

    def test_section_must_be_dict(self):
        path = self._write({"upstream": ["a", "b"]})
        with pytest.raises(ValueError, match="'upstream' must be a dictionary"):
            load_config_file(path)

    def test_wrong_value_type(self):
        path = self._write({"conversation": {"history_limit": "fifty"}})
        with pytest.raises(ValueError, match="conversation.history_limit"):
            load_config_file(path)

    def test_bool_is_not_a_number(self):
        path = self._write({"upstream": {"max_output_tokens": True}})
        with pytest.raises(ValueError, match="upstream.max_output_tokens"):
            load_config_file(path)

    def test_non_positive_values_rejected(self):
        path = self._write({"conversation": {"history_limit": 0}})
        with pytest.raises(ValueError, match="history_limit must be > 0"):
            load_config_file(path)

    def test_temperature_range(self):
        with pytest.raises(ValueError, match="temperature"):
            UpstreamConfig(temperature=3.5)

    def test_negative_latency_multiplier(self):
        with pytest.raises(ValueError, match="latency multiplier"):
            RoutingConfig(latency_multipliers={"gpt-5": -1.0})

    def test_auth_token_user_must_be_string(self):
        path = self._write({"auth": {"tokens": {"abc": 123}}})
        with pytest.raises(ValueError, match="User id for token"):
            load_config_file(path)


class TestLoadSettings:
    """Test settings resolution from the environment."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults_without_config(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.delenv(DB_ENV_VAR, raising=False)
        assert load_settings() == Settings()

    def test_config_from_env(self, monkeypatch):
        path = os.path.join(self.temp_dir, "env.yaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"conversation": {"title_length": 30}}, f)
        monkeypatch.setenv(CONFIG_ENV_VAR, path)
        monkeypatch.delenv(DB_ENV_VAR, raising=False)

        assert load_settings().conversation.title_length == 30

    def test_db_env_override(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        monkeypatch.setenv(DB_ENV_VAR, "/tmp/override.db")

        settings = load_settings()

        assert settings.database_path == "/tmp/override.db"
        assert settings.conversation == ConversationConfig()
