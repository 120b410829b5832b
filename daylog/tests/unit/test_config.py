"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import pytest

from daylog.utils.config import Config, get_config, reset_config


class TestConfig:
    """Test Config defaults, files and environment overrides."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for tests."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in (
            "DAYLOG_DATA_DIR",
            "DAYLOG_PORT",
            "DAYLOG_RETAIN_DAYS",
            "DAYLOG_AUTH_USER",
            "DAYLOG_AUTH_PASS",
            "LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
        reset_config()
        yield
        reset_config()

    def test_defaults(self):
        """Test the built-in defaults."""
        config = Config()

        assert config.get("server.port") == 9999
        assert config.get("retention.retain_days") == 7
        assert config.get("store.data_dir") == "data"
        assert config.get("store.default_page_size") == 100
        assert config.get("server.auth_user") == ""

    def test_missing_key_returns_default(self):
        """Test dotted lookup of an unknown key."""
        config = Config()

        assert config.get("server.nope", "fallback") == "fallback"
        assert config.get("nope.deeper.still") is None

    def test_yaml_file_deep_merges(self, temp_dir):
        """Test that a YAML file overrides only the keys it names."""
        config_file = temp_dir / "daylog.yaml"
        config_file.write_text("server:\n  port: 8080\nretention:\n  retain_days: 30\n")

        config = Config(str(config_file))

        assert config.get("server.port") == 8080
        assert config.get("server.host") == "0.0.0.0"
        assert config.get("retention.retain_days") == 30
        assert config.get("retention.interval_hours") == 24

    def test_empty_yaml_file(self, temp_dir):
        """Test that an empty file leaves the defaults alone."""
        config_file = temp_dir / "empty.yaml"
        config_file.write_text("")

        config = Config(str(config_file))

        assert config.get("server.port") == 9999

    def test_env_overrides(self, monkeypatch, temp_dir):
        """Test that environment variables win over files."""
        config_file = temp_dir / "daylog.yaml"
        config_file.write_text("server:\n  port: 8080\n")

        monkeypatch.setenv("DAYLOG_PORT", "7000")
        monkeypatch.setenv("DAYLOG_RETAIN_DAYS", "3")
        monkeypatch.setenv("DAYLOG_DATA_DIR", "/tmp/logs")
        monkeypatch.setenv("DAYLOG_AUTH_USER", "admin")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = Config(str(config_file))

        assert config.get("server.port") == 7000
        assert config.get("retention.retain_days") == 3
        assert config.get("store.data_dir") == "/tmp/logs"
        assert config.get("server.auth_user") == "admin"
        assert config.get("logging.level") == "DEBUG"

    def test_set_creates_nested_keys(self):
        """Test dotted assignment."""
        config = Config()

        config.set("extra.section.value", 5)

        assert config.get("extra.section.value") == 5

    def test_to_dict_is_a_copy(self):
        """Test that callers cannot mutate the configuration through to_dict."""
        config = Config()

        snapshot = config.to_dict()
        snapshot["server"]["port"] = 1

        assert config.get("server.port") == 9999

    def test_instances_do_not_share_defaults(self):
        """Test that one instance's changes do not leak into another."""
        first = Config()
        first.set("server.port", 1234)

        assert Config().get("server.port") == 9999

    def test_global_config(self):
        """Test the process-wide instance and reset."""
        first = get_config()

        assert get_config() is first

        reset_config()

        assert get_config() is not first
