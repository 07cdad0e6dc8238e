"""Tests for configuration management."""

import pytest

from streamreset.utils.config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove environment overrides and the global config."""
    for name in (
        "STREAMRESET_LOG_LEVEL",
        "STREAMRESET_APPS_ROOT",
        "STREAMRESET_BACKEND",
        "STREAMRESET_ADMIN_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    """Test Config."""

    def test_defaults(self):
        """Test built-in defaults."""
        config = Config()

        assert config.get("backend.name") == "memory"
        assert config.get("apps.root") == "/apps/kafka-streams"
        assert config.get("lifecycle.max_topic_ready_try") == 5
        assert config.get("missing.key", "fallback") == "fallback"

    def test_file_merged_over_defaults(self, tmp_path):
        """Test YAML file overrides only the keys it sets."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "admin:\n"
            "  timeout_seconds: 5\n"
            "topic:\n"
            "  segment.bytes: 1048576\n",
            encoding="utf-8",
        )

        config = Config(str(path))

        assert config.get("admin.timeout_seconds") == 5
        assert config.get("admin.delete_timeout_seconds") == 30.0
        assert config.topic_defaults() == {"segment.bytes": "1048576"}

    def test_empty_file(self, tmp_path):
        """Test empty file keeps defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert Config(str(path)).get("backend.name") == "memory"

    def test_non_mapping_file(self, tmp_path):
        """Test file that is not a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            Config(str(path))

    def test_env_overrides(self, monkeypatch):
        """Test environment variables win over defaults."""
        monkeypatch.setenv("STREAMRESET_APPS_ROOT", "/custom")
        monkeypatch.setenv("STREAMRESET_BACKEND", "other")
        monkeypatch.setenv("STREAMRESET_ADMIN_TIMEOUT", "2.5")

        config = Config()

        assert config.get("apps.root") == "/custom"
        assert config.get("backend.name") == "other"
        assert config.get("admin.timeout_seconds") == 2.5

    def test_set_creates_nested_keys(self):
        """Test dot notation set."""
        config = Config()
        config.set("a.b.c", 1)

        assert config.get("a.b.c") == 1
        assert config.get("a.b") == {"c": 1}

    def test_global_config(self):
        """Test the global instance is shared until reset."""
        first = get_config()

        assert get_config() is first

        reset_config()

        assert get_config() is not first
