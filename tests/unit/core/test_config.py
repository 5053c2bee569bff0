"""
Unit tests for environment configuration (Config) and YAML policy (ConfigManager).
"""

import pytest

from progress_engine.core.config.config import Config, Environment
from progress_engine.core.config.errors import ConfigInitializationError
from progress_engine.core.config.manager import CONFIG_DIR_ENV, ConfigManager, get_config_value


@pytest.fixture
def reload_config(monkeypatch):
    """Environment patcher that restores the variables and reloads Config afterwards."""
    yield monkeypatch
    monkeypatch.undo()
    Config.load()


@pytest.fixture
def fresh_manager():
    ConfigManager.clear_cache()
    yield ConfigManager
    ConfigManager.clear_cache()


# ============================================================================
# Config
# ============================================================================


@pytest.mark.unit
class TestConfig:
    def test_testing_environment(self):
        assert Config.is_testing()
        assert Config.environment() is Environment.TESTING

    def test_safe_int_reads_env(self, monkeypatch):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")

        assert Config._safe_int("RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20) == 5

    @pytest.mark.parametrize("raw", ["abc", "0", "99"])
    def test_safe_int_falls_back_to_default(self, monkeypatch, raw):
        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", raw)

        assert Config._safe_int("RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20) == 3

    @pytest.mark.parametrize("raw, expected", [("yes", True), ("OFF", False), ("maybe", True)])
    def test_safe_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("LOG_COLORS", raw)

        assert Config._safe_bool("LOG_COLORS", True) is expected

    def test_load_applies_environment(self, reload_config):
        # Arrange
        reload_config.setenv("PROVISIONAL_RETRY_HOURS", "24")
        reload_config.setenv("REDIS_KEY_PREFIX", "test:progress")

        # Act
        Config.load()

        # Assert
        assert Config.PROVISIONAL_RETRY_HOURS == 24
        assert Config.REDIS_KEY_PREFIX == "test:progress"

    def test_summary_hides_redis_url(self):
        summary = Config.get_config_summary()

        assert "redis_url" not in summary
        assert summary["redis_url_set"] is True
        assert summary["retry_max_attempts"] == Config.RETRY_MAX_ATTEMPTS


# ============================================================================
# ConfigManager
# ============================================================================


@pytest.mark.unit
class TestConfigManager:
    def test_dot_notation(self, fresh_manager):
        assert fresh_manager.get("cache.ttl.bite") == 120_000
        assert fresh_manager.get("progress.default_daily_bites") == 5

    def test_missing_key_returns_default(self, fresh_manager):
        assert fresh_manager.get("cache.ttl.unknown", 42) == 42
        assert get_config_value("nope.nothing") is None

    def test_overlay_directory_is_deep_merged(self, fresh_manager, monkeypatch, tmp_path):
        # Arrange
        (tmp_path / "override.yaml").write_text("cache:\n  ttl:\n    bite: 5000\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path))

        # Act
        bite_ttl = fresh_manager.get("cache.ttl.bite")
        mission_ttl = fresh_manager.get("cache.ttl.mission")

        # Assert
        assert bite_ttl == 5000
        assert mission_ttl == 120_000

    def test_broken_yaml_raises(self, fresh_manager, monkeypatch, tmp_path):
        (tmp_path / "broken.yaml").write_text("cache: [unclosed\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path))

        with pytest.raises(ConfigInitializationError):
            fresh_manager.get("cache.ttl.bite")

    def test_metrics_track_reads(self, fresh_manager):
        fresh_manager.reset_metrics()

        fresh_manager.get("cache.ttl.bite")
        fresh_manager.get("cache.ttl.unknown")

        metrics = fresh_manager.get_metrics()
        assert metrics["gets"] == 2
        assert metrics["cache_hits"] == 1
        assert metrics["cache_misses"] == 1
