"""
Tests for user configuration loading and editing.
"""

import pytest
from datetime import datetime

from vibesnap.utils.config import ConfigLoader, VibeConfig, default_config_path, load_config
from vibesnap.utils.errors import ConfigurationError


@pytest.fixture
def loader(isolated_config) -> ConfigLoader:
    return ConfigLoader()


class TestVibeConfig:

    def test_defaults(self):
        config = VibeConfig()

        assert config.user == "anonymous"
        assert config.default_track == "main"
        assert config.watch_interval_minutes == 5
        assert config.show_progress is False
        assert config.extra == {}

    def test_unknown_keys_go_to_extra(self):
        config = VibeConfig(user="ana", theme="dark", retries=3)

        assert config.extra == {"theme": "dark", "retries": 3}
        assert config.to_toml_dict()["theme"] == "dark"
        assert "extra" not in config.to_toml_dict()

    def test_format_auto_note(self):
        config = VibeConfig(user="ana")

        note = config.format_auto_note(datetime(2024, 1, 2, 3, 4, 5))

        assert note == "Auto-snap by ana at 2024-01-02 03:04:05"

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            VibeConfig(watch_interval_minutes=0)

    def test_progress_flag(self):
        assert VibeConfig().should_show_progress(True)
        assert VibeConfig(show_progress=True).should_show_progress(False)
        assert not VibeConfig().should_show_progress(False)


class TestConfigLoader:

    def test_env_var_overrides_path(self, isolated_config):
        assert default_config_path() == isolated_config

    def test_missing_file_gives_defaults(self, loader):
        assert not loader.path.exists()
        assert load_config() == VibeConfig()

    def test_set_and_get_known_key(self, loader):
        loader.set("watch_interval_minutes", "10")
        loader.set("show_progress", "true")

        assert loader.get("watch_interval_minutes") == 10
        assert loader.get("show_progress") is True
        assert loader.path.exists()

    def test_set_unknown_key_coerces(self, loader):
        loader.set("retries", "3")
        loader.set("ratio", "0.5")
        loader.set("colour", "off")
        loader.set("theme", "dark")

        config = loader.load()
        assert config.extra == {"retries": 3, "ratio": 0.5, "colour": False, "theme": "dark"}

    def test_invalid_value_is_rejected(self, loader):
        with pytest.raises(ConfigurationError):
            loader.set("watch_interval_minutes", "soon")
        assert not loader.path.exists()

    def test_unknown_key_get(self, loader):
        with pytest.raises(ConfigurationError):
            loader.get("nope")

    def test_invalid_file(self, loader):
        loader.path.parent.mkdir(parents=True)
        loader.path.write_text("user = [unterminated")

        with pytest.raises(ConfigurationError):
            loader.load()

    def test_schema_violation_in_file(self, loader):
        loader.path.parent.mkdir(parents=True)
        loader.path.write_text("watch_interval_minutes = -1\n")

        with pytest.raises(ConfigurationError, match="watch_interval_minutes"):
            loader.load()

    def test_reset(self, loader):
        loader.set("user", "ana")

        assert loader.reset() == VibeConfig()
        assert loader.get("user") == "anonymous"
