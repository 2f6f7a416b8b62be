"""Tests for environment-driven configuration."""

from unittest.mock import patch

import pytest

from pagepilot.utils.config import ConfigLoader, EngineConfig
from pagepilot.utils.exceptions import ConfigurationError

ENV_NAMES = [
    "PAGEPILOT_HOST",
    "PAGEPILOT_PORT",
    "PAGEPILOT_CHROME",
    "PAGEPILOT_SETTLE_DELAY",
    "PAGEPILOT_TAB_SWITCH_DELAY",
    "PAGEPILOT_POLL_INTERVAL",
    "PAGEPILOT_SELECTOR_TIMEOUT",
    "PAGEPILOT_URL_TIMEOUT",
    "PAGEPILOT_LOAD_TIMEOUT",
    "PAGEPILOT_NEW_TAB_TIMEOUT",
    "PAGEPILOT_COMMAND_TIMEOUT",
    "PAGEPILOT_LAUNCH_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test without PAGEPILOT_* variables or a .env file."""
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    with patch("pagepilot.utils.config.load_dotenv"):
        yield


class TestConfigLoader:
    """Tests for ConfigLoader.load."""

    def test_defaults(self) -> None:
        """Without environment variables the dataclass defaults apply."""
        assert ConfigLoader.load() == EngineConfig()

    def test_default_values(self) -> None:
        """Documented defaults."""
        config = ConfigLoader.load()
        assert config.port == 9222
        assert config.settle_delay == 100
        assert config.tab_switch_delay == 100
        assert config.poll_interval == 200
        assert config.selector_timeout == 30000
        assert config.new_tab_timeout == 10000
        assert config.chrome_path is None

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables override defaults."""
        monkeypatch.setenv("PAGEPILOT_HOST", "127.0.0.1")
        monkeypatch.setenv("PAGEPILOT_PORT", "9333")
        monkeypatch.setenv("PAGEPILOT_SETTLE_DELAY", "0")
        monkeypatch.setenv("PAGEPILOT_URL_TIMEOUT", "5000")
        monkeypatch.setenv("PAGEPILOT_CHROME", "/opt/chrome/chrome")
        config = ConfigLoader.load()
        assert config.host == "127.0.0.1"
        assert config.port == 9333
        assert config.settle_delay == 0
        assert config.url_timeout == 5000
        assert config.chrome_path == "/opt/chrome/chrome"

    def test_empty_chrome_path_is_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An empty PAGEPILOT_CHROME means auto-detect."""
        monkeypatch.setenv("PAGEPILOT_CHROME", "")
        assert ConfigLoader.load().chrome_path is None

    def test_invalid_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Non-integer values raise ConfigurationError naming the variable."""
        monkeypatch.setenv("PAGEPILOT_POLL_INTERVAL", "fast")
        with pytest.raises(ConfigurationError, match="PAGEPILOT_POLL_INTERVAL"):
            ConfigLoader.load()

    def test_negative_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Negative durations are rejected."""
        monkeypatch.setenv("PAGEPILOT_SELECTOR_TIMEOUT", "-1")
        with pytest.raises(ConfigurationError, match="must not be negative"):
            ConfigLoader.load()
