"""Configuration management for pagepilot."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from pagepilot.utils.exceptions import ConfigurationError


@dataclass
class EngineConfig:
    """Engine configuration. All durations are in milliseconds."""

    host: str = "localhost"
    port: int = 9222
    chrome_path: str | None = None
    settle_delay: int = 100  # pause before re-measuring an element
    tab_switch_delay: int = 100
    poll_interval: int = 200
    selector_timeout: int = 30000
    url_timeout: int = 30000
    load_timeout: int = 30000
    new_tab_timeout: int = 10000
    command_timeout: int = 30000
    launch_timeout: int = 15000


class ConfigLoader:
    """Loads configuration from environment variables."""

    @staticmethod
    def load() -> EngineConfig:
        """Load configuration from environment.

        Raises:
            ConfigurationError: If a numeric setting is not a valid integer.
        """
        load_dotenv()  # Load .env file if present

        return EngineConfig(
            host=os.environ.get("PAGEPILOT_HOST", "localhost"),
            port=ConfigLoader._get_int_env("PAGEPILOT_PORT", 9222),
            chrome_path=os.environ.get("PAGEPILOT_CHROME") or None,
            settle_delay=ConfigLoader._get_int_env("PAGEPILOT_SETTLE_DELAY", 100),
            tab_switch_delay=ConfigLoader._get_int_env(
                "PAGEPILOT_TAB_SWITCH_DELAY", 100
            ),
            poll_interval=ConfigLoader._get_int_env("PAGEPILOT_POLL_INTERVAL", 200),
            selector_timeout=ConfigLoader._get_int_env(
                "PAGEPILOT_SELECTOR_TIMEOUT", 30000
            ),
            url_timeout=ConfigLoader._get_int_env("PAGEPILOT_URL_TIMEOUT", 30000),
            load_timeout=ConfigLoader._get_int_env("PAGEPILOT_LOAD_TIMEOUT", 30000),
            new_tab_timeout=ConfigLoader._get_int_env(
                "PAGEPILOT_NEW_TAB_TIMEOUT", 10000
            ),
            command_timeout=ConfigLoader._get_int_env(
                "PAGEPILOT_COMMAND_TIMEOUT", 30000
            ),
            launch_timeout=ConfigLoader._get_int_env(
                "PAGEPILOT_LAUNCH_TIMEOUT", 15000
            ),
        )

    @staticmethod
    def _get_int_env(name: str, default: int) -> int:
        """Get a non-negative integer environment variable.

        Args:
            name: The environment variable name.
            default: The default value if not set.

        Returns:
            The integer value.

        Raises:
            ConfigurationError: If the value is not a valid non-negative integer.
        """
        value = os.environ.get(name)
        if value is None:
            return default
        try:
            parsed = int(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for {name}: '{value}' is not a valid integer"
            ) from e
        if parsed < 0:
            raise ConfigurationError(
                f"Invalid value for {name}: '{value}' must not be negative"
            )
        return parsed
