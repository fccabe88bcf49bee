from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Environment variable names
ENV_BOT_TOKEN = "TELEGRAM_BOT_TOKEN"
ENV_BOT_USERNAME = "TELEGRAM_BOT_USERNAME"
ENV_PYLON_API_TOKEN = "PYLON_API_TOKEN"
ENV_SETTINGS_PATH = "SETTINGS_PATH"
ENV_LOG_DIR = "LOG_DIR"

DEFAULT_SETTINGS_PATH = Path("settings.toml")
BOT_USERNAME = "SuccinctPylonBot"


class ConfigError(RuntimeError):
    pass


def load_env_file(path: str | Path | None = None) -> bool:
    """Load ``.env`` into the process environment.

    Variables that are already set keep their value. Returns whether a file
    was found.
    """
    if path is None:
        path = Path.cwd() / ".env"
    return load_dotenv(path, override=False)


def get_bot_token() -> str:
    """Get the Telegram bot token from the environment."""
    token = os.environ.get(ENV_BOT_TOKEN)
    if token is None or not token.strip():
        raise ConfigError(
            f"Missing bot token. Set the {ENV_BOT_TOKEN} environment variable."
        )
    return token.strip()


def get_bot_username() -> str:
    value = os.environ.get(ENV_BOT_USERNAME)
    if value and value.strip():
        return value.strip().lstrip("@")
    return BOT_USERNAME


def resolve_settings_path(value: str | Path | None) -> Path:
    if value is None or not str(value).strip():
        return DEFAULT_SETTINGS_PATH
    return Path(value).expanduser()
