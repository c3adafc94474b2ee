import os
from dotenv import load_dotenv
from typing import Optional

# Configuration defaults
DEFAULT_PREFIX = "!survey"
DEFAULT_REACTION = "📝"
DEFAULT_TIMEOUT_MS = "600000"
DEFAULT_DATA_DIR = "data"
DEFAULT_SESSION_TTL = "86400"  # 24 hours

load_dotenv()


class Config:
    """Configuration class for the survey bot application."""

    # Discord configuration
    DISCORD_TOKEN: str = os.getenv("DISCORD_TOKEN", "")

    # Command and trigger configuration
    BOT_PREFIX: str = os.getenv("BOT_PREFIX", DEFAULT_PREFIX)
    SURVEY_REACTION: str = os.getenv("SURVEY_REACTION", DEFAULT_REACTION)

    # Survey configuration
    SURVEY_TIMEOUT_MS: str = os.getenv("SURVEY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)
    DATA_DIR: str = os.getenv("DATA_DIR", DEFAULT_DATA_DIR)

    # Session configuration, seconds
    SESSION_TTL: str = os.getenv("SESSION_TTL", DEFAULT_SESSION_TTL)

    # Logging configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: Optional[str] = os.getenv("LOG_DIR")

    # Attributes re-read by reload()
    RELOADABLE = (
        "DISCORD_TOKEN", "BOT_PREFIX", "SURVEY_REACTION", "SURVEY_TIMEOUT_MS",
        "DATA_DIR", "SESSION_TTL", "LOG_LEVEL", "LOG_DIR",
    )

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values."""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        _positive_int("SURVEY_TIMEOUT_MS", cls.SURVEY_TIMEOUT_MS)
        _positive_int("SESSION_TTL", cls.SESSION_TTL)

    @classmethod
    def reload(cls) -> None:
        """Re-read the environment (and .env) into the class attributes.

        The new values are validated first. On ``ValueError`` the previous
        values are restored and the error is re-raised.
        """
        previous = {name: getattr(cls, name) for name in cls.RELOADABLE}
        load_dotenv(override=True)
        cls.DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")
        cls.BOT_PREFIX = os.getenv("BOT_PREFIX", DEFAULT_PREFIX)
        cls.SURVEY_REACTION = os.getenv("SURVEY_REACTION", DEFAULT_REACTION)
        cls.SURVEY_TIMEOUT_MS = os.getenv("SURVEY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS)
        cls.DATA_DIR = os.getenv("DATA_DIR", DEFAULT_DATA_DIR)
        cls.SESSION_TTL = os.getenv("SESSION_TTL", DEFAULT_SESSION_TTL)
        cls.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        cls.LOG_DIR = os.getenv("LOG_DIR")
        try:
            cls.validate()
        except ValueError:
            for name, value in previous.items():
                setattr(cls, name, value)
            raise

    @classmethod
    def command_prefix(cls) -> str:
        """Prefix every admin command starts with, trailing space included."""
        return cls.BOT_PREFIX + " "

    @classmethod
    def timeout_seconds(cls) -> float:
        return int(cls.SURVEY_TIMEOUT_MS) / 1000

    @classmethod
    def session_ttl(cls) -> int:
        return int(cls.SESSION_TTL)


def _positive_int(name: str, value) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")
    if number <= 0:
        raise ValueError(f"{name} must be positive")
    return number
