from __future__ import annotations

from typing import Any, Dict, Tuple, Type

import discord

from config import Strings
from services.logging_utils import get_logger
from services.survey_repository import SurveyExistsError, UnknownSurveyError
from services.survey_storage import StorageError

# Errors caused by what the user typed; reported back but not logged as failures
USER_ERRORS: Tuple[Type[BaseException], ...] = (SurveyExistsError, UnknownSurveyError)

# Mapping of exception types to user-facing messages
EXCEPTION_MESSAGE_MAP: Dict[Type[BaseException], str] = {
    SurveyExistsError: Strings.SURVEY_ALREADY_EXISTS,
    UnknownSurveyError: Strings.INVALID_SURVEY,
    StorageError: Strings.STORAGE_FAILURE,
}


def map_exception_to_message(exc: BaseException) -> str:
    """Convert a known exception into a user-facing message.

    Unknown exceptions fall back to a safe generic message.
    """

    for etype, message in EXCEPTION_MESSAGE_MAP.items():
        if isinstance(exc, etype):
            return message.format(name=getattr(exc, "name", ""))
    return Strings.GENERAL_ERROR


def log_exception_categorized(exc: BaseException, **context: Any) -> None:
    """Log an exception with a category and sanitized context.

    User input errors are logged at info level without a traceback.
    """

    if isinstance(exc, USER_ERRORS):
        get_logger("error.user_input").info("rejected", extra={"error": str(exc), **context})
        return

    category = (
        "storage" if isinstance(exc, StorageError)
        else "discord" if isinstance(exc, discord.DiscordException)
        else "unexpected"
    )
    log = get_logger(f"error.{category}")
    log.error("operation failed", exc_info=exc, extra={"category": category, **context})


def handle_exception(exc: BaseException, **context: Any) -> str:
    """Log a categorized exception and return a user-facing message."""

    log_exception_categorized(exc, **context)
    return map_exception_to_message(exc)
