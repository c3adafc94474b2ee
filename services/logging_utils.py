from __future__ import annotations
import logging
import contextvars
from typing import Any, Callable, Awaitable, Dict

from config import logger as base_logger

# Context variable to store logging context across async calls
current_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "current_context", default={}
)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter injecting contextual fields into log records."""

    def process(self, msg, kwargs):
        context = current_context.get().copy()
        context.update(self.extra)
        context.update(kwargs.pop("extra", {}))
        kwargs["extra"] = context
        return msg, kwargs


def get_logger(step_name: str | None = None, payload: Dict[str, Any] | None = None, **extra: Any) -> ContextLogger:
    """Return a logger enriched with execution context.

    ``payload`` may carry ``guildId``, ``userId``, ``channelId`` and
    ``survey`` keys; missing ones are simply left out.
    """

    ctx = {}
    if payload:
        ctx["guild"] = payload.get("guildId")
        ctx["user"] = payload.get("userId")
        ctx["channel"] = payload.get("channelId")
        ctx["survey"] = payload.get("survey")
    if step_name:
        ctx["step_name"] = step_name
    ctx.update({k: v for k, v in extra.items() if v is not None})
    return ContextLogger(base_logger, {k: v for k, v in ctx.items() if v is not None})


def message_context(message: Any) -> Dict[str, Any]:
    """Extract logging context from a discord message-like object."""

    guild = getattr(message, "guild", None)
    author = getattr(message, "author", None)
    channel = getattr(message, "channel", None)
    return {
        "guildId": str(guild.id) if guild is not None else None,
        "userId": str(author.id) if author is not None else None,
        "channelId": str(channel.id) if channel is not None else None,
    }


def wrap_command(step_name: str, func: Callable[..., Awaitable[Any]]):
    """Wrap an async command handler with contextual logging.

    The first positional argument must be the invoking message; its guild,
    author and channel are bound to the logging context for the duration of
    the call.
    """

    async def wrapper(message: Any, *args: Any, **kwargs: Any):
        payload = message_context(message)
        ctx = {
            "guild": payload["guildId"],
            "user": payload["userId"],
            "channel": payload["channelId"],
            "step_name": step_name,
        }
        token = current_context.set(ctx)
        log = get_logger(step_name, payload)
        log.info("start")
        try:
            result = await func(message, *args, **kwargs)
            log.info("done")
            return result
        except Exception:
            log.exception("failed")
            raise
        finally:
            current_context.reset(token)

    return wrapper
