from typing import Optional

import discord

from config import Strings
from config.constants import EmbedColor
from services.logging_utils import get_logger


def build_embed(color: EmbedColor, text: str, title: Optional[str] = None) -> discord.Embed:
    embed = discord.Embed(color=discord.Color(color.value), description=text)
    if title:
        embed.title = title
    return embed


async def send_embed(channel: discord.abc.Messageable, color: EmbedColor, text: str, title: Optional[str] = None) -> Optional[discord.Message]:
    """Send ``text`` as a coloured embed; empty text sends nothing.

    Delivery errors (``discord.HTTPException``) propagate to the caller.
    """
    if not text:
        return None
    return await channel.send(embed=build_embed(color, text, title))


async def send_embed_quietly(channel: discord.abc.Messageable, color: EmbedColor, text: str, title: Optional[str] = None) -> Optional[discord.Message]:
    """Best-effort variant of :func:`send_embed` for non-critical notices."""
    try:
        return await send_embed(channel, color, text, title)
    except discord.HTTPException as e:
        get_logger("notifier", channel=str(getattr(channel, "id", ""))).warning(
            "notice not delivered", extra={"error": str(e)}
        )
        return None


def build_help_embed(prefix: str) -> discord.Embed:
    embed = discord.Embed(title=Strings.HELP_TITLE)
    embed.add_field(name=Strings.USAGE_CREATE.format(prefix=prefix), value=Strings.HELP_CREATE, inline=False)
    embed.add_field(name=Strings.USAGE_RELOAD.format(prefix=prefix), value=Strings.HELP_RELOAD, inline=False)
    embed.add_field(name=Strings.USAGE_SET_CHANNEL.format(prefix=prefix), value=Strings.HELP_SET_CHANNEL, inline=False)
    embed.add_field(name=Strings.USAGE_SET_MESSAGE.format(prefix=prefix), value=Strings.HELP_SET_MESSAGE, inline=False)
    return embed
