from __future__ import annotations

from typing import Any, Optional, Union

import discord  # type: ignore
from discord.ext import commands  # type: ignore

from config import Config
from services.logging_utils import get_logger
from services.survey import SurveyEngine, SessionOutcome
from services.survey_repository import SurveyRepository


def reaction_matches(emoji: discord.PartialEmoji, configured: str) -> bool:
    """True when ``emoji`` is exactly the configured trigger emoji."""
    return emoji.name == configured or str(emoji) == configured


def make_trigger_resolver(bot: commands.Bot):
    """Build the callable the repository uses to confirm trigger messages.

    The message is looked up in every text channel of the server; it counts
    as reachable as soon as one fetch succeeds.
    """

    async def resolve_trigger(guild_id: Union[int, str], message_id: str) -> bool:
        guild = bot.get_guild(int(guild_id))
        if guild is None:
            return False
        try:
            wanted = int(message_id)
        except ValueError:
            return False
        for channel in guild.text_channels:
            try:
                await channel.fetch_message(wanted)
                return True
            except (discord.NotFound, discord.Forbidden):
                continue
            except discord.HTTPException:
                get_logger("trigger.resolve", {"guildId": str(guild_id), "channelId": str(channel.id)}).warning(
                    "lookup failed", extra={"message_id": message_id}
                )
        return False

    return resolve_trigger


class TriggerListener:
    """Starts a survey when someone reacts to its trigger message."""

    def __init__(self, bot: commands.Bot, repository: SurveyRepository, engine: SurveyEngine):
        self.bot = bot
        self.repository = repository
        self.engine = engine

    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> Optional[SessionOutcome]:
        if payload.guild_id is None:
            return None
        if self.bot.user is not None and payload.user_id == self.bot.user.id:
            return None
        if payload.member is not None and payload.member.bot:
            return None
        if not reaction_matches(payload.emoji, Config.SURVEY_REACTION):
            return None

        survey_name = self.repository.find_survey_for_trigger(payload.guild_id, payload.message_id)
        if survey_name is None:
            return None

        log = get_logger(
            "trigger.reaction",
            {"guildId": str(payload.guild_id), "userId": str(payload.user_id), "survey": survey_name},
        )
        guild = self.bot.get_guild(payload.guild_id)
        user = payload.member
        if guild is None or user is None:
            log.warning("guild or member not available")
            return None

        log.info("triggered")
        await self._remove_reaction(payload, user)
        return await self.engine.start(guild, survey_name, user)

    async def _remove_reaction(self, payload: discord.RawReactionActionEvent, user: Any) -> None:
        """Take the user's reaction off the trigger message (best effort)."""
        channel = self.bot.get_channel(payload.channel_id)
        if channel is None:
            return
        try:
            await channel.get_partial_message(payload.message_id).remove_reaction(payload.emoji, user)
        except discord.HTTPException as e:
            get_logger("trigger.reaction", {"guildId": str(payload.guild_id), "userId": str(payload.user_id)}).debug(
                "reaction not removed", extra={"error": str(e)}
            )
