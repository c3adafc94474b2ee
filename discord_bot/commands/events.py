import discord
from discord.ext import commands

from services.error_utils import log_exception_categorized
from services.logging_utils import get_logger
from services.survey_repository import SurveyRepository
from services.survey_storage import StorageError
from discord_bot.commands.prefix import CommandDispatcher
from discord_bot.commands.survey import TriggerListener


class EventHandlers:
    def __init__(self, bot: commands.Bot, repository: SurveyRepository, dispatcher: CommandDispatcher, trigger_listener: TriggerListener):
        """Initialize event handlers with the bot instance and its collaborators"""
        self.bot = bot
        self.repository = repository
        self.dispatcher = dispatcher
        self.trigger_listener = trigger_listener

    def setup(self):
        """Register all event handlers with the bot"""
        self.bot.add_listener(self.on_ready)
        self.bot.add_listener(self.on_guild_join)
        self.bot.add_listener(self.on_guild_remove)
        self.bot.add_listener(self.on_message)
        self.bot.add_listener(self.trigger_listener.on_raw_reaction_add, "on_raw_reaction_add")

    async def on_ready(self):
        get_logger("bot.events").info(
            "ready", extra={"bot_user": str(self.bot.user), "guilds": len(self.bot.guilds)}
        )
        for guild in self.bot.guilds:
            await self.load_guild(guild)

    async def on_guild_join(self, guild: discord.Guild):
        get_logger("bot.events", {"guildId": str(guild.id)}).info("joined guild")
        await self.load_guild(guild)

    async def on_guild_remove(self, guild: discord.Guild):
        get_logger("bot.events", {"guildId": str(guild.id)}).info("left guild")
        self.repository.forget(guild.id)

    async def on_message(self, message: discord.Message):
        await self.dispatcher.handle(message)

    async def load_guild(self, guild: discord.Guild) -> None:
        try:
            await self.repository.load(guild.id)
        except StorageError as e:
            # The guild stays without surveys until reloaded
            log_exception_categorized(e, guild=str(guild.id))
