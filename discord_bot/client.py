import discord
from discord.ext import commands

from config import Config
from services.logging_utils import get_logger
from services.session import SessionRegistry
from services.survey import SurveyEngine
from services.survey_repository import SurveyRepository
from services.survey_storage import JsonSurveyStorage
from discord_bot.commands import CommandDispatcher, EventHandlers, TriggerListener, make_trigger_resolver


def create_bot() -> commands.Bot:
    """Build the bot and wire the survey components to it.

    The repository, session registry and engine are attached to the bot
    (``bot.repository``, ``bot.sessions``, ``bot.engine``) so every handler
    shares the same instances.
    """
    intents = discord.Intents.default()
    intents.message_content = True
    # members stays off: guild reaction payloads already include the member

    bot = commands.Bot(command_prefix=commands.when_mentioned, intents=intents, help_command=None)

    repository = SurveyRepository(JsonSurveyStorage(Config.DATA_DIR))
    repository.set_trigger_resolver(make_trigger_resolver(bot))
    sessions = SessionRegistry()
    engine = SurveyEngine(repository, sessions, bot.wait_for)

    bot.repository = repository
    bot.sessions = sessions
    bot.engine = engine

    dispatcher = CommandDispatcher(bot, repository)
    trigger_listener = TriggerListener(bot, repository, engine)
    event_handlers = EventHandlers(bot, repository, dispatcher, trigger_listener)
    event_handlers.setup()

    get_logger("bot.client").info("create_bot: handlers registered")
    return bot
