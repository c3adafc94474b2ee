from discord_bot.client import create_bot
from services.logging_utils import get_logger

###############################################################################
# Discord Bot Setup
###############################################################################
# Intents, survey repository, session registry and handlers are wired in
# discord_bot/client.py; this module only holds the shared instance.
bot = create_bot()

get_logger("bot").info("Bot instance created and handlers initialized in bot.py")

###############################################################################
# Note: Startup is centralized in main.py. bot.py now only defines the bot.
###############################################################################
