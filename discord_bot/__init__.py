from discord_bot.client import create_bot

__all__ = ["create_bot"]
