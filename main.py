import asyncio
import logging
import signal
import sys

import discord

from config import Config, logger, setup_logging

# Termination signals that trigger a graceful disconnect, where the platform has them
SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP", "SIGBREAK")


async def shutdown(bot) -> None:
    """Disconnect from Discord and log it."""
    if not bot.is_closed():
        await bot.close()
    logger.info("Bot disconnected")


def install_signal_handlers(bot) -> None:
    loop = asyncio.get_running_loop()
    for name in SHUTDOWN_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(shutdown(bot)))
        except (NotImplementedError, RuntimeError):
            # Event loops without signal support (e.g. Windows proactor)
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(lambda: asyncio.ensure_future(shutdown(bot))))


async def main() -> int:
    """
    Main entry point for the application.
    Validates configuration then runs the Discord bot until a shutdown signal.
    """
    setup_logging(getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO), log_dir=Config.LOG_DIR)

    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    import bot as bot_module  # Import the bot module from bot.py

    install_signal_handlers(bot_module.bot)

    try:
        await bot_module.bot.start(Config.DISCORD_TOKEN)
    except discord.LoginFailure as e:
        logger.error(f"Login failed: {e}")
        await shutdown(bot_module.bot)
        return 1
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
