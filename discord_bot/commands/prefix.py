from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import discord
from discord.ext import commands

from config import Config, Strings
from config.constants import EmbedColor
from services.error_utils import handle_exception
from services.logging_utils import get_logger, message_context, wrap_command
from services.notifier import build_help_embed, send_embed_quietly
from services.survey_repository import SurveyExistsError, SurveyRepository, UnknownSurveyError
from services.survey_storage import StorageError


@dataclass(frozen=True)
class CreateCommand:
    name: str


@dataclass(frozen=True)
class ReloadCommand:
    pass


@dataclass(frozen=True)
class SetChannelCommand:
    name: str


@dataclass(frozen=True)
class SetMessageCommand:
    message_id: str
    name: str


@dataclass(frozen=True)
class HelpCommand:
    pass


Command = Union[CreateCommand, ReloadCommand, SetChannelCommand, SetMessageCommand, HelpCommand]


class CommandSyntaxError(Exception):
    """Raised when a known command gets the wrong number of arguments."""

    def __init__(self, usage: str):
        super().__init__(usage)
        self.usage = usage


def parse_command(content: str, prefix: str) -> Optional[Command]:
    """
    Parse an admin command line.

    Args:
        content: Raw message text
        prefix: Command prefix including its trailing space

    Returns:
        The parsed command, or None when the text isn't a known command

    Raises:
        CommandSyntaxError: the verb is known but the arguments don't fit
    """
    if not content.startswith(prefix):
        return None
    args = content[len(prefix):].split()
    if not args:
        return None
    verb = args.pop(0).lower()

    if verb == "create":
        if len(args) != 1:
            raise CommandSyntaxError(Strings.USAGE_CREATE.format(prefix=prefix))
        return CreateCommand(name=args[0])
    if verb == "reload":
        return ReloadCommand()
    if verb == "set_channel":
        if len(args) != 1:
            raise CommandSyntaxError(Strings.USAGE_SET_CHANNEL.format(prefix=prefix))
        return SetChannelCommand(name=args[0])
    if verb == "set_message":
        if len(args) != 2:
            raise CommandSyntaxError(Strings.USAGE_SET_MESSAGE.format(prefix=prefix))
        return SetMessageCommand(message_id=args[0], name=args[1])
    if verb == "help":
        return HelpCommand()
    return None


class CommandDispatcher:
    """
    Admin text commands.
    These are commands that start with the configured prefix (e.g., !survey create).
    """

    def __init__(self, bot: commands.Bot, repository: SurveyRepository):
        """
        Initialize the dispatcher.

        Args:
            bot: Discord bot instance
            repository: Survey repository the commands mutate
        """
        get_logger("cmd.prefix").info("init")
        self.bot = bot
        self.repository = repository
        self.create_cmd = wrap_command("cmd.prefix.create", self._create)
        self.reload_cmd = wrap_command("cmd.prefix.reload", self._reload)
        self.set_channel_cmd = wrap_command("cmd.prefix.set_channel", self._set_channel)
        self.set_message_cmd = wrap_command("cmd.prefix.set_message", self._set_message)
        self.help_cmd = wrap_command("cmd.prefix.help", self._help)

    @staticmethod
    def is_authorized(message: discord.Message) -> bool:
        """Only guild administrators may run commands."""
        if message.guild is None or message.author.bot:
            return False
        permissions = getattr(message.author, "guild_permissions", None)
        return bool(permissions and permissions.administrator)

    async def handle(self, message: discord.Message) -> None:
        if not self.is_authorized(message):
            return
        prefix = Config.command_prefix()
        try:
            command = parse_command(message.content, prefix)
        except CommandSyntaxError as e:
            get_logger("cmd.prefix", message_context(message)).info("syntax error", extra={"usage": e.usage})
            await send_embed_quietly(message.channel, EmbedColor.ERROR, Strings.COMMAND_SYNTAX_ERROR.format(usage=e.usage))
            return

        if isinstance(command, CreateCommand):
            await self.create_cmd(message, command)
        elif isinstance(command, ReloadCommand):
            await self.reload_cmd(message, command)
        elif isinstance(command, SetChannelCommand):
            await self.set_channel_cmd(message, command)
        elif isinstance(command, SetMessageCommand):
            await self.set_message_cmd(message, command)
        elif isinstance(command, HelpCommand):
            await self.help_cmd(message, command)

    async def _create(self, message: discord.Message, command: CreateCommand) -> None:
        try:
            await self.repository.create(message.guild.id, command.name)
        except (SurveyExistsError, StorageError) as e:
            await send_embed_quietly(message.channel, EmbedColor.ERROR, handle_exception(e, survey=command.name))
            return
        text = Strings.SURVEY_CREATE_SUCCESS.format(
            path=self.repository.storage.path_for(message.guild.id).as_posix(),
            reload=Strings.USAGE_RELOAD.format(prefix=Config.command_prefix()),
        )
        await send_embed_quietly(message.channel, EmbedColor.SUCCESS, text)

    async def _reload(self, message: discord.Message, command: ReloadCommand) -> None:
        try:
            Config.reload()
        except ValueError as e:
            get_logger("cmd.prefix.reload", message_context(message)).error(
                "invalid configuration, keeping previous values", extra={"error": str(e)}
            )
            await send_embed_quietly(message.channel, EmbedColor.ERROR, Strings.CONFIG_INVALID.format(error=e))
            return
        try:
            await self.repository.load(message.guild.id)
        except StorageError as e:
            await send_embed_quietly(message.channel, EmbedColor.ERROR, handle_exception(e))
            return
        await send_embed_quietly(message.channel, EmbedColor.SUCCESS, Strings.RELOAD_SUCCESS)

    async def _set_channel(self, message: discord.Message, command: SetChannelCommand) -> None:
        try:
            await self.repository.set_channel(message.guild.id, command.name, message.channel.id)
        except (UnknownSurveyError, StorageError) as e:
            await send_embed_quietly(message.channel, EmbedColor.ERROR, handle_exception(e, survey=command.name))
            return
        await send_embed_quietly(message.channel, EmbedColor.SUCCESS, Strings.SET_CHANNEL_SUCCESS.format(name=command.name))

    async def _set_message(self, message: discord.Message, command: SetMessageCommand) -> None:
        log = get_logger("cmd.prefix.set_message", message_context(message), survey=command.name)
        try:
            target = await message.channel.fetch_message(int(command.message_id))
        except (ValueError, discord.HTTPException):
            log.info("message not found", extra={"message_id": command.message_id})
            await send_embed_quietly(message.channel, EmbedColor.ERROR, Strings.SET_MESSAGE_INVALID_MESSAGE)
            return

        try:
            await self.repository.ensure_loaded(message.guild.id)
        except StorageError as e:
            await send_embed_quietly(message.channel, EmbedColor.ERROR, handle_exception(e, survey=command.name))
            return
        if not self.repository.exists(message.guild.id, command.name):
            await send_embed_quietly(message.channel, EmbedColor.ERROR, Strings.INVALID_SURVEY.format(name=command.name))
            return

        try:
            await target.add_reaction(Config.SURVEY_REACTION)
        except discord.HTTPException as e:
            log.warning("can't react to trigger message", extra={"error": str(e)})
            await send_embed_quietly(message.channel, EmbedColor.ERROR, Strings.SET_MESSAGE_REACTION_FAILURE)
            return

        try:
            await self.repository.set_message(message.guild.id, command.name, target.id)
        except (UnknownSurveyError, StorageError) as e:
            await send_embed_quietly(message.channel, EmbedColor.ERROR, handle_exception(e, survey=command.name))
            return
        await send_embed_quietly(message.channel, EmbedColor.SUCCESS, Strings.SET_MESSAGE_SUCCESS.format(name=command.name))

    async def _help(self, message: discord.Message, command: HelpCommand) -> None:
        try:
            await message.channel.send(embed=build_help_embed(Config.command_prefix()))
        except discord.HTTPException:
            get_logger("cmd.prefix.help", message_context(message)).warning("help not delivered")
