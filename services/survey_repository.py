from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, Iterable, Optional, Union

from config.constants import DEFAULT_QUESTIONS
from services.logging_utils import get_logger
from services.survey_models import Survey, SurveySet, survey_set_from_dict, survey_set_to_dict
from services.survey_storage import JsonSurveyStorage, StorageError

GuildId = Union[int, str]

# Async callable telling whether a trigger message can still be fetched
TriggerResolver = Callable[[GuildId, str], Awaitable[bool]]


class SurveyExistsError(Exception):
    """Raised when creating a survey whose name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"survey {name!r} already exists")
        self.name = name


class UnknownSurveyError(Exception):
    """Raised when operating on a survey that doesn't exist."""

    def __init__(self, name: str):
        super().__init__(f"survey {name!r} doesn't exist")
        self.name = name


class SurveyRepository:
    """
    Per-server survey sets backed by JSON storage.

    The in-memory cache only ever mirrors the last successful durable read
    or write: mutations build a copy, persist it, and only then replace the
    cached set. A server whose record could not be read is marked
    unavailable and refuses mutations until a later load succeeds, so an
    unreadable file is never overwritten. A server that was never loaded is
    read before its first mutation.

    Storage failures that are raised are left to the caller to log.
    """

    def __init__(self, storage: JsonSurveyStorage, resolve_trigger: Optional[TriggerResolver] = None):
        self.storage = storage
        self._resolve_trigger = resolve_trigger
        self._cache: Dict[str, SurveySet] = {}
        self._triggers: Dict[str, Dict[str, str]] = {}
        self._unavailable: set = set()
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def set_trigger_resolver(self, resolve_trigger: Optional[TriggerResolver]) -> None:
        self._resolve_trigger = resolve_trigger

    # ------------------------------------------------------------------
    # Durable operations
    # ------------------------------------------------------------------

    async def load(self, guild_id: GuildId) -> SurveySet:
        """Read the server's record into the cache and return a copy.

        A missing record is created empty. On any other failure the server's
        cached set is emptied and ``StorageError`` is raised for the caller
        to report.
        """
        key = str(guild_id)
        log = get_logger("repository.load", {"guildId": key})
        try:
            raw = await self.storage.read(guild_id)
        except FileNotFoundError:
            log.info("no data file, creating an empty one")
            raw = {}
            try:
                await self.storage.write(guild_id, raw)
            except StorageError:
                # Not raised: the server carries on with an empty set
                log.exception("can't create data file")
        except StorageError:
            self._mark_unavailable(key)
            raise

        try:
            surveys = survey_set_from_dict(raw)
        except ValueError as e:
            self._mark_unavailable(key)
            raise StorageError(f"malformed data for server {key}: {e}") from e

        self._unavailable.discard(key)
        await self._replace_cache(key, surveys)
        log.info("loaded", extra={"surveys": len(surveys)})
        return dict(surveys)

    async def save(self, guild_id: GuildId, surveys: SurveySet) -> None:
        """Persist ``surveys`` then mirror them in the cache.

        Raises:
            StorageError: the write failed; the cache is left untouched
        """
        key = str(guild_id)
        await self.storage.write(guild_id, survey_set_to_dict(surveys))
        self._unavailable.discard(key)
        await self._replace_cache(key, dict(surveys))

    async def create(self, guild_id: GuildId, name: str, default_questions: Iterable[str] = DEFAULT_QUESTIONS) -> Survey:
        """Create a survey with placeholder questions.

        Raises:
            SurveyExistsError: a survey with this name already exists
            StorageError: the server's data is unavailable or the write failed
        """
        key = str(guild_id)
        async with self._locks[key]:
            await self._prepare_mutation(guild_id)
            if self.exists(guild_id, name):
                raise SurveyExistsError(name)
            survey = Survey(name=name, questions=tuple(default_questions))
            surveys = self.surveys(guild_id)
            surveys[name] = survey
            await self.save(guild_id, surveys)
        get_logger("repository.create", {"guildId": key, "survey": name}).info("created")
        return survey

    async def set_channel(self, guild_id: GuildId, name: str, channel_id: Union[int, str]) -> Survey:
        """Point a survey's responses at ``channel_id``."""
        return await self._update(guild_id, name, lambda s: s.with_channel(channel_id))

    async def set_message(self, guild_id: GuildId, name: str, message_id: Union[int, str]) -> Survey:
        """Make ``message_id`` the trigger message of a survey."""
        return await self._update(guild_id, name, lambda s: s.with_message(message_id))

    async def ensure_loaded(self, guild_id: GuildId) -> None:
        """Load the server's record unless it is already cached.

        Raises:
            StorageError: the record could not be read
        """
        async with self._locks[str(guild_id)]:
            if not self.is_loaded(guild_id):
                await self.load(guild_id)

    def forget(self, guild_id: GuildId) -> None:
        """Drop everything cached for a server the bot has left."""
        key = str(guild_id)
        self._cache.pop(key, None)
        self._triggers.pop(key, None)
        self._unavailable.discard(key)
        self._locks.pop(key, None)

    # ------------------------------------------------------------------
    # Cache reads
    # ------------------------------------------------------------------

    def surveys(self, guild_id: GuildId) -> SurveySet:
        return dict(self._cache.get(str(guild_id), {}))

    def get(self, guild_id: GuildId, name: str) -> Optional[Survey]:
        return self._cache.get(str(guild_id), {}).get(name)

    def exists(self, guild_id: GuildId, name: str) -> bool:
        return self.get(guild_id, name) is not None

    def is_loaded(self, guild_id: GuildId) -> bool:
        return str(guild_id) in self._cache

    def trigger_index(self, guild_id: GuildId) -> Dict[str, str]:
        return dict(self._triggers.get(str(guild_id), {}))

    def find_survey_for_trigger(self, guild_id: GuildId, message_id: Union[int, str]) -> Optional[str]:
        """Return the first survey (index order) triggered by ``message_id``."""
        wanted = str(message_id)
        for name, trigger_id in self._triggers.get(str(guild_id), {}).items():
            if trigger_id == wanted:
                return name
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _update(self, guild_id: GuildId, name: str, transform: Callable[[Survey], Survey]) -> Survey:
        key = str(guild_id)
        async with self._locks[key]:
            await self._prepare_mutation(guild_id)
            current = self.get(guild_id, name)
            if current is None:
                raise UnknownSurveyError(name)
            updated = transform(current)
            surveys = self.surveys(guild_id)
            surveys[name] = updated
            await self.save(guild_id, surveys)
        get_logger("repository.update", {"guildId": key, "survey": name}).info("updated")
        return updated

    async def _prepare_mutation(self, guild_id: GuildId) -> None:
        """Make sure the cache holds the durable record before it is rewritten.

        Caller must hold the server's lock.
        """
        key = str(guild_id)
        if key in self._unavailable:
            raise StorageError(f"survey data for server {key} is unavailable until reloaded")
        if not self.is_loaded(guild_id):
            await self.load(guild_id)

    def _mark_unavailable(self, key: str) -> None:
        self._unavailable.add(key)
        self._cache[key] = {}
        self._triggers[key] = {}

    async def _replace_cache(self, key: str, surveys: SurveySet) -> None:
        self._cache[key] = surveys
        self._triggers[key] = await self._build_trigger_index(key, surveys)

    async def _build_trigger_index(self, key: str, surveys: SurveySet) -> Dict[str, str]:
        """Keep only trigger messages that could actually be fetched.

        Without a resolver every configured message counts as reachable.
        """
        index: Dict[str, str] = {}
        for name, survey in surveys.items():
            if not survey.message:
                continue
            if self._resolve_trigger is None or await self._resolve_trigger(key, survey.message):
                index[name] = survey.message
            else:
                get_logger("repository.triggers", {"guildId": key, "survey": name}).warning(
                    "trigger message not reachable", extra={"message_id": survey.message}
                )
        return index
