from __future__ import annotations

import asyncio
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, List, Optional

import discord

from config import Config, Strings
from config.constants import MAX_CHUNK_LENGTH, EmbedColor
from services.logging_utils import get_logger
from services.notifier import send_embed, send_embed_quietly
from services.session import SessionRegistry
from services.survey_models import Survey
from services.survey_repository import SurveyRepository

# Signature of ``discord.Client.wait_for`` as used for answer collection
WaitFor = Callable[..., Awaitable[Any]]


class SessionState(Enum):
    IDLE = auto()
    AWAITING_ANSWER = auto()
    COMPLETING = auto()
    TIMED_OUT = auto()
    DELIVERY_FAILED = auto()


class SessionOutcome(Enum):
    """How a call to :meth:`SurveyEngine.start` ended."""
    REJECTED = auto()
    DELIVERY_FAILED = auto()
    TIMED_OUT = auto()
    COMPLETED = auto()


_TRANSITIONS: Dict[SessionState, set] = {
    SessionState.IDLE: {SessionState.AWAITING_ANSWER, SessionState.DELIVERY_FAILED},
    SessionState.AWAITING_ANSWER: {SessionState.AWAITING_ANSWER, SessionState.COMPLETING, SessionState.TIMED_OUT},
    SessionState.COMPLETING: {SessionState.IDLE},
    SessionState.TIMED_OUT: {SessionState.IDLE},
    SessionState.DELIVERY_FAILED: {SessionState.IDLE},
}


class Transcript:
    """
    Question/answer text split into blocks of at most ``limit`` characters.

    Each entry goes into the current block unless it would overflow it, in
    which case it starts a new one. An entry longer than ``limit`` by itself
    is hard-wrapped over several blocks.
    """

    def __init__(self, limit: int = MAX_CHUNK_LENGTH):
        self.limit = limit
        self._chunks: List[str] = [""]

    @staticmethod
    def format_entry(question: str, answer: str) -> str:
        return f"__{question}__\n{answer}\n\n"

    def append(self, question: str, answer: str) -> None:
        entry = self.format_entry(question, answer)
        pieces = [entry[i:i + self.limit] for i in range(0, len(entry), self.limit)]
        for piece in pieces:
            current = self._chunks[-1]
            if current and len(current) + len(piece) > self.limit:
                self._chunks.append(piece)
            else:
                self._chunks[-1] = current + piece

    def chunks(self) -> List[str]:
        return [c for c in self._chunks if c]

    def finalized(self) -> List[str]:
        """Chunks ready to post: one trailing blank line trimmed from each."""
        result = []
        for chunk in self.chunks():
            if chunk.endswith("\n\n"):
                chunk = chunk[:-2]
            if chunk:
                result.append(chunk)
        return result

    def clear(self) -> None:
        self._chunks = [""]


def format_answer(message: Any) -> str:
    """Message text followed directly by the URL of every attachment."""
    return (message.content or "") + "".join(a.url for a in message.attachments)


class SurveySession:
    """One user's run through the questions of one survey."""

    def __init__(self, guild_id: Any, survey: Survey, user_id: Any):
        self.guild_id = str(guild_id)
        self.survey = survey
        self.user_id = str(user_id)
        self.state = SessionState.IDLE
        self.question_index = 0
        self.deadline: Optional[float] = None
        self.transcript = Transcript()

    @property
    def current_question(self) -> Optional[str]:
        if self.question_index < len(self.survey.questions):
            return self.survey.questions[self.question_index]
        return None

    @property
    def is_complete(self) -> bool:
        return self.question_index >= len(self.survey.questions)

    def remaining(self, now: float) -> float:
        if self.deadline is None:
            return 0.0
        return max(0.0, self.deadline - now)

    def await_answer(self, deadline: float) -> None:
        self._transition(SessionState.AWAITING_ANSWER)
        self.deadline = deadline

    def record_answer(self, answer: str) -> None:
        if self.state is not SessionState.AWAITING_ANSWER:
            raise RuntimeError(f"can't record an answer while {self.state.name}")
        self.transcript.append(self.current_question, answer)
        self.question_index += 1
        if self.is_complete:
            self._transition(SessionState.COMPLETING)

    def time_out(self) -> None:
        self._transition(SessionState.TIMED_OUT)
        self.transcript.clear()
        self.deadline = None

    def delivery_failed(self) -> None:
        self._transition(SessionState.DELIVERY_FAILED)

    def finish(self) -> None:
        self._transition(SessionState.IDLE)
        self.deadline = None

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid transition {self.state.name} -> {new_state.name}")
        self.state = new_state


class SurveyEngine:
    """
    Runs survey sessions: question pacing, timed answer collection and
    delivery of the transcript to the survey's response channel.

    ``wait_for`` is the bot's ``wait_for`` coroutine; answers are collected
    with ``wait_for("message", check=..., timeout=...)``.
    """

    def __init__(
        self,
        repository: SurveyRepository,
        registry: SessionRegistry,
        wait_for: WaitFor,
        timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.wait_for = wait_for
        self.timeout = timeout

    def _timeout(self) -> float:
        return self.timeout if self.timeout is not None else Config.timeout_seconds()

    async def start(self, guild: discord.Guild, survey_name: str, user: discord.abc.User) -> SessionOutcome:
        log = get_logger("survey.engine", {"guildId": str(guild.id), "userId": str(user.id), "survey": survey_name})

        survey = self.repository.get(guild.id, survey_name)
        if survey is None or not survey.is_usable:
            log.info("survey missing or not configured")
            return SessionOutcome.REJECTED

        response_channel = self._resolve_channel(guild, survey.response_channel)
        if response_channel is None:
            log.warning("response channel not found", extra={"response_channel": survey.response_channel})
            return SessionOutcome.REJECTED

        session = SurveySession(guild.id, survey, user.id)
        if not self.registry.acquire(user.id, session):
            return SessionOutcome.REJECTED

        try:
            return await self._run(session, user, response_channel)
        finally:
            self.registry.release(user.id)

    @staticmethod
    def _resolve_channel(guild: discord.Guild, channel_id: str) -> Optional[Any]:
        try:
            return guild.get_channel(int(channel_id))
        except (TypeError, ValueError):
            return None

    async def _run(self, session: SurveySession, user: discord.abc.User, response_channel: Any) -> SessionOutcome:
        log = get_logger(
            "survey.session",
            {"guildId": session.guild_id, "userId": session.user_id, "survey": session.survey.name},
        )
        loop = asyncio.get_running_loop()
        timeout = self._timeout()

        try:
            dm_channel = await user.create_dm()
            await send_embed(dm_channel, EmbedColor.QUESTION, session.current_question)
        except discord.HTTPException as e:
            session.delivery_failed()
            session.finish()
            log.warning("can't reach user in DMs", extra={"error": str(e)})
            return SessionOutcome.DELIVERY_FAILED

        check = self._answer_check(user, dm_channel)
        while True:
            session.await_answer(loop.time() + timeout)
            try:
                message = await self.wait_for("message", check=check, timeout=session.remaining(loop.time()))
            except asyncio.TimeoutError:
                session.time_out()
                log.info("timed out", extra={"question_index": session.question_index})
                await send_embed_quietly(dm_channel, EmbedColor.ERROR, Strings.TIMEOUT)
                session.finish()
                return SessionOutcome.TIMED_OUT

            session.record_answer(format_answer(message))
            if session.is_complete:
                break
            try:
                await send_embed(dm_channel, EmbedColor.QUESTION, session.current_question)
            except discord.HTTPException:
                # The session keeps waiting: the user may still answer.
                log.exception("question not delivered", extra={"question_index": session.question_index})

        await self._deliver_transcript(session, user, response_channel)
        await send_embed_quietly(dm_channel, EmbedColor.SUCCESS, Strings.SURVEY_COMPLETE)
        session.finish()
        log.info("completed", extra={"answers": session.question_index})
        return SessionOutcome.COMPLETED

    @staticmethod
    def _answer_check(user: discord.abc.User, dm_channel: Any) -> Callable[[Any], bool]:
        def check(message: Any) -> bool:
            return (
                message.author.id == user.id
                and message.channel.id == dm_channel.id
                and (bool(message.content) or bool(message.attachments))
            )

        return check

    async def _deliver_transcript(self, session: SurveySession, user: discord.abc.User, response_channel: Any) -> None:
        title = Strings.TRANSCRIPT_TITLE.format(survey=session.survey.name, username=user.name)
        for chunk in session.transcript.finalized():
            try:
                await send_embed(response_channel, EmbedColor.TRANSCRIPT, chunk, title=title)
            except discord.HTTPException:
                get_logger(
                    "survey.session",
                    {"guildId": session.guild_id, "userId": session.user_id, "survey": session.survey.name},
                ).exception("transcript chunk not delivered", extra={"response_channel": str(response_channel.id)})
