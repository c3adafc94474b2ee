import asyncio
import sys
import types
from pathlib import Path

import discord
import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.append(str(ROOT))

from config import Strings
from services.session import SessionRegistry
from services.survey import SessionOutcome, SurveyEngine
from services.survey_models import Survey
from services.survey_repository import SurveyRepository
from services.survey_storage import JsonSurveyStorage

GUILD_ID = 10
RESPONSE_CHANNEL_ID = 20


def forbidden() -> discord.Forbidden:
    return discord.Forbidden(types.SimpleNamespace(status=403, reason="Forbidden"), "Cannot send messages to this user")


class DummyChannel:
    def __init__(self, cid: int, fail_on=()):
        self.id = cid
        self.sent = []
        self.fail_on = set(fail_on)
        self.attempts = 0

    async def send(self, *args, embed=None, **kwargs):
        self.attempts += 1
        if self.attempts in self.fail_on:
            raise forbidden()
        self.sent.append(embed)
        return types.SimpleNamespace(id=self.attempts)


class DummyUser:
    def __init__(self, uid: int, name: str = "alice", dm=None, dm_error: bool = False):
        self.id = uid
        self.name = name
        self.bot = False
        self.dm = dm or DummyChannel(1000 + uid)
        self.dm_error = dm_error

    async def create_dm(self):
        if self.dm_error:
            raise forbidden()
        return self.dm


class DummyGuild:
    def __init__(self, gid: int, channels):
        self.id = gid
        self.channels = {c.id: c for c in channels}

    def get_channel(self, cid):
        return self.channels.get(cid)


class ScriptedWaitFor:
    """Feeds scripted messages to ``check``; times out once they run out."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.timeouts = []

    async def __call__(self, event, check=None, timeout=None):
        assert event == "message"
        self.timeouts.append(timeout)
        while self.messages:
            message = self.messages.pop(0)
            if check is None or check(message):
                return message
        raise asyncio.TimeoutError


class BlockingWaitFor:
    def __init__(self):
        self.release = asyncio.Event()

    async def __call__(self, event, check=None, timeout=None):
        await self.release.wait()
        raise asyncio.TimeoutError


def answer(user, channel, content="", urls=()):
    return types.SimpleNamespace(
        author=types.SimpleNamespace(id=user.id),
        channel=types.SimpleNamespace(id=channel.id),
        content=content,
        attachments=[types.SimpleNamespace(url=u) for u in urls],
    )


async def make_engine(tmp_path, wait_for, questions=("Q1", "Q2", "Q3"), configured=True):
    repo = SurveyRepository(JsonSurveyStorage(tmp_path))
    survey = Survey(name="feedback", questions=tuple(questions))
    if configured:
        survey = survey.with_channel(RESPONSE_CHANNEL_ID).with_message(555)
    await repo.save(GUILD_ID, {"feedback": survey})
    registry = SessionRegistry(ttl=60)
    engine = SurveyEngine(repo, registry, wait_for, timeout=30)
    response_channel = DummyChannel(RESPONSE_CHANNEL_ID)
    guild = DummyGuild(GUILD_ID, [response_channel])
    return engine, registry, guild, response_channel


@pytest.mark.asyncio
async def test_completed_session_posts_transcript(tmp_path):
    user = DummyUser(1)
    wait_for = ScriptedWaitFor([])
    engine, registry, guild, response_channel = await make_engine(tmp_path, wait_for)
    wait_for.messages = [
        answer(user, user.dm, "one"),
        answer(user, user.dm, "two"),
        answer(user, user.dm, "three"),
    ]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.COMPLETED
    assert [e.description for e in user.dm.sent] == ["Q1", "Q2", "Q3", Strings.SURVEY_COMPLETE]
    assert len(response_channel.sent) == 1
    posted = response_channel.sent[0]
    assert posted.title == "feedback - alice"
    assert posted.description == "__Q1__\none\n\n__Q2__\ntwo\n\n__Q3__\nthree"
    assert not registry.is_active(user.id)
    assert len(wait_for.timeouts) == 3
    assert all(0 < t <= 30 for t in wait_for.timeouts)


@pytest.mark.asyncio
async def test_messages_from_elsewhere_are_ignored(tmp_path):
    user = DummyUser(1)
    other = DummyUser(2)
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for, questions=("Q1",))
    wait_for.messages = [
        answer(other, user.dm, "not mine"),
        answer(user, DummyChannel(77), "wrong channel"),
        answer(user, user.dm, ""),
        answer(user, user.dm, "mine"),
    ]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.COMPLETED
    assert response_channel.sent[0].description == "__Q1__\nmine"


@pytest.mark.asyncio
async def test_attachment_only_answer_advances(tmp_path):
    user = DummyUser(1)
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for, questions=("Picture?", "Why?"))
    wait_for.messages = [
        answer(user, user.dm, "", urls=["https://cdn/cat.png"]),
        answer(user, user.dm, "cute"),
    ]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.COMPLETED
    assert response_channel.sent[0].description == "__Picture?__\nhttps://cdn/cat.png\n\n__Why?__\ncute"


@pytest.mark.asyncio
async def test_long_answers_split_across_messages(tmp_path):
    user = DummyUser(1)
    questions = [f"Q{i}" for i in range(5)]
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for, questions=questions)
    answers = [f"{i}" * 900 for i in range(5)]
    wait_for.messages = [answer(user, user.dm, a) for a in answers]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.COMPLETED
    descriptions = [e.description for e in response_channel.sent]
    assert len(descriptions) > 1
    assert all(len(d) <= 2048 for d in descriptions)
    assert all(e.title == "feedback - alice" for e in response_channel.sent)
    joined = "".join(descriptions)
    assert [joined.index(a) for a in answers] == sorted(joined.index(a) for a in answers)


@pytest.mark.asyncio
async def test_timeout_without_answers_forwards_nothing(tmp_path):
    user = DummyUser(1)
    engine, registry, guild, response_channel = await make_engine(tmp_path, ScriptedWaitFor([]))

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.TIMED_OUT
    assert response_channel.sent == []
    assert [e.description for e in user.dm.sent] == ["Q1", Strings.TIMEOUT]
    assert not registry.is_active(user.id)


@pytest.mark.asyncio
async def test_timeout_midway_discards_partial_answers(tmp_path):
    user = DummyUser(1)
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for)
    wait_for.messages = [answer(user, user.dm, "one")]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.TIMED_OUT
    assert response_channel.sent == []


@pytest.mark.asyncio
async def test_second_session_for_same_user_is_rejected(tmp_path):
    user = DummyUser(1)
    wait_for = BlockingWaitFor()
    engine, registry, guild, _ = await make_engine(tmp_path, wait_for)

    first = asyncio.create_task(engine.start(guild, "feedback", user))
    await asyncio.wait_for(_until(lambda: len(user.dm.sent) == 1), timeout=1)
    assert registry.is_active(user.id)

    second = await engine.start(guild, "feedback", user)

    assert second is SessionOutcome.REJECTED
    assert [e.description for e in user.dm.sent] == ["Q1"]

    wait_for.release.set()
    assert await first is SessionOutcome.TIMED_OUT
    assert not registry.is_active(user.id)


@pytest.mark.asyncio
async def test_unconfigured_survey_is_rejected(tmp_path):
    user = DummyUser(1)
    engine, registry, guild, _ = await make_engine(tmp_path, ScriptedWaitFor([]), configured=False)

    assert await engine.start(guild, "feedback", user) is SessionOutcome.REJECTED
    assert await engine.start(guild, "missing", user) is SessionOutcome.REJECTED
    assert user.dm.sent == []
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_missing_response_channel_is_rejected(tmp_path):
    user = DummyUser(1)
    engine, _, _, _ = await make_engine(tmp_path, ScriptedWaitFor([]))
    guild = DummyGuild(GUILD_ID, [])

    assert await engine.start(guild, "feedback", user) is SessionOutcome.REJECTED
    assert user.dm.sent == []


@pytest.mark.asyncio
async def test_closed_dms_abort_and_release(tmp_path):
    user = DummyUser(1, dm_error=True)
    engine, registry, guild, response_channel = await make_engine(tmp_path, ScriptedWaitFor([]))

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.DELIVERY_FAILED
    assert response_channel.sent == []
    assert not registry.is_active(user.id)


@pytest.mark.asyncio
async def test_first_question_undeliverable_aborts(tmp_path):
    user = DummyUser(1, dm=DummyChannel(1001, fail_on={1}))
    engine, registry, guild, _ = await make_engine(tmp_path, ScriptedWaitFor([]))

    assert await engine.start(guild, "feedback", user) is SessionOutcome.DELIVERY_FAILED
    assert not registry.is_active(user.id)


@pytest.mark.asyncio
async def test_later_question_undeliverable_keeps_session_going(tmp_path):
    user = DummyUser(1, dm=DummyChannel(1001, fail_on={2}))
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for, questions=("Q1", "Q2"))
    wait_for.messages = [answer(user, user.dm, "one"), answer(user, user.dm, "two")]

    outcome = await engine.start(guild, "feedback", user)

    assert outcome is SessionOutcome.COMPLETED
    assert response_channel.sent[0].description == "__Q1__\none\n\n__Q2__\ntwo"


@pytest.mark.asyncio
async def test_user_free_to_start_again_after_completion(tmp_path):
    user = DummyUser(1)
    wait_for = ScriptedWaitFor([])
    engine, _, guild, response_channel = await make_engine(tmp_path, wait_for, questions=("Q1",))

    wait_for.messages = [answer(user, user.dm, "first run")]
    assert await engine.start(guild, "feedback", user) is SessionOutcome.COMPLETED
    wait_for.messages = [answer(user, user.dm, "second run")]
    assert await engine.start(guild, "feedback", user) is SessionOutcome.COMPLETED

    assert [e.description for e in response_channel.sent] == ["__Q1__\nfirst run", "__Q1__\nsecond run"]


async def _until(predicate):
    while not predicate():
        await asyncio.sleep(0)
