"""
Unit tests for the PolicyBot orchestrator.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from policybot import PolicyBot
from policybot.config import BotConfig
from policybot.connection import (
    ROOM_JOIN,
    ROOM_MESSAGE,
    ROOM_REACTION,
    JoinError,
    JoinEvent,
    MessageEvent,
    ReactionEvent,
)
from policybot.storage import MemoryKeyValueStore, SQLKeyValueStore
from tests.fixtures.mock_messaging import SAFETY_ROOM, FakeMessagingClient, room_state
from tests.fixtures.mock_policyserv import FakePolicyserv


@pytest.fixture
def config(tmp_path):
    return BotConfig.from_dict({
        "homeserver": {
            "url": "https://matrix.example.org",
            "user_id": "@policybot:example.org",
            "password": "hunter2",
            "storage_path": str(tmp_path / "bot"),
        },
        "safety_team_room_id": SAFETY_ROOM,
        "policyserv": {
            "base_url": "https://policyserv.example.org",
            "api_key": "secret",
            "server_name": "policyserv.example.org",
        },
    })


@pytest.fixture
def transport():
    fake = FakeMessagingClient()
    fake.add_room(SAFETY_ROOM, room_state("invite"))
    fake.add_room("!admin:example.org", room_state("invite"))
    return fake


@pytest.fixture
async def bot(config, transport):
    instance = PolicyBot(config, transport, kv=MemoryKeyValueStore(), policyserv=FakePolicyserv())
    await instance.start()
    yield instance
    await instance.stop()


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_joins_safety_room(self, bot, transport):
        assert bot.is_running
        assert transport.joins[0] == {"room_id": SAFETY_ROOM, "via": ["matrix.org"]}
        assert bot.kv.is_connected

    @pytest.mark.asyncio
    async def test_callbacks_registered(self, bot, transport):
        assert transport.callbacks[ROOM_JOIN] == [bot.on_join]
        assert transport.callbacks[ROOM_MESSAGE] == [bot.on_message]
        assert transport.callbacks[ROOM_REACTION] == [bot.on_reaction]

    @pytest.mark.asyncio
    async def test_stop_unregisters(self, config, transport):
        bot = PolicyBot(config, transport, kv=MemoryKeyValueStore(), policyserv=FakePolicyserv())
        await bot.start()
        await bot.stop()

        assert not bot.is_running
        assert all(not callbacks for callbacks in transport.callbacks.values())
        assert not bot.kv.is_connected

    @pytest.mark.asyncio
    async def test_start_failure_cleans_up(self, config, transport):
        transport.failures["join_room"] = JoinError("safety room unreachable")
        bot = PolicyBot(config, transport, kv=MemoryKeyValueStore(), policyserv=FakePolicyserv())

        with pytest.raises(JoinError):
            await bot.start()

        assert not bot.is_running
        assert not bot.kv.is_connected

    @pytest.mark.asyncio
    async def test_default_store_is_sql(self, config, transport, tmp_path):
        bot = PolicyBot(config, transport, policyserv=FakePolicyserv())
        assert isinstance(bot.kv, SQLKeyValueStore)
        assert (tmp_path / "bot").is_dir()
        await bot.start()
        await bot.stop()


class TestEvents:

    @pytest.mark.asyncio
    async def test_join_event_welcomes(self, bot, transport):
        await transport.emit(ROOM_JOIN, JoinEvent(room_id="!admin:example.org"))
        assert len(transport.notices("!admin:example.org")) == 1

    @pytest.mark.asyncio
    async def test_join_failure_logged(self, bot, transport, caplog):
        transport.failures["send_notice"] = JoinError("kicked")
        with caplog.at_level(logging.ERROR):
            await transport.emit(ROOM_JOIN, JoinEvent(room_id="!admin:example.org"))
        assert "Failed to welcome" in caplog.text

    @pytest.mark.asyncio
    async def test_message_event_dispatched(self, bot, transport):
        await transport.emit(ROOM_MESSAGE, MessageEvent(
            room_id="!admin:example.org",
            event_id="$cmd",
            sender="@mod:example.org",
            body="!ps help",
            raw={"event_id": "$cmd"},
        ))
        assert len(transport.of_kind("reply", "!admin:example.org")) == 1

    @pytest.mark.asyncio
    async def test_message_failure_logged(self, bot, transport, caplog):
        bot.dispatcher.handle_message = AsyncMock(side_effect=RuntimeError("parser exploded"))
        await transport.emit(ROOM_MESSAGE, MessageEvent(
            room_id="!admin:example.org",
            event_id="$cmd",
            sender="@mod:example.org",
            body="!ps help",
            raw={"event_id": "$cmd"},
        ))
        assert "REF:" in caplog.text
        assert "parser exploded" in caplog.text

    @pytest.mark.asyncio
    async def test_reaction_failure_logged(self, bot, transport, caplog):
        transport.failures["get_event"] = RuntimeError("sync broke")
        await transport.emit(ROOM_REACTION, ReactionEvent(
            room_id=SAFETY_ROOM,
            event_id="$vote",
            sender="@reviewer:example.org",
            relates_to="$prompt",
            key="✅",
        ))
        assert "REF:" in caplog.text
