"""
Global pytest configuration and fixtures for policybot tests

Provides:
- FakeMessagingClient (in-memory chat transport)
- FakePolicyserv (in-memory policy backend)
- FakeClock for time-dependent tests
- Wired workflow/settings/dispatcher fixtures
"""

import pytest

from policybot.community import ApplicationWorkflow, CommunitySettings, ConfigRegistry
from policybot.core import BackgroundTasks, CommandParser
from policybot.core.dispatcher import CommandDispatcher
from policybot.storage import CommunityStore, MemoryKeyValueStore
from tests.fixtures.mock_messaging import (
    SAFETY_ROOM,
    SERVER_NAME,
    FakeClock,
    FakeMessagingClient,
    room_state,
)
from tests.fixtures.mock_policyserv import FakePolicyserv


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    fake = FakeMessagingClient()
    fake.add_room(SAFETY_ROOM, room_state("invite"))
    return fake


@pytest.fixture
def policyserv():
    return FakePolicyserv()


@pytest.fixture
async def kv():
    store = MemoryKeyValueStore()
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def store(kv):
    return CommunityStore(kv)


@pytest.fixture
async def tasks():
    runner = BackgroundTasks()
    yield runner
    await runner.drain()


@pytest.fixture
def registry():
    return ConfigRegistry()


@pytest.fixture
def workflow(client, policyserv, store, tasks):
    return ApplicationWorkflow(
        client,
        policyserv,
        store,
        tasks,
        safety_team_room_id=SAFETY_ROOM,
        policy_server_name=SERVER_NAME,
    )


@pytest.fixture
def settings(policyserv, registry):
    return CommunitySettings(policyserv, registry)


@pytest.fixture
def dispatcher(client, workflow, settings, tasks):
    return CommandDispatcher(client, workflow, settings, tasks, parser=CommandParser())
