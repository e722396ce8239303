from unittest.mock import AsyncMock

import pytest

from dental_flow.backends import MemorySessionBackend
from dental_flow.engine import FlowEngine
from dental_flow.graph import FlowGraphStore
from dental_flow.interfaces import Collaborators
from dental_flow.store import StateStore

from helpers.flows import CLIENT_RECORD, FIXED_NOW, FakeClock


@pytest.fixture(scope="session")
def graphs():
    store = FlowGraphStore()
    store.load()
    return store


@pytest.fixture
def today():
    return FIXED_NOW.date()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemorySessionBackend()


@pytest.fixture
def state_store(backend, clock):
    return StateStore(backend, clock=clock)


@pytest.fixture
def submitter():
    mock = AsyncMock()
    mock.submit.return_value = "CONF-0001"
    return mock


@pytest.fixture
def client_finder():
    mock = AsyncMock()
    mock.find.return_value = dict(CLIENT_RECORD)
    return mock


@pytest.fixture
def audit():
    return AsyncMock()


@pytest.fixture
def collaborators(submitter, client_finder, audit):
    return Collaborators(
        client_applications=client_finder,
        submitter=submitter,
        audit=audit,
    )


@pytest.fixture
def engine(state_store, graphs, collaborators):
    return FlowEngine(state_store, graphs, collaborators=collaborators)
