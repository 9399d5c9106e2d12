import pytest

from src.warehouse.store import EventStore


@pytest.fixture
def store():
    return EventStore()
