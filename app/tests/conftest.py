"""Shared fixtures for the outage watch test suite."""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from modules.recipients import InMemoryRecipientStore, RecipientState
from tests.factories.notifications import FakeChannel

START = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock.

    ``sleep`` advances the clock instead of waiting and records every delay.
    """

    def __init__(self, start: datetime = START):
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def recipient_factory():
    """Factory for RecipientState records.

    Example:
        recipient = recipient_factory(queue="3.1", broadcast_chat_id="-100")
    """

    def _factory(recipient_id: str = "42", **overrides) -> RecipientState:
        fields = {
            "recipient_id": recipient_id,
            "region": "kyiv",
            "queue": "1.1",
            "personal_chat_id": recipient_id,
        }
        fields.update(overrides)
        return RecipientState(**fields)

    return _factory


@pytest.fixture
def store():
    return InMemoryRecipientStore()
