"""Fixtures for infrastructure event bus tests."""

import pytest

from infrastructure.events import EventBus
from infrastructure.events.models import Event


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def event_factory():
    """Factory for creating test events."""

    def _factory(event_type: str = "test.event", recipient_id: str = "42", metadata=None):
        return Event(
            event_type=event_type, recipient_id=recipient_id, metadata=metadata or {}
        )

    return _factory
