"""Test fixtures for notification infrastructure tests."""

import pytest

from infrastructure.events import EventBus
from infrastructure.notifications import NotificationDispatcher
from infrastructure.resilience import RetryConfig
from tests.factories.notifications import DenyGate


@pytest.fixture
def gate():
    return DenyGate()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def dispatcher(fake_channel, gate, clock, event_bus):
    return NotificationDispatcher(
        channel=fake_channel,
        retry_config=RetryConfig(
            max_attempts=3,
            base_delay_seconds=1,
            max_delay_seconds=10,
            max_total_delay_seconds=30,
        ),
        gate=gate,
        clock=clock,
        event_bus=event_bus,
    )
