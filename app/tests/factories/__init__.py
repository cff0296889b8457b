"""Test data factories for deterministic test data generation."""

from tests.factories.notifications import FakeChannel, make_payload, make_recipient
from tests.factories.schedules import make_event, make_feed_payload, make_snapshot

__all__ = [
    "FakeChannel",
    "make_payload",
    "make_recipient",
    "make_event",
    "make_feed_payload",
    "make_snapshot",
]
