"""Per-recipient persisted state and its storage contract."""

from modules.recipients.models import RecipientState
from modules.recipients.store import (
    InMemoryRecipientStore,
    RecipientStateStore,
    load_recipients,
)

__all__ = [
    "RecipientState",
    "RecipientStateStore",
    "InMemoryRecipientStore",
    "load_recipients",
]
