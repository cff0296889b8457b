"""Recipient state storage contract and in-memory implementation.

The pipeline reads a recipient before each decision and writes the outcome
in a single ``commit`` after the attempt sequence has settled.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import TypeAdapter

from infrastructure.logging import get_module_logger
from modules.recipients.models import RecipientState

logger = get_module_logger()

_RECIPIENT_LIST = TypeAdapter(List[RecipientState])


class RecipientStateStore(Protocol):
    """Read/write contract on recipient records."""

    def get(self, recipient_id: str) -> Optional[RecipientState]:
        ...

    def list_by_region(self, region: str) -> List[RecipientState]:
        ...

    def list_with_probe(self) -> List[RecipientState]:
        ...

    def list_all(self) -> List[RecipientState]:
        ...

    def commit(self, recipient_id: str, **changes: Any) -> RecipientState:
        ...


class InMemoryRecipientStore:
    """Dict-backed store.

    Returned records are copies; changes only take effect through ``commit``
    or ``upsert``.
    """

    def __init__(self, recipients: Optional[Iterable[RecipientState]] = None):
        self._records: Dict[str, RecipientState] = {}
        for recipient in recipients or []:
            self.upsert(recipient)

    def upsert(self, recipient: RecipientState) -> None:
        self._records[recipient.recipient_id] = recipient.model_copy(deep=True)

    def remove(self, recipient_id: str) -> None:
        self._records.pop(recipient_id, None)

    def get(self, recipient_id: str) -> Optional[RecipientState]:
        record = self._records.get(recipient_id)
        return record.model_copy(deep=True) if record else None

    def list_all(self) -> List[RecipientState]:
        return [r.model_copy(deep=True) for r in self._records.values() if r.active]

    def list_by_region(self, region: str) -> List[RecipientState]:
        return [r for r in self.list_all() if r.region == region]

    def list_with_probe(self) -> List[RecipientState]:
        return [r for r in self.list_all() if r.has_probe]

    def regions(self) -> List[str]:
        return sorted({r.region for r in self.list_all() if r.region})

    def commit(self, recipient_id: str, **changes: Any) -> RecipientState:
        """Apply ``changes`` to a recipient in one write.

        Raises:
            KeyError: Unknown recipient.
            ValueError: A change names a field the record does not have.
        """
        record = self._records.get(recipient_id)
        if record is None:
            raise KeyError(f"Unknown recipient: {recipient_id}")

        unknown = set(changes) - set(RecipientState.model_fields)
        if unknown:
            raise ValueError(f"Unknown recipient fields: {sorted(unknown)}")

        updated = RecipientState.model_validate({**record.model_dump(), **changes})
        self._records[recipient_id] = updated
        logger.debug(
            "recipient_state_committed",
            recipient_id=recipient_id,
            fields=sorted(changes),
        )
        return updated.model_copy(deep=True)


def load_recipients(path: str) -> InMemoryRecipientStore:
    """Build an in-memory store from a JSON array of recipient records.

    Raises:
        FileNotFoundError: The file does not exist.
        pydantic.ValidationError: A record does not match RecipientState.
    """
    with open(path, "rb") as f:
        records = _RECIPIENT_LIST.validate_json(f.read())
    logger.info("recipients_loaded", path=path, count=len(records))
    return InMemoryRecipientStore(records)
