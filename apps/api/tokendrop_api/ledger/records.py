"""Event drafts handed to the ledger store."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

CLAIM = "CLAIM"
SEND = "SEND"

AUTO_ASSIGNED_ITEMS = "(Auto Assigned)"
SELF_COUNTERPARTY = "Self"
ITEM_ID_SEPARATOR = " | "


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def join_item_ids(item_ids) -> str:
    """Serialize token ids in the order given."""
    return ITEM_ID_SEPARATOR.join(str(item_id) for item_id in item_ids)


@dataclass
class EventDraft:
    """Everything about a distribution event the caller is allowed to supply.

    ``org_id``, ``actor_id`` and the authoritative ``created_at`` come from the
    access gate and the store. ``buffered_at`` only orders the draft in a local
    view until the store has been re-read.
    """

    kind: str
    recipient_address: str
    quantity: int
    item_ids: str
    external_commit_id: str
    counterparty_name: Optional[str] = None
    counterparty_id_number: Optional[str] = None
    counterparty_email: Optional[str] = None
    buffered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.kind not in (CLAIM, SEND):
            raise ValueError(f"Unknown event kind: {self.kind}")
        if not isinstance(self.quantity, int) or self.quantity <= 0:
            raise ValueError("quantity must be a positive integer")
        if not self.recipient_address:
            raise ValueError("recipient_address is required")
        if not self.external_commit_id:
            raise ValueError("external_commit_id is required")
        self.counterparty_name = _blank_to_none(self.counterparty_name)
        self.counterparty_id_number = _blank_to_none(self.counterparty_id_number)
        self.counterparty_email = _blank_to_none(self.counterparty_email)

    @property
    def created_at(self) -> datetime:
        return self.buffered_at

    def fields(self) -> dict:
        """Persistable fields, without the local buffering timestamp."""
        data = asdict(self)
        data.pop("buffered_at")
        return data
