"""Distribution audit ledger models."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship

from tokendrop_api.db.base import Base


class LedgerImmutableError(RuntimeError):
    """Raised when an ORM flush tries to change a recorded event."""


class DistributionEvent(Base):
    """Append-only record of one completed claim or send, hash chained per org."""

    __tablename__ = "distribution_events"
    __table_args__ = (
        UniqueConstraint("org_id", "sequence", name="uq_distribution_events_org_sequence"),
        CheckConstraint("quantity > 0", name="ck_distribution_events_quantity_positive"),
        Index("ix_distribution_events_org_created", "org_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    actor_id = Column(String(255), nullable=False, index=True)
    kind = Column(String(16), nullable=False, index=True)  # CLAIM, SEND
    counterparty_name = Column(String(255), nullable=True)
    counterparty_id_number = Column(String(255), nullable=True)
    counterparty_email = Column(String(255), nullable=True)
    recipient_address = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    item_ids = Column(Text, nullable=False)
    external_commit_id = Column(String(255), nullable=False, index=True)  # not unique: retries may repeat
    sequence = Column(BigInteger, nullable=False)
    previous_event_hash = Column(String(64), nullable=True)  # NULL for first event of an org
    event_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC, assigned by the store

    # Relationships
    organization = relationship("Organization")


@event.listens_for(DistributionEvent, "before_update")
def _reject_update(mapper, connection, target):
    raise LedgerImmutableError(f"Distribution event {target.id} is immutable")


@event.listens_for(DistributionEvent, "before_delete")
def _reject_delete(mapper, connection, target):
    raise LedgerImmutableError(f"Distribution event {target.id} cannot be deleted")
