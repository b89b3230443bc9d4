"""Org-scoped, append-only audit ledger with hash chaining."""

import hashlib
import json
import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tokendrop_api.errors import StoreError, StoreReadFailed
from tokendrop_api.ledger.records import EventDraft
from tokendrop_api.ledger.timewindow import DateBound, day_window, to_naive_utc
from tokendrop_api.models import DistributionEvent
from tokendrop_api.settings import get_settings
from tokendrop_api.utils.metrics import history_queries, ledger_appends, ledger_store_failures

logger = logging.getLogger(__name__)

# Concurrent appends for one org race for the next sequence number
_MAX_SEQUENCE_ATTEMPTS = 3


class LedgerStore:
    """Tamper-evident distribution ledger scoped by organization."""

    def __init__(self, db: Session, local_tz: Optional[tzinfo] = None):
        """Initialize ledger store."""
        self.db = db
        self.local_tz = local_tz or get_settings().local_timezone

    @staticmethod
    def _require_org(org_id: Optional[int]) -> int:
        if not org_id:
            raise ValueError("org_id must be provided for tenant-scoped ledger operations")
        return org_id

    def _hash_event(self, event_data: dict) -> str:
        """Compute hash of event data."""
        event_str = json.dumps(event_data, sort_keys=True)
        return hashlib.sha256(event_str.encode()).hexdigest()

    def _canonical(
        self,
        org_id: int,
        actor_id: str,
        fields: dict,
        sequence: int,
        previous_hash: Optional[str],
        created_at: datetime,
    ) -> dict:
        return {
            "org_id": org_id,
            "actor_id": actor_id,
            **fields,
            "sequence": sequence,
            "previous_hash": previous_hash,
            "created_at": created_at.isoformat(),
        }

    def _last_event(self, org_id: int) -> Optional[DistributionEvent]:
        return (
            self.db.query(DistributionEvent)
            .filter(DistributionEvent.org_id == org_id)
            .order_by(DistributionEvent.sequence.desc())
            .first()
        )

    def append(self, org_id: int, actor_id: str, draft: EventDraft) -> DistributionEvent:
        """Append one immutable event; ``created_at`` is assigned here.

        Raises:
            StoreError: on constraint violation or I/O failure
        """
        org_id = self._require_org(org_id)
        if not actor_id:
            raise ValueError("actor_id must be provided")
        fields = draft.fields()

        last_error: Optional[Exception] = None
        for attempt in range(1, _MAX_SEQUENCE_ATTEMPTS + 1):
            try:
                previous = self._last_event(org_id)
                sequence = previous.sequence + 1 if previous else 1
                previous_hash = previous.event_hash if previous else None
                created_at = datetime.now(timezone.utc).replace(tzinfo=None)

                event_hash = self._hash_event(
                    self._canonical(org_id, actor_id, fields, sequence, previous_hash, created_at)
                )
                ledger_event = DistributionEvent(
                    org_id=org_id,
                    actor_id=actor_id,
                    sequence=sequence,
                    previous_event_hash=previous_hash,
                    event_hash=event_hash,
                    created_at=created_at,
                    **fields,
                )
                self.db.add(ledger_event)
                self.db.commit()
                self.db.refresh(ledger_event)
            except IntegrityError as e:
                self.db.rollback()
                last_error = e
                logger.warning(
                    f"Ledger append conflict (attempt {attempt}): {e.orig}",
                    extra={"org_id": org_id, "external_commit_id": draft.external_commit_id},
                )
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                ledger_store_failures.labels(operation="append").inc()
                raise StoreError(f"Ledger append failed: {e}") from e

            ledger_appends.labels(kind=ledger_event.kind).inc()
            logger.info(
                "Ledger event appended",
                extra={
                    "org_id": org_id,
                    "actor_id": actor_id,
                    "event_id": ledger_event.id,
                    "sequence": sequence,
                    "external_commit_id": ledger_event.external_commit_id,
                },
            )
            return ledger_event

        ledger_store_failures.labels(operation="append").inc()
        raise StoreError(f"Ledger append failed after {_MAX_SEQUENCE_ATTEMPTS} attempts: {last_error}") from last_error

    def query_range(
        self,
        org_id: int,
        start: DateBound = None,
        end: DateBound = None,
    ) -> list[DistributionEvent]:
        """Events of one org within local calendar dates, newest first.

        Raises:
            InvalidRange: if a bound is not a valid date (before any query runs)
            StoreReadFailed: if the query fails
        """
        org_id = self._require_org(org_id)
        window = day_window(start, end, self.local_tz)

        query = self.db.query(DistributionEvent).filter(DistributionEvent.org_id == org_id)
        if window.start is not None:
            query = query.filter(DistributionEvent.created_at >= to_naive_utc(window.start))
        if window.end is not None:
            query = query.filter(DistributionEvent.created_at <= to_naive_utc(window.end))

        try:
            events = query.order_by(
                DistributionEvent.created_at.desc(),
                DistributionEvent.id.desc(),
            ).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            ledger_store_failures.labels(operation="query").inc()
            raise StoreReadFailed(f"Ledger query failed: {e}") from e

        history_queries.labels(bounded=str(window.is_bounded).lower()).inc()
        return events

    def verify_chain(self, org_id: int) -> tuple[bool, Optional[str]]:
        """Verify hash chain integrity for an org."""
        org_id = self._require_org(org_id)
        try:
            events = (
                self.db.query(DistributionEvent)
                .filter(DistributionEvent.org_id == org_id)
                .order_by(DistributionEvent.sequence.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            ledger_store_failures.labels(operation="query").inc()
            raise StoreReadFailed(f"Ledger query failed: {e}") from e

        previous_hash = None
        for expected_sequence, event in enumerate(events, start=1):
            if event.sequence != expected_sequence:
                return False, f"Sequence gap at event {event.id}: expected {expected_sequence}, got {event.sequence}"
            if event.previous_event_hash != previous_hash:
                return False, f"Broken link at event {event.id}"

            fields = {
                "kind": event.kind,
                "recipient_address": event.recipient_address,
                "quantity": event.quantity,
                "item_ids": event.item_ids,
                "external_commit_id": event.external_commit_id,
                "counterparty_name": event.counterparty_name,
                "counterparty_id_number": event.counterparty_id_number,
                "counterparty_email": event.counterparty_email,
            }
            computed_hash = self._hash_event(
                self._canonical(
                    event.org_id,
                    event.actor_id,
                    fields,
                    event.sequence,
                    event.previous_event_hash,
                    event.created_at,
                )
            )
            if computed_hash != event.event_hash:
                logger.error(
                    "Ledger hash mismatch",
                    extra={"org_id": org_id, "event_id": event.id},
                )
                return False, f"Hash mismatch at event {event.id}"

            previous_hash = event.event_hash

        return True, None
