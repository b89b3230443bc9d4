"""Claim and send workflows.

Each operation runs the same sequence: check preconditions, make exactly one
external commit, refresh the holding snapshot, append one audit event, and
re-read the ledger so the caller's view comes from the store. The external
commit is irreversible, so it is never retried here. If the audit append fails
after a confirmed commit the caller gets ``StoreWriteFailed`` carrying the
commit id and must reconcile by hand.
"""

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable, Optional

from tokendrop_api.chain.adapter import CommitAdapter, CommitReceipt
from tokendrop_api.distribution.approval import ApprovalState
from tokendrop_api.distribution.notifications import MailNotification, compose_send_notification
from tokendrop_api.distribution.session import OperatorSession, RecipientForm
from tokendrop_api.errors import (
    ExternalReadFailed,
    PreconditionFailed,
    StoreError,
    StoreReadFailed,
    StoreWriteFailed,
)
from tokendrop_api.ledger.records import (
    AUTO_ASSIGNED_ITEMS,
    CLAIM,
    SELF_COUNTERPARTY,
    SEND,
    EventDraft,
    join_item_ids,
)
from tokendrop_api.ledger.store import LedgerStore
from tokendrop_api.ledger.timewindow import day_window
from tokendrop_api.settings import get_settings

logger = logging.getLogger(__name__)


def select_batch(holdings: Iterable[int], fixed_amount: int) -> list[int]:
    """The ``fixed_amount`` lowest token ids, ascending."""
    if fixed_amount <= 0:
        return []
    return sorted(int(token_id) for token_id in holdings)[:fixed_amount]


@dataclass
class DistributionOutcome:
    """Result of a completed claim or send."""

    event: object
    receipt: CommitReceipt
    history: list
    reconciled: bool
    notification: Optional[MailNotification] = None


class DistributionWorkflow:
    """Coordinates the external commit adapter with the ledger store."""

    def __init__(
        self,
        adapter: CommitAdapter,
        store: LedgerStore,
        local_tz: Optional[tzinfo] = None,
        explorer_tx_url: Optional[str] = None,
        sender_name: Optional[str] = None,
    ):
        settings = get_settings()
        self.adapter = adapter
        self.store = store
        self.local_tz = local_tz or settings.local_timezone
        self.explorer_tx_url = explorer_tx_url if explorer_tx_url is not None else settings.explorer_tx_url
        self.sender_name = sender_name or settings.mail_sender_name

    def _log_extra(self, session: OperatorSession, **extra) -> dict:
        return {
            "org_id": session.org_id,
            "actor_id": session.principal.id,
            "collection": session.collection.key,
            **extra,
        }

    async def load_approval(self, session: OperatorSession) -> ApprovalState:
        """Read the external approval flag into the session."""
        approved = await self.adapter.is_approved_for_all(
            session.collection.address,
            session.approval.holder_address,
            session.approval.operator_address,
        )
        return session.approval.observe(approved)

    async def set_approval(self, session: OperatorSession, approved: bool) -> CommitReceipt:
        """Grant or revoke the operator; state moves only after confirmation."""
        receipt = await self.adapter.set_approval_for_all(
            session.collection.address,
            session.approval.holder_address,
            session.approval.operator_address,
            approved,
        )
        if approved:
            session.approval.confirm_grant()
        else:
            session.approval.confirm_revoke()
        logger.info(
            f"Approval {'granted' if approved else 'revoked'}",
            extra=self._log_extra(session, external_commit_id=receipt.commit_id),
        )
        try:
            await self.load_approval(session)
        except ExternalReadFailed as e:
            # Keep the confirmed state; the next load corrects it.
            logger.warning(
                f"Approval re-read failed after commit: {e}",
                extra=self._log_extra(session, external_commit_id=receipt.commit_id),
            )
        return receipt

    async def refresh_holdings(self, session: OperatorSession) -> list[int]:
        """Re-read the held token ids for the session's wallet and collection."""
        session.holdings = sorted(
            await self.adapter.owned_token_ids(session.collection.address, session.wallet_address)
        )
        return session.holdings

    def next_batch(self, session: OperatorSession) -> list[int]:
        return select_batch(session.holdings or [], session.collection.fixed_amount)

    def _check_filter(self, session: OperatorSession) -> None:
        # A bad filter must fail before the commit, not in the reconciliation read after it
        day_window(session.history_filter.start, session.history_filter.end, self.local_tz)

    def reconcile(self, session: OperatorSession) -> list:
        """Replace the session view with a fresh read of the store."""
        session.history = self.store.query_range(
            session.org_id,
            session.history_filter.start,
            session.history_filter.end,
        )
        session.buffered.clear()
        session.reconciled = True
        return session.history

    async def _refresh_after_commit(self, session: OperatorSession, receipt: CommitReceipt) -> None:
        # The commit is already final; a stale snapshot must not stop the audit write.
        try:
            await self.refresh_holdings(session)
        except ExternalReadFailed as e:
            session.holdings = None
            logger.warning(
                f"Holding refresh failed after commit: {e}",
                extra=self._log_extra(session, external_commit_id=receipt.commit_id),
            )

    def _record(self, session: OperatorSession, draft: EventDraft, receipt: CommitReceipt):
        session.buffer(draft)
        try:
            return self.store.append(session.org_id, session.principal.id, draft)
        except StoreError as e:
            logger.critical(
                "Audit append failed after confirmed external commit",
                extra=self._log_extra(session, external_commit_id=receipt.commit_id, kind=draft.kind),
            )
            raise StoreWriteFailed(
                f"{draft.kind} committed externally as {receipt.commit_id} but the audit record "
                "could not be written; record it manually",
                external_commit_id=receipt.commit_id,
                cause=e,
                kind=draft.kind,
            ) from e

    def _finish(self, session: OperatorSession, event, receipt: CommitReceipt, notification=None) -> DistributionOutcome:
        try:
            self.reconcile(session)
        except StoreReadFailed as e:
            # Event is persisted; report the buffered view instead of failing the operation.
            logger.warning(
                f"Reconciliation read failed: {e}",
                extra=self._log_extra(session, external_commit_id=receipt.commit_id),
            )
        return DistributionOutcome(
            event=event,
            receipt=receipt,
            history=session.visible_history(self.local_tz),
            reconciled=session.reconciled,
            notification=notification,
        )

    async def claim(self, session: OperatorSession) -> DistributionOutcome:
        """Mint the collection's fixed amount to the operator's own wallet.

        Raises:
            PreconditionFailed: no wallet or a non-positive fixed amount
            ExternalCommitFailed / ExternalCommitUnknown: nothing is written
            StoreWriteFailed: commit confirmed, audit append failed
        """
        self._check_filter(session)
        quantity = session.collection.fixed_amount
        if quantity <= 0:
            raise PreconditionFailed("Collection fixed amount must be positive", collection=session.collection.key)
        if not session.wallet_address:
            raise PreconditionFailed("Wallet address is required")

        receipt = await self.adapter.claim_to(session.collection.address, session.wallet_address, quantity)
        await self._refresh_after_commit(session, receipt)

        draft = EventDraft(
            kind=CLAIM,
            counterparty_name=SELF_COUNTERPARTY,
            recipient_address=session.wallet_address,
            quantity=quantity,
            item_ids=AUTO_ASSIGNED_ITEMS,
            external_commit_id=receipt.commit_id,
        )
        event = self._record(session, draft, receipt)
        return self._finish(session, event, receipt)

    async def send(self, session: OperatorSession, form: RecipientForm) -> DistributionOutcome:
        """Transfer the next batch of held tokens to a recipient.

        Every precondition is checked before the external call, so a rejected
        send has no side effects.

        Raises:
            ApprovalRequired: operator approval is not confirmed
            PreconditionFailed: missing recipient fields or no stock
            ExternalCommitFailed / ExternalCommitUnknown: nothing is written
            StoreWriteFailed: commit confirmed, audit append failed
        """
        session.approval.require_approved()
        self._check_filter(session)
        if not form.address.strip():
            raise PreconditionFailed("Recipient address is required")
        if not form.email.strip():
            raise PreconditionFailed("Recipient email is required")
        if session.holdings is None:
            await self.refresh_holdings(session)
        batch = self.next_batch(session)
        if not batch:
            raise PreconditionFailed("No tokens in stock; claim first", collection=session.collection.key)

        recipient_address = form.address.strip()
        receipt = await self.adapter.bulk_send(session.collection.address, recipient_address, batch)
        await self._refresh_after_commit(session, receipt)

        item_ids = join_item_ids(batch)
        draft = EventDraft(
            kind=SEND,
            counterparty_name=form.name,
            counterparty_id_number=form.id_number,
            counterparty_email=form.email,
            recipient_address=recipient_address,
            quantity=len(batch),
            item_ids=item_ids,
            external_commit_id=receipt.commit_id,
        )
        event = self._record(session, draft, receipt)

        notification = compose_send_notification(
            email=form.email.strip(),
            name=form.name,
            commit_id=receipt.commit_id,
            token_ids=item_ids,
            explorer_tx_url=self.explorer_tx_url,
            sender_name=self.sender_name,
        )

        form.clear()
        return self._finish(session, event, receipt, notification)
