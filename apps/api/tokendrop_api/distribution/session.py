"""Operator session context passed into every workflow call."""

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Optional

from tokendrop_api.auth.gate import Principal
from tokendrop_api.distribution.approval import ApprovalStateMachine
from tokendrop_api.ledger.records import EventDraft
from tokendrop_api.reports.export import filter_and_order
from tokendrop_api.settings import CollectionSettings


@dataclass
class RecipientForm:
    """Transient send form; cleared only after a successful send."""

    email: str = ""
    address: str = ""
    name: str = ""
    id_number: str = ""

    def clear(self) -> None:
        self.email = ""
        self.address = ""
        self.name = ""
        self.id_number = ""


@dataclass
class HistoryFilter:
    start: Optional[str] = None
    end: Optional[str] = None


@dataclass
class OperatorSession:
    """Who is acting, for which org, wallet and collection, and what they see.

    ``history`` is the last view read from the ledger store. ``buffered`` holds
    drafts of events whose commit confirmed but which have not yet been seen
    in a store read; they are dropped at the next reconciliation.
    """

    principal: Principal
    org_id: int
    wallet_address: str
    collection: CollectionSettings
    approval: ApprovalStateMachine
    history_filter: HistoryFilter = field(default_factory=HistoryFilter)
    holdings: Optional[list[int]] = None
    history: list = field(default_factory=list)
    buffered: list[EventDraft] = field(default_factory=list)
    reconciled: bool = False

    @classmethod
    def open(
        cls,
        principal: Principal,
        org_id: int,
        wallet_address: str,
        collection: CollectionSettings,
        operator_address: str,
        history_filter: Optional[HistoryFilter] = None,
    ) -> "OperatorSession":
        return cls(
            principal=principal,
            org_id=org_id,
            wallet_address=wallet_address,
            collection=collection,
            approval=ApprovalStateMachine(wallet_address, operator_address),
            history_filter=history_filter or HistoryFilter(),
        )

    def switch_collection(self, collection: CollectionSettings) -> None:
        """Select another collection; holdings and approval must be re-read."""
        self.collection = collection
        self.holdings = None
        self.approval.reset(self.wallet_address)

    def buffer(self, draft: EventDraft) -> None:
        self.buffered.insert(0, draft)
        self.reconciled = False

    def visible_history(self, local_tz: tzinfo) -> list:
        """Store view once reconciled, otherwise store view plus buffered drafts."""
        if self.reconciled:
            return list(self.history)
        return filter_and_order(
            [*self.buffered, *self.history],
            self.history_filter.start,
            self.history_filter.end,
            local_tz,
        )
