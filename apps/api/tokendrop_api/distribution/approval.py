"""Approval state machine for the airdrop operator."""

import enum
import logging

from tokendrop_api.errors import ApprovalRequired

logger = logging.getLogger(__name__)


class ApprovalState(str, enum.Enum):
    """Whether the operator may move the holder's tokens."""

    UNKNOWN = "UNKNOWN"
    NOT_APPROVED = "NOT_APPROVED"
    APPROVED = "APPROVED"


class ApprovalStateMachine:
    """Tracks the (holder, operator) approval flag as last confirmed externally.

    The state only moves on a successful read or a confirmed commit. A failed
    commit never reaches this object, so the state stays where it was.
    """

    def __init__(self, holder_address: str, operator_address: str):
        self.holder_address = holder_address
        self.operator_address = operator_address
        self.state = ApprovalState.UNKNOWN

    @property
    def is_approved(self) -> bool:
        return self.state is ApprovalState.APPROVED

    def observe(self, approved: bool) -> ApprovalState:
        """Apply a successful read of the external flag."""
        self.state = ApprovalState.APPROVED if approved else ApprovalState.NOT_APPROVED
        return self.state

    def confirm_grant(self) -> ApprovalState:
        """Apply a confirmed grant commit."""
        if self.state is ApprovalState.APPROVED:
            logger.warning("Grant confirmed while already approved", extra={"holder": self.holder_address})
        self.state = ApprovalState.APPROVED
        return self.state

    def confirm_revoke(self) -> ApprovalState:
        """Apply a confirmed revoke commit."""
        if self.state is ApprovalState.NOT_APPROVED:
            logger.warning("Revoke confirmed while not approved", extra={"holder": self.holder_address})
        self.state = ApprovalState.NOT_APPROVED
        return self.state

    def reset(self, holder_address: str) -> None:
        """Forget the flag when the holder (or collection) changes."""
        self.holder_address = holder_address
        self.state = ApprovalState.UNKNOWN

    def require_approved(self) -> None:
        """Gate for Send.

        Raises:
            ApprovalRequired: unless the last confirmed state is APPROVED
        """
        if self.state is not ApprovalState.APPROVED:
            raise ApprovalRequired(
                "Operator is not approved to transfer held tokens",
                approval_state=self.state.value,
                operator_address=self.operator_address,
            )
