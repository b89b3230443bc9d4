"""Error taxonomy for access, ledger and distribution failures.

Every failure the service surfaces maps to one of these classes so callers can
tell a re-authentication problem from an administrative one, a retryable read
from an irreversible external commit whose audit record could not be written.
"""

from typing import Any, Optional


class DistributionError(Exception):
    """Base class for all surfaced failures."""

    error_code = "distribution_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_dict(self) -> dict:
        """Render the API error body."""
        return {
            "detail": self.message,
            "error_code": self.error_code,
            "retryable": self.retryable,
            **self.context,
        }


class Unauthorized(DistributionError):
    """Missing, invalid or expired bearer token."""

    error_code = "unauthorized"
    status_code = 401


class NoMembership(DistributionError):
    """Authenticated principal without a resolvable organization."""

    error_code = "no_membership"
    status_code = 403


class InvalidRange(DistributionError):
    """Malformed date bound on a range query."""

    error_code = "invalid_range"
    status_code = 400


class PreconditionFailed(DistributionError):
    """Operation rejected before any external call was made."""

    error_code = "precondition_failed"
    status_code = 409


class ApprovalRequired(PreconditionFailed):
    """Send attempted while the operator is not approved."""

    error_code = "approval_required"


class ExternalCommitFailed(DistributionError):
    """The external ledger rejected or reverted the commit."""

    error_code = "external_commit_failed"
    status_code = 502


class ExternalCommitUnknown(DistributionError):
    """No confirmation was received; the commit may or may not have happened."""

    error_code = "external_commit_unknown"
    status_code = 504


class ExternalReadFailed(DistributionError):
    """Reading approval state or holdings from the external ledger failed."""

    error_code = "external_read_failed"
    status_code = 502
    retryable = True


class StoreError(DistributionError):
    """The ledger store failed to persist or read."""

    error_code = "store_error"
    status_code = 500


class StoreReadFailed(StoreError):
    """Range query failed; reads are side-effect free and safe to retry."""

    error_code = "store_read_failed"
    retryable = True


class StoreWriteFailed(DistributionError):
    """Audit append failed after the external commit was confirmed.

    The audit trail is now behind the external ledger. The commit id is always
    carried so an operator can record the event by hand.
    """

    error_code = "store_write_failed"
    status_code = 500

    def __init__(self, message: str, external_commit_id: str, cause: Optional[Exception] = None, **context: Any):
        super().__init__(message, external_commit_id=external_commit_id, **context)
        self.external_commit_id = external_commit_id
        self.cause = cause
