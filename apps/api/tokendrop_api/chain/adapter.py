"""External commit adapter: the boundary to the irreversible external ledger.

Mint, transfer and approval changes are submitted to a signing relay that owns
the keys and the on-chain call encoding. The adapter only reports what the
relay confirmed. A request that may have reached the relay without a
confirmation coming back is reported as unknown, never as failed.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from tokendrop_api.errors import ExternalCommitFailed, ExternalCommitUnknown, ExternalReadFailed
from tokendrop_api.settings import get_settings
from tokendrop_api.utils.metrics import external_commits

logger = logging.getLogger(__name__)

# Raised before the request left this process; nothing can have been committed
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


@dataclass(frozen=True)
class CommitReceipt:
    """Confirmation of an external commit."""

    commit_id: str
    operation: str


class CommitAdapter(Protocol):
    """Operations the distribution workflow needs from the external ledger."""

    async def claim_to(self, collection_address: str, to_address: str, quantity: int) -> CommitReceipt:
        ...

    async def bulk_send(
        self,
        collection_address: str,
        to_address: str,
        token_ids: list[int],
    ) -> CommitReceipt:
        ...

    async def set_approval_for_all(
        self,
        collection_address: str,
        owner_address: str,
        operator_address: str,
        approved: bool,
    ) -> CommitReceipt:
        ...

    async def is_approved_for_all(
        self,
        collection_address: str,
        owner_address: str,
        operator_address: str,
    ) -> bool:
        ...

    async def owned_token_ids(self, collection_address: str, owner_address: str) -> list[int]:
        ...


class HttpCommitAdapter:
    """Commit adapter backed by the signing relay's HTTP API."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize relay adapter."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _commit(self, operation: str, path: str, payload: dict) -> CommitReceipt:
        """Submit a write and translate the relay's answer into a receipt or error."""
        log_extra = {"operation": operation, "path": path}
        try:
            async with self._client() as client:
                response = await client.post(path, json=payload)
        except _NOT_SENT_ERRORS as e:
            external_commits.labels(operation=operation, outcome="failed").inc()
            logger.error(f"Relay unreachable, {operation} not submitted: {e}", extra=log_extra)
            raise ExternalCommitFailed(f"{operation} was not submitted: relay unreachable", operation=operation) from e
        except httpx.HTTPError as e:
            external_commits.labels(operation=operation, outcome="unknown").inc()
            logger.error(f"No confirmation for {operation}: {e}", extra=log_extra)
            raise ExternalCommitUnknown(
                f"{operation} status unknown: no confirmation received ({type(e).__name__})",
                operation=operation,
            ) from e

        if response.status_code >= 500:
            external_commits.labels(operation=operation, outcome="unknown").inc()
            logger.error(
                f"Relay error {response.status_code} for {operation}",
                extra={**log_extra, "response": response.text[:500]},
            )
            raise ExternalCommitUnknown(
                f"{operation} status unknown: relay answered {response.status_code}",
                operation=operation,
            )
        if response.status_code >= 400:
            external_commits.labels(operation=operation, outcome="failed").inc()
            detail = _error_detail(response)
            logger.error(f"Relay rejected {operation} ({response.status_code}): {detail}", extra=log_extra)
            raise ExternalCommitFailed(f"{operation} rejected by relay: {detail}", operation=operation)

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            external_commits.labels(operation=operation, outcome="unknown").inc()
            logger.error(f"Unreadable relay response for {operation}", extra=log_extra)
            raise ExternalCommitUnknown(f"{operation} status unknown: unreadable relay response", operation=operation)

        commit_id = body.get("transaction_hash")
        status = body.get("status", "confirmed")
        if status == "reverted":
            external_commits.labels(operation=operation, outcome="failed").inc()
            logger.error(f"{operation} reverted", extra={**log_extra, "external_commit_id": commit_id})
            raise ExternalCommitFailed(f"{operation} reverted", operation=operation, external_commit_id=commit_id)
        if status != "confirmed" or not commit_id:
            external_commits.labels(operation=operation, outcome="unknown").inc()
            logger.error(
                f"{operation} not confirmed (status={status})",
                extra={**log_extra, "external_commit_id": commit_id},
            )
            raise ExternalCommitUnknown(
                f"{operation} not confirmed (status={status})",
                operation=operation,
                external_commit_id=commit_id,
            )

        external_commits.labels(operation=operation, outcome="confirmed").inc()
        logger.info(f"{operation} confirmed", extra={**log_extra, "external_commit_id": commit_id})
        return CommitReceipt(commit_id=commit_id, operation=operation)

    async def _read(self, path: str, params: dict) -> dict:
        try:
            async with self._client() as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Relay read failed for {path}: {e}")
            raise ExternalReadFailed(f"External ledger read failed: {type(e).__name__}", path=path) from e
        if not isinstance(body, dict):
            raise ExternalReadFailed("External ledger returned an unexpected body", path=path)
        return body

    async def claim_to(self, collection_address: str, to_address: str, quantity: int) -> CommitReceipt:
        """Mint ``quantity`` tokens of a collection to an address."""
        return await self._commit(
            "claim",
            f"/v1/collections/{collection_address}/claim",
            {"to": to_address, "quantity": quantity},
        )

    async def bulk_send(
        self,
        collection_address: str,
        to_address: str,
        token_ids: list[int],
    ) -> CommitReceipt:
        """Transfer tokens through the airdrop operator in one transaction."""
        return await self._commit(
            "send",
            "/v1/airdrop/bulk-send",
            {
                "token_address": collection_address,
                "to": to_address,
                "token_ids": [str(token_id) for token_id in token_ids],
            },
        )

    async def set_approval_for_all(
        self,
        collection_address: str,
        owner_address: str,
        operator_address: str,
        approved: bool,
    ) -> CommitReceipt:
        """Grant or revoke an operator's right to move the owner's tokens."""
        return await self._commit(
            "approval",
            f"/v1/collections/{collection_address}/approval",
            {"owner": owner_address, "operator": operator_address, "approved": approved},
        )

    async def is_approved_for_all(
        self,
        collection_address: str,
        owner_address: str,
        operator_address: str,
    ) -> bool:
        """Read the current approval flag."""
        body = await self._read(
            f"/v1/collections/{collection_address}/approval",
            {"owner": owner_address, "operator": operator_address},
        )
        return bool(body.get("approved"))

    async def owned_token_ids(self, collection_address: str, owner_address: str) -> list[int]:
        """Read the token ids currently held by an address."""
        body = await self._read(
            f"/v1/collections/{collection_address}/owned",
            {"owner": owner_address},
        )
        try:
            return [int(token_id) for token_id in body.get("token_ids", [])]
        except (TypeError, ValueError) as e:
            raise ExternalReadFailed("External ledger returned malformed token ids") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


def get_commit_adapter() -> CommitAdapter:
    """Build the relay-backed adapter from settings."""
    settings = get_settings()
    return HttpCommitAdapter(
        base_url=settings.relay_url,
        api_key=settings.relay_api_key,
        timeout=settings.relay_timeout_seconds,
    )
