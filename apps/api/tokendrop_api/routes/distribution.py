"""Collection catalog and claim/send/approval endpoints."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_serializer

from tokendrop_api.chain.adapter import CommitAdapter, get_commit_adapter
from tokendrop_api.distribution.session import HistoryFilter, OperatorSession, RecipientForm
from tokendrop_api.distribution.workflow import DistributionOutcome, DistributionWorkflow
from tokendrop_api.ledger.store import LedgerStore
from tokendrop_api.ledger.timewindow import as_utc
from tokendrop_api.routes.history import DistributionEventResponse, get_ledger_store
from tokendrop_api.settings import CollectionSettings, get_settings

router = APIRouter(prefix="/v1", tags=["distribution"])
logger = logging.getLogger(__name__)


class OperatorRequest(BaseModel):
    """Fields identifying the wallet and collection an operation acts on."""

    collection: str
    wallet_address: str = Field(..., min_length=1)
    start: Optional[str] = Field(None, description="History filter start, YYYY-MM-DD")
    end: Optional[str] = Field(None, description="History filter end, YYYY-MM-DD")


class ClaimRequest(OperatorRequest):
    """Claim request."""


class SendRequest(OperatorRequest):
    """Send request; recipient email and address are required."""

    recipient_email: str = ""
    recipient_address: str = ""
    recipient_name: str = ""
    recipient_id_number: str = ""


class BufferedEventResponse(BaseModel):
    """A record written this request that the reconciliation read did not return."""

    kind: str
    counterparty_name: Optional[str] = None
    counterparty_id_number: Optional[str] = None
    counterparty_email: Optional[str] = None
    recipient_address: str
    quantity: int
    item_ids: str
    external_commit_id: str
    buffered_at: datetime
    pending: bool = True

    class Config:
        from_attributes = True

    @field_serializer("buffered_at")
    def _serialize_buffered_at(self, value: datetime) -> str:
        return as_utc(value).isoformat().replace("+00:00", "Z")


class ApprovalRequest(BaseModel):
    """Approval grant/revoke request."""

    collection: str
    wallet_address: str = Field(..., min_length=1)
    approved: bool


def get_workflow(
    adapter: CommitAdapter = Depends(get_commit_adapter),
    store: LedgerStore = Depends(get_ledger_store),
) -> DistributionWorkflow:
    """Workflow wired to the relay adapter and the request's ledger store."""
    return DistributionWorkflow(adapter, store, local_tz=store.local_tz)


def _collection(key: str) -> CollectionSettings:
    collection = get_settings().get_collection(key)
    if not collection:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown collection '{key}'",
        )
    return collection


def _open_session(
    request: Request,
    collection_key: str,
    wallet_address: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> OperatorSession:
    return OperatorSession.open(
        principal=request.state.principal,
        org_id=request.state.org_id,
        wallet_address=wallet_address,
        collection=_collection(collection_key),
        operator_address=get_settings().airdrop_contract_address,
        history_filter=HistoryFilter(start=start, end=end),
    )


def _history_item(event) -> dict:
    if getattr(event, "id", None) is None:
        return BufferedEventResponse.model_validate(event).model_dump(mode="json")
    return DistributionEventResponse.model_validate(event).model_dump(mode="json")


def _outcome_body(outcome: DistributionOutcome) -> dict:
    body = {
        "event": DistributionEventResponse.model_validate(outcome.event).model_dump(mode="json"),
        "external_commit_id": outcome.receipt.commit_id,
        "reconciled": outcome.reconciled,
        "history": [_history_item(event) for event in outcome.history],
    }
    if outcome.notification:
        body["notification"] = outcome.notification.to_dict()
    return body


@router.get("/collections")
async def list_collections():
    """Configured collections and their fixed amounts."""
    return {"data": [collection.model_dump() for collection in get_settings().collections]}


@router.get("/distribution/holdings")
async def get_holdings(
    request: Request,
    collection: str = Query(...),
    wallet_address: str = Query(..., min_length=1),
    workflow: DistributionWorkflow = Depends(get_workflow),
):
    """Held token ids and the batch the next send would transfer."""
    session = _open_session(request, collection, wallet_address)
    token_ids = await workflow.refresh_holdings(session)
    return {
        "collection": session.collection.key,
        "fixed_amount": session.collection.fixed_amount,
        "token_ids": [str(token_id) for token_id in token_ids],
        "next_batch": [str(token_id) for token_id in workflow.next_batch(session)],
    }


@router.get("/distribution/approval")
async def get_approval(
    request: Request,
    collection: str = Query(...),
    wallet_address: str = Query(..., min_length=1),
    workflow: DistributionWorkflow = Depends(get_workflow),
):
    """Current operator approval state for a wallet."""
    session = _open_session(request, collection, wallet_address)
    state = await workflow.load_approval(session)
    return {"state": state.value, "operator_address": session.approval.operator_address}


@router.post("/distribution/approval")
async def set_approval(
    body: ApprovalRequest,
    request: Request,
    workflow: DistributionWorkflow = Depends(get_workflow),
):
    """Grant or revoke the airdrop operator."""
    session = _open_session(request, body.collection, body.wallet_address)
    await workflow.load_approval(session)
    receipt = await workflow.set_approval(session, body.approved)
    return {"state": session.approval.state.value, "external_commit_id": receipt.commit_id}


@router.post("/distribution/claim")
async def claim(
    body: ClaimRequest,
    request: Request,
    workflow: DistributionWorkflow = Depends(get_workflow),
):
    """Replenish stock with the collection's fixed amount."""
    session = _open_session(request, body.collection, body.wallet_address, body.start, body.end)
    outcome = await workflow.claim(session)
    return _outcome_body(outcome)


@router.post("/distribution/send")
async def send(
    body: SendRequest,
    request: Request,
    workflow: DistributionWorkflow = Depends(get_workflow),
):
    """Send the next fixed-size batch to a recipient."""
    session = _open_session(request, body.collection, body.wallet_address, body.start, body.end)
    await workflow.load_approval(session)
    form = RecipientForm(
        email=body.recipient_email,
        address=body.recipient_address,
        name=body.recipient_name,
        id_number=body.recipient_id_number,
    )
    outcome = await workflow.send(session, form)
    return _outcome_body(outcome)
