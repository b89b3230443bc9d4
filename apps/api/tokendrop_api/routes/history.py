"""Ledger history endpoints: range read, audit append, export and chain check."""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import Response
from pydantic import BaseModel, Field, field_serializer, model_validator
from sqlalchemy.orm import Session

from tokendrop_api.db.session import get_db
from tokendrop_api.ledger.records import EventDraft
from tokendrop_api.ledger.store import LedgerStore
from tokendrop_api.ledger.timewindow import as_utc
from tokendrop_api.reports.export import export_filename, render_csv

router = APIRouter(tags=["history"])
logger = logging.getLogger(__name__)


class DistributionEventResponse(BaseModel):
    """One ledger record as returned to clients."""

    id: int
    org_id: int
    actor_id: str
    kind: str
    counterparty_name: Optional[str] = None
    counterparty_id_number: Optional[str] = None
    counterparty_email: Optional[str] = None
    recipient_address: str
    quantity: int
    item_ids: str
    external_commit_id: str
    sequence: int
    event_hash: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return as_utc(value).isoformat().replace("+00:00", "Z")


class HistoryEventCreate(BaseModel):
    """Audit record body; org, actor and timestamp are assigned server-side."""

    kind: Literal["CLAIM", "SEND"]
    counterparty_name: Optional[str] = None
    counterparty_id_number: Optional[str] = None
    counterparty_email: Optional[str] = None
    recipient_address: Optional[str] = Field(None, description="Required for SEND; self address for CLAIM")
    quantity: int = Field(..., gt=0)
    item_ids: str
    external_commit_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _require_recipient(self):
        if not (self.recipient_address or "").strip():
            raise ValueError("recipient_address is required")
        return self


def get_ledger_store(db: Session = Depends(get_db)) -> LedgerStore:
    """Ledger store bound to the request's session."""
    return LedgerStore(db)


@router.get("/history")
async def get_history(
    request: Request,
    start: Optional[str] = Query(None, description="YYYY-MM-DD, tenant local date"),
    end: Optional[str] = Query(None, description="YYYY-MM-DD, tenant local date"),
    store: LedgerStore = Depends(get_ledger_store),
):
    """Ledger events of the caller's organization, newest first."""
    events = store.query_range(request.state.org_id, start, end)
    return {"data": [DistributionEventResponse.model_validate(event).model_dump(mode="json") for event in events]}


@router.post("/history", status_code=status.HTTP_200_OK)
async def record_history(
    body: HistoryEventCreate,
    request: Request,
    store: LedgerStore = Depends(get_ledger_store),
):
    """Append an audit record for a confirmed external commit."""
    draft = EventDraft(**body.model_dump())
    event = store.append(request.state.org_id, request.state.principal.id, draft)
    return {"ok": True, "id": event.id}


@router.get("/history/export")
async def export_history(
    request: Request,
    start: Optional[str] = Query(None),
    end: Optional[str] = Query(None),
    store: LedgerStore = Depends(get_ledger_store),
):
    """CSV export of the caller's ledger for the given local dates."""
    events = store.query_range(request.state.org_id, start, end)
    filename = export_filename(start, end)
    return Response(
        content=render_csv(events, store.local_tz),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/history/verify")
async def verify_history(
    request: Request,
    store: LedgerStore = Depends(get_ledger_store),
):
    """Verify the caller's ledger hash chain."""
    is_valid, error = store.verify_chain(request.state.org_id)
    if not is_valid:
        logger.error("Ledger chain verification failed", extra={"org_id": request.state.org_id})
    return {"valid": is_valid, "error": error}
