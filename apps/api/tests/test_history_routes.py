"""Tests for the ledger history endpoints."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tokendrop_api.ledger.records import SEND, EventDraft
from tokendrop_api.ledger.store import LedgerStore


def record(db: Session, org_id: int, commit_id: str, actor_id: str = "operator-1"):
    return LedgerStore(db).append(
        org_id,
        actor_id,
        EventDraft(
            kind=SEND,
            recipient_address="0x2222",
            quantity=1,
            item_ids="7",
            external_commit_id=commit_id,
            counterparty_name="Alice",
        ),
    )


def test_history_requires_token(client: TestClient):
    response = client.get("/history")
    assert response.status_code == 401
    assert response.json()["error_code"] == "unauthorized"


def test_history_rejects_invalid_token(client: TestClient, member):
    response = client.get("/history", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_history_rejects_expired_token(client: TestClient, member, token_factory):
    token = token_factory(expires_in=timedelta(seconds=-10))
    response = client.get("/history", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_history_without_membership_is_forbidden(client: TestClient, organization, token_factory):
    response = client.get("/history", headers={"Authorization": f"Bearer {token_factory('stranger')}"})
    assert response.status_code == 403
    assert response.json()["error_code"] == "no_membership"


def test_history_invalid_date_is_bad_request(client: TestClient, headers):
    response = client.get("/history", params={"start": "2024-02-30"}, headers=headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "invalid_range"
    assert body["start"] == "2024-02-30"


@pytest.mark.parametrize("start", ["2024-6-1", " 2024-06-01"])
def test_history_rejects_loose_date_formats(client: TestClient, headers, start):
    response = client.get("/history", params={"start": start}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "invalid_range"


def test_history_accepts_extreme_calendar_dates(client: TestClient, db: Session, headers, member):
    entry = record(db, member.org_id, "0x01")

    response = client.get("/history", params={"start": "0001-01-01", "end": "9999-12-31"}, headers=headers)

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["data"]] == [entry.id]


def test_history_lists_own_org_newest_first(client: TestClient, db: Session, headers, member):
    first = record(db, member.org_id, "0x01")
    second = record(db, member.org_id, "0x02")

    response = client.get("/history", headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [second.id, first.id]
    assert data[0]["created_at"].endswith("Z")
    assert data[0]["org_id"] == member.org_id


def test_history_is_tenant_scoped(client: TestClient, db: Session, headers, other_headers, member, other_member):
    record(db, member.org_id, "org-a")
    record(db, other_member.org_id, "org-b", actor_id="operator-2")

    own = client.get("/history", headers=headers).json()["data"]
    # Query parameters cannot widen the scope
    widened = client.get("/history", params={"org_id": other_member.org_id}, headers=headers).json()["data"]
    other = client.get("/history", headers=other_headers).json()["data"]

    assert [item["external_commit_id"] for item in own] == ["org-a"]
    assert [item["external_commit_id"] for item in widened] == ["org-a"]
    assert [item["external_commit_id"] for item in other] == ["org-b"]


def test_record_history_assigns_org_and_actor(client: TestClient, db: Session, headers, member, other_member):
    payload = {
        "kind": "SEND",
        "recipient_address": "0x2222",
        "quantity": 2,
        "item_ids": "3 | 4",
        "external_commit_id": "0xabc",
        "counterparty_email": "alice@example.com",
        "org_id": other_member.org_id,
        "actor_id": "someone-else",
    }

    response = client.post("/history", json=payload, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    events = LedgerStore(db).query_range(member.org_id)
    assert [event.id for event in events] == [body["id"]]
    assert events[0].actor_id == "operator-1"
    assert LedgerStore(db).query_range(other_member.org_id) == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"quantity": 0},
        {"kind": "BURN"},
        {"recipient_address": ""},
        {"external_commit_id": ""},
    ],
)
def test_record_history_validates_body(client: TestClient, headers, overrides):
    payload = {
        "kind": "SEND",
        "recipient_address": "0x2222",
        "quantity": 1,
        "item_ids": "3",
        "external_commit_id": "0xabc",
    }
    payload.update(overrides)
    response = client.post("/history", json=payload, headers=headers)
    assert response.status_code == 422


def test_export_returns_csv(client: TestClient, db: Session, headers, member):
    record(db, member.org_id, "0xabc")

    response = client.get("/history/export", params={"start": "2024-06-01"}, headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="nft_history_2024-06-01_to_now.csv"' in response.headers["content-disposition"]
    lines = response.text.strip().split("\n")
    assert lines[0].startswith('"Timestamp","Type"')
    assert len(lines) == 2
    assert '"0xabc"' in lines[1]


def test_export_empty_range(client: TestClient, headers):
    response = client.get("/history/export", params={"start": "2000-01-01", "end": "2000-01-01"}, headers=headers)
    assert response.status_code == 200
    assert response.text.strip().count("\n") == 0


def test_verify_reports_intact_chain(client: TestClient, db: Session, headers, member):
    record(db, member.org_id, "0x01")
    record(db, member.org_id, "0x02")

    response = client.get("/history/verify", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"valid": True, "error": None}


def test_response_carries_correlation_id(client: TestClient, headers):
    response = client.get("/history", headers={**headers, "x-correlation-id": "corr-123"})
    assert response.headers["x-correlation-id"] == "corr-123"
