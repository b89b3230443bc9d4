"""Pytest configuration and fixtures for ledger, workflow and route tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tokendrop_api.chain.adapter import CommitReceipt, get_commit_adapter
from tokendrop_api.db.base import Base
from tokendrop_api.db.session import get_db
from tokendrop_api.models import OrgMember, Organization
from tokendrop_api.settings import get_settings

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

OPERATOR_ID = "operator-1"
OTHER_OPERATOR_ID = "operator-2"
WALLET = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0x2222222222222222222222222222222222222222"


class FakeCommitAdapter:
    """In-memory external ledger that records every call."""

    def __init__(self, holdings: Optional[list[int]] = None, approved: bool = False):
        self.holdings = list(holdings or [])
        self.approved = approved
        self.calls: list[tuple] = []
        self.commit_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None
        self._next_id = 0
        self._next_token = max(self.holdings, default=0) + 1

    @property
    def commit_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("claim_to", "bulk_send", "set_approval_for_all")]

    def _receipt(self, operation: str) -> CommitReceipt:
        if self.commit_error is not None:
            raise self.commit_error
        self._next_id += 1
        return CommitReceipt(commit_id=f"0x{self._next_id:064x}", operation=operation)

    async def claim_to(self, collection_address, to_address, quantity):
        self.calls.append(("claim_to", collection_address, to_address, quantity))
        receipt = self._receipt("claim")
        for _ in range(quantity):
            self.holdings.append(self._next_token)
            self._next_token += 1
        return receipt

    async def bulk_send(self, collection_address, to_address, token_ids):
        self.calls.append(("bulk_send", collection_address, to_address, list(token_ids)))
        receipt = self._receipt("send")
        self.holdings = [token_id for token_id in self.holdings if token_id not in token_ids]
        return receipt

    async def set_approval_for_all(self, collection_address, owner_address, operator_address, approved):
        self.calls.append(("set_approval_for_all", collection_address, owner_address, operator_address, approved))
        receipt = self._receipt("approval")
        self.approved = approved
        return receipt

    async def is_approved_for_all(self, collection_address, owner_address, operator_address):
        self.calls.append(("is_approved_for_all", collection_address, owner_address, operator_address))
        if self.read_error is not None:
            raise self.read_error
        return self.approved

    async def owned_token_ids(self, collection_address, owner_address):
        self.calls.append(("owned_token_ids", collection_address, owner_address))
        if self.read_error is not None:
            raise self.read_error
        return list(self.holdings)


@pytest.fixture(scope="function")
def engine():
    """Database engine shared by the test session and the auth middleware."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        test_engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        test_engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def organization(db: Session) -> Organization:
    """Organization the default operator belongs to."""
    org = Organization(name="org-a", status="active")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def other_organization(db: Session) -> Organization:
    """A second tenant."""
    org = Organization(name="org-b", status="active")
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def member(db: Session, organization: Organization) -> OrgMember:
    membership = OrgMember(org_id=organization.id, user_id=OPERATOR_ID, email="op@example.com")
    db.add(membership)
    db.commit()
    return membership


@pytest.fixture
def other_member(db: Session, other_organization: Organization) -> OrgMember:
    membership = OrgMember(org_id=other_organization.id, user_id=OTHER_OPERATOR_ID, email="op2@example.com")
    db.add(membership)
    db.commit()
    return membership


def make_token(
    subject: Optional[str] = OPERATOR_ID,
    email: str = "op@example.com",
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
) -> str:
    """Mint an identity-provider style access token."""
    settings = get_settings()
    claims = {
        "email": email,
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    if subject is not None:
        claims["sub"] = subject
    return jwt.encode(claims, secret or settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(subject: str = OPERATOR_ID) -> dict:
    return {"Authorization": f"Bearer {make_token(subject)}"}


@pytest.fixture
def adapter() -> FakeCommitAdapter:
    return FakeCommitAdapter()


@pytest.fixture
def client(db: Session, session_factory, adapter: FakeCommitAdapter):
    """Test client wired to the test database and the fake commit adapter."""
    from tokendrop_api.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_commit_adapter] = lambda: adapter
    with patch("tokendrop_api.middleware.auth.SessionLocal", session_factory):
        with TestClient(app) as test_client:
            yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def headers(member) -> dict:
    """Bearer headers for the default operator."""
    return auth_headers(OPERATOR_ID)


@pytest.fixture
def other_headers(other_member) -> dict:
    return auth_headers(OTHER_OPERATOR_ID)
