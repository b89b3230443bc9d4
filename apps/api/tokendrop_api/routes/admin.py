"""Admin routes for organization and membership management."""

import hmac
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tokendrop_api.db.session import get_db
from tokendrop_api.models import OrgMember, Organization
from tokendrop_api.settings import get_settings


def require_admin_token(x_admin_token: Optional[str] = Header(None)) -> None:
    """Check the static admin token; admin routes are off when none is configured."""
    expected = get_settings().admin_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API is disabled. Set ADMIN_TOKEN to enable it.",
        )
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token.",
        )


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])


class OrganizationCreate(BaseModel):
    """Organization creation request."""

    name: str = Field(..., min_length=1)


class OrganizationResponse(BaseModel):
    """Organization response."""

    id: int
    name: str
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class MemberCreate(BaseModel):
    """Membership creation request."""

    user_id: str = Field(..., min_length=1, description="Identity provider subject")
    email: Optional[str] = None


class MemberResponse(BaseModel):
    """Membership response."""

    id: int
    org_id: int
    user_id: str
    email: Optional[str] = None

    class Config:
        from_attributes = True


@router.post("/organizations", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    db: Session = Depends(get_db),
):
    """Create a new organization."""
    existing = db.query(Organization).filter(Organization.name == org_data.name).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Organization '{org_data.name}' already exists",
        )

    organization = Organization(name=org_data.name, status="active")
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


@router.post(
    "/organizations/{org_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    org_id: int,
    member_data: MemberCreate,
    db: Session = Depends(get_db),
):
    """Add a principal to an organization."""
    organization = db.query(Organization).filter(Organization.id == org_id).first()
    if not organization:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Organization {org_id} not found",
        )

    existing = (
        db.query(OrgMember)
        .filter(OrgMember.user_id == member_data.user_id)
        .first()
    )
    if existing:
        # One organization per principal
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User {member_data.user_id} already belongs to organization {existing.org_id}",
        )

    member = OrgMember(org_id=org_id, user_id=member_data.user_id, email=member_data.email)
    db.add(member)
    db.commit()
    db.refresh(member)
    return member
