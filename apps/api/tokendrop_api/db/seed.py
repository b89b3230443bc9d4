"""Seed data for development and testing."""

from typing import Optional

from sqlalchemy.orm import Session

from tokendrop_api.models import OrgMember, Organization


def seed_organization(db: Session, name: str = "demo") -> Organization:
    """Seed a demo organization."""
    organization = db.query(Organization).filter(Organization.name == name).first()
    if not organization:
        organization = Organization(name=name, status="active")
        db.add(organization)
        db.flush()
    return organization


def seed_member(db: Session, organization: Organization, user_id: str, email: Optional[str] = None) -> OrgMember:
    """Seed an operator membership."""
    member = (
        db.query(OrgMember)
        .filter(OrgMember.org_id == organization.id, OrgMember.user_id == user_id)
        .first()
    )
    if not member:
        member = OrgMember(org_id=organization.id, user_id=user_id, email=email)
        db.add(member)
        db.flush()
    return member


def seed_all(db: Session, user_id: str = "demo-operator", email: Optional[str] = "operator@example.com"):
    """Seed all initial data."""
    organization = seed_organization(db)
    seed_member(db, organization, user_id, email)
    db.commit()
    return organization
