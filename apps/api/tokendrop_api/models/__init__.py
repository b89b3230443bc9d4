"""Database models - import all models here for Alembic discovery."""

from tokendrop_api.models.ledger import DistributionEvent
from tokendrop_api.models.tenant import OrgMember, Organization

__all__ = [
    "Organization",
    "OrgMember",
    "DistributionEvent",
]
