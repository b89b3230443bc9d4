"""Access gate: bearer token to verified principal and organization."""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Protocol

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from tokendrop_api.errors import NoMembership, Unauthorized
from tokendrop_api.models import OrgMember, Organization
from tokendrop_api.settings import get_settings

logger = logging.getLogger(__name__)

_BEARER_RE = re.compile(r"^Bearer (.+)$")


@dataclass(frozen=True)
class Principal:
    """An authenticated actor; never persisted by the core."""

    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AccessContext:
    """Verified principal plus the only org id used for tenant scoping."""

    principal: Principal
    org_id: int


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Principal:
        ...


class JWTTokenVerifier:
    """Verify identity-provider access tokens signed with a shared secret."""

    def __init__(self, secret: str, algorithm: str = "HS256", audience: Optional[str] = None):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    def verify(self, token: str) -> Principal:
        """Decode and validate a token.

        Raises:
            Unauthorized: if the token is malformed, badly signed or expired
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except ExpiredSignatureError:
            raise Unauthorized("Token expired") from None
        except JWTError as e:
            raise Unauthorized("Invalid token") from e

        subject = claims.get("sub")
        if not subject:
            raise Unauthorized("Token has no subject")
        return Principal(id=str(subject), email=claims.get("email"))


@lru_cache()
def get_token_verifier() -> TokenVerifier:
    """Get cached verifier configured from settings."""
    settings = get_settings()
    return JWTTokenVerifier(
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        audience=settings.jwt_audience,
    )


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header value."""
    match = _BEARER_RE.match(authorization or "")
    return match.group(1).strip() if match else None


class AccessGate:
    """Resolve a bearer token to ``(principal, org_id)``."""

    def __init__(self, db: Session, verifier: Optional[TokenVerifier] = None):
        self.db = db
        self.verifier = verifier or get_token_verifier()

    def resolve_org(self, principal: Principal) -> int:
        """Org id of the principal's single active membership.

        Raises:
            NoMembership: for zero or more than one membership
        """
        memberships = (
            self.db.query(OrgMember)
            .join(Organization, Organization.id == OrgMember.org_id)
            .filter(
                OrgMember.user_id == principal.id,
                Organization.status == "active",
            )
            .limit(2)
            .all()
        )
        if not memberships:
            raise NoMembership("No organization membership", user_id=principal.id)
        if len(memberships) > 1:
            raise NoMembership("Ambiguous organization membership", user_id=principal.id)
        return memberships[0].org_id

    def resolve(self, token: Optional[str]) -> AccessContext:
        """Verify the token and resolve the tenant.

        Raises:
            Unauthorized: missing or invalid token
            NoMembership: valid principal without a resolvable org
        """
        if not token:
            raise Unauthorized("Missing bearer token. Provide Authorization: Bearer <token>.")
        principal = self.verifier.verify(token)
        return AccessContext(principal=principal, org_id=self.resolve_org(principal))
