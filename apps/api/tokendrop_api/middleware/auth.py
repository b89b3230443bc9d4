"""Authentication middleware: bearer token to principal and organization."""

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from tokendrop_api.auth.gate import AccessGate, extract_bearer_token, get_token_verifier
from tokendrop_api.db.session import SessionLocal
from tokendrop_api.errors import NoMembership, Unauthorized

logger = logging.getLogger(__name__)

PUBLIC_PATHS = {"/health", "/ready", "/docs", "/openapi.json", "/"}
PUBLIC_PREFIXES = ("/metrics", "/admin")


def is_public_path(path: str) -> bool:
    """Paths served without a bearer token (admin routes check their own token)."""
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


class AuthMiddleware(BaseHTTPMiddleware):
    """Resolve the caller's principal and org before any ledger access."""

    async def dispatch(self, request: Request, call_next):
        """Process request with tenant resolution."""
        if is_public_path(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization"))
        correlation_id = getattr(request.state, "correlation_id", None)

        db = SessionLocal()
        try:
            context = AccessGate(db, get_token_verifier()).resolve(token)
        except (Unauthorized, NoMembership) as e:
            logger.warning(
                f"Access denied: {e.message}",
                extra={"correlation_id": correlation_id, "path": request.url.path, "error_code": e.error_code},
            )
            return JSONResponse(status_code=e.status_code, content=e.to_dict())
        finally:
            db.close()

        # Tenant scope comes only from the verified token
        request.state.principal = context.principal
        request.state.org_id = context.org_id

        logger.info(
            "Authenticated request",
            extra={
                "org_id": context.org_id,
                "actor_id": context.principal.id,
                "correlation_id": correlation_id,
                "path": request.url.path,
            },
        )

        return await call_next(request)
