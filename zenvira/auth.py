import logging
from typing import Optional

from fastapi import Request

from .database import Database, canonical_id
from .errors import Forbidden, Unauthenticated
from .identity import IdentityProvider, Principal

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_identity(request: Request) -> IdentityProvider:
    return request.app.state.identity


async def require_auth(request: Request) -> Principal:
    principal = get_identity(request).get_session(request.headers)
    if principal is None:
        raise Unauthenticated("Authentication required")
    request.state.principal = principal
    return principal


def require_role(*roles: str):
    """Build a dependency admitting only the given roles.

    Must be listed after ``require_auth`` in a route's dependencies.
    """

    async def role_dep(request: Request) -> Principal:
        principal = getattr(request.state, "principal", None)
        if principal is None:
            raise Unauthenticated("Authentication required")
        if principal.role not in roles:
            logger.info("Role %s denied on %s %s", principal.role, request.method, request.url.path)
            raise Forbidden("Insufficient permissions")
        return principal

    return role_dep


def resolve_seller_id(principal: Principal, requested: Optional[str] = None) -> Optional[str]:
    """Admins may act on any seller; everyone else is scoped to themselves."""
    if principal.role == "admin" and requested:
        return canonical_id(requested) or requested
    return principal.id
