"""
auth/dependencies.py -- Request-time dealer scoping for FastAPI routes.

Two auth sources are checked in priority order:
  1. Cookie ("access_token") -- set by POST /dealers/login.
  2. Authorization: Bearer <assertion> header -- API clients.

Both carry the same signed identity assertion and converge on an Identity.

try_get_identity() is the soft variant (returns None on failure).
require_identity() raises Unauthenticated and also performs sliding renewal
by re-setting the cookie on the outgoing response.
authorize_ownership() is the ownership check every single-car route runs.

Identity is passed explicitly into every handler as a dependency argument;
there is no ambient "current dealer".

Layer rule: auth/dependencies.py may import from fastapi because it is part of
the FastAPI dependency injection system. No imports from api/ or inventory/.
"""

from __future__ import annotations

from fastapi import Request, Response

from auth.models import Identity
from auth.session import SessionAuthority
from auth.tokens import AUTH_COOKIE, set_auth_cookie
from core.errors import ResourceNotFound, Unauthenticated


def _read_assertion(request: Request) -> str | None:
    value: str | None = request.cookies.get(AUTH_COOKIE)
    if not value:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            value = auth_header[7:]
    return value or None


def try_get_identity(request: Request) -> Identity | None:
    """Resolve the request's identity, or None if it has no valid assertion."""
    authority: SessionAuthority = request.app.state.session_authority
    try:
        return authority.resolve_identity(_read_assertion(request))
    except Unauthenticated:
        return None


def require_identity(request: Request, response: Response) -> Identity:
    """Require a valid identity. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/cars")
        def route(identity: Identity = Depends(require_identity)): ...
    """
    authority: SessionAuthority = request.app.state.session_authority
    identity = authority.resolve_identity(_read_assertion(request))
    renewed = authority.renew(identity)
    if renewed is not None:
        set_auth_cookie(response, renewed.value, renewed.expires_at)
    return identity


def authorize_ownership(dealer_id: int, resource_dealer_id: int | None) -> None:
    """Raise ResourceNotFound unless the resource belongs to dealer_id.

    A missing resource (resource_dealer_id=None) and another dealer's resource
    produce the identical error, so callers learn nothing about rows they do
    not own.
    """
    if resource_dealer_id is None or resource_dealer_id != dealer_id:
        raise ResourceNotFound()
