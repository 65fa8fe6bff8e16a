"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
SessionAuthority do the work.

Layer rule: no imports from api/ or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Dealer:
    """A tenant account. name doubles as the login handle.

    Dealers are provisioned out-of-band (see main.py create-dealer) and are
    never mutated by the API.
    """

    name: str
    hashed_password: str  # bcrypt
    id: int | None = None
    created_at: str | None = None


@dataclass
class SessionToken:
    """The single server-held session credential for a dealer.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token only
    ever lives inside the signed identity assertion held by the client.
    """

    dealer_id: int
    token_hash: str
    expires_at: datetime
    issued_at: datetime | None = None


@dataclass(frozen=True)
class Identity:
    """A resolved identity assertion: who is calling and under which session."""

    dealer_id: int
    name: str
    token: str  # raw session token carried in the assertion
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IdentityAssertion:
    """A freshly minted assertion, ready for the transport to hand to the client."""

    value: str  # encoded JWT
    dealer_id: int
    name: str
    expires_at: datetime
