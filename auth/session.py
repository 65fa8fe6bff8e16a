"""
auth/session.py -- SessionAuthority: login, logout, identity resolution, renewal.

Lifecycle per dealer:
  NoSession -> Authenticated               authenticate() writes the session row
  Authenticated -> Authenticated'          authenticate() again rotates the token
  Authenticated -> Authenticated (later)   renew() slides the expiry forward
  Authenticated -> (effectively) none      assertion expiry or terminate()

The session row is written with one upsert keyed on dealer_id, so there is
never more than one live token per dealer.

resolve_identity() never writes. Sliding renewal is a separate renew() call
made by the request guard, so resolving the same assertion twice always
gives the same answer.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from auth.models import Identity, IdentityAssertion, SessionToken
from auth.store import DealerStore
from auth.tokens import (
    burn_password_check,
    create_identity_assertion,
    decode_identity_assertion,
    generate_session_token,
    hash_session_token,
    session_token_matches,
    verify_password,
)
from core.config import Settings, get_settings
from core.errors import InvalidCredentials, Unauthenticated, ValidationFailed

logger = logging.getLogger("dealerapi.auth")


class SessionAuthority:
    def __init__(self, store: DealerStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    @property
    def lifetime(self) -> timedelta:
        return timedelta(days=self.settings.session_lifetime_days)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def authenticate(self, name: str, password: str) -> IdentityAssertion:
        """Verify credentials and open (or rotate) the dealer's session.

        bcrypt runs whether or not the name exists, and both failure paths
        raise the same InvalidCredentials, so callers cannot enumerate names.
        """
        if not name or not password:
            raise ValidationFailed("Name and password are required.")

        dealer = self.store.get_by_name(name)
        if dealer is None:
            burn_password_check(password)
            logger.info("Login rejected (credentials)")
            raise InvalidCredentials()
        if not verify_password(password, dealer.hashed_password):
            logger.info("Login rejected (credentials)")
            raise InvalidCredentials()

        token = generate_session_token()
        now = datetime.now(timezone.utc)
        expires_at = now + self.lifetime
        self.store.upsert_session(
            SessionToken(
                dealer_id=dealer.id,
                token_hash=hash_session_token(token),
                issued_at=now,
                expires_at=expires_at,
            )
        )
        logger.info("Session issued for dealer=%s tok=%s… exp=%s", dealer.id, token[:6], expires_at.isoformat())
        return IdentityAssertion(
            value=create_identity_assertion(dealer.id, dealer.name, token, expires_at, issued_at=now),
            dealer_id=dealer.id,
            name=dealer.name,
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def terminate(self, identity: Identity | None) -> None:
        """End the caller's session.

        The transport always discards the client cookie. The stored session
        row is only deleted when REVOKE_ON_LOGOUT is set; by default it
        survives and simply stops being presented.
        """
        if identity is None:
            return
        if self.settings.revoke_on_logout:
            self.store.delete_session(identity.dealer_id)
            logger.info("Session revoked for dealer=%s", identity.dealer_id)
        else:
            logger.info("Logout for dealer=%s (session row kept)", identity.dealer_id)

    # ------------------------------------------------------------------
    # Per-request resolution
    # ------------------------------------------------------------------

    def resolve_identity(self, assertion: str | None) -> Identity:
        """Return the Identity behind an inbound assertion or raise Unauthenticated.

        Signature, expiry and claim shape are always checked. In strict mode
        (VERIFY_SESSION_TOKEN, the default) the embedded token must also match
        the dealer's live session row, so a token superseded by a later login
        or revoked on logout is rejected straight away.
        """
        if not assertion:
            raise Unauthenticated()
        payload = decode_identity_assertion(assertion)
        if payload is None:
            raise Unauthenticated()

        identity = Identity(
            dealer_id=payload["dealer_id"],
            name=payload.get("sub", ""),
            token=payload["tok"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

        if self.settings.verify_session_token:
            session = self.store.get_session(identity.dealer_id)
            if session is None or not session_token_matches(identity.token, session.token_hash):
                raise Unauthenticated()
            if session.expires_at <= datetime.now(timezone.utc):
                raise Unauthenticated()
        return identity

    # ------------------------------------------------------------------
    # Sliding expiration
    # ------------------------------------------------------------------

    def needs_renewal(self, identity: Identity) -> bool:
        """True once more than half of the assertion's window has elapsed."""
        if not self.settings.sliding_expiration:
            return False
        now = datetime.now(timezone.utc)
        return now - identity.issued_at > (identity.expires_at - identity.issued_at) / 2

    def renew(self, identity: Identity) -> IdentityAssertion | None:
        """Re-mint the assertion with a fresh window, keeping the same token value.

        Returns None when no renewal is due, or when the stored session no
        longer carries this token (it was rotated or revoked meanwhile). That holds
        in lenient mode too: a stale assertion keeps only its own expiry.
        """
        if not self.needs_renewal(identity):
            return None
        now = datetime.now(timezone.utc)
        expires_at = now + self.lifetime
        if not self.store.extend_session(identity.dealer_id, hash_session_token(identity.token), expires_at):
            return None
        logger.debug("Session renewed for dealer=%s exp=%s", identity.dealer_id, expires_at.isoformat())
        return IdentityAssertion(
            value=create_identity_assertion(identity.dealer_id, identity.name, identity.token, expires_at, issued_at=now),
            dealer_id=identity.dealer_id,
            name=identity.name,
            expires_at=expires_at,
        )
