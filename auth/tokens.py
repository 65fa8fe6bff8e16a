"""
auth/tokens.py -- Password hashing, session tokens, and identity assertions.

Security design decisions:
  Passwords: bcrypt, used directly. Salted and adaptive, so a leaked dealers
       table does not give up passwords to a fast dictionary attack. The
       _DUMMY_HASH constant lets SessionAuthority.authenticate() run bcrypt
       even for unknown names, so response time does not reveal whether a
       dealer name exists.

  Session tokens: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       store keeps only HMAC-SHA256(SECRET_KEY, token) so a database leak
       cannot be replayed without also knowing SECRET_KEY. Deterministic HMAC
       (not bcrypt) because the comparison runs on every request.

  Identity assertions: python-jose JWT, HS256, signed with SECRET_KEY.
       Claims: sub (dealer name), dealer_id, tok (raw session token), iat, exp.
       Decoding returns None on any failure -- SessionAuthority turns that
       into Unauthenticated.

Layer rule: no imports from api/ or inventory/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("dealerapi.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

AUTH_COOKIE = "access_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


# bcrypt 5 rejects input beyond 72 bytes; older releases silently truncated it.
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    """True if the UTF-8 encoding of plain exceeds bcrypt's 72-byte input limit."""
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Callers reject input where password_too_long() is true first; the limit
    is in bytes, so 72 multibyte characters can already be too long.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("dealerapi_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded. Used for unknown names."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


def hash_session_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


def session_token_matches(raw_token: str, token_hash: str) -> bool:
    """Constant-time comparison of a raw token against a stored hash."""
    return hmac.compare_digest(hash_session_token(raw_token), token_hash)


# ---------------------------------------------------------------------------
# Identity assertion (JWT) encode / decode
# ---------------------------------------------------------------------------


def create_identity_assertion(
    dealer_id: int,
    name: str,
    token: str,
    expires_at: datetime,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT binding a dealer to their current session token.

    Args:
        dealer_id:  Numeric dealer ID stored in the DB.
        name:       Dealer name, stored as the JWT subject claim.
        token:      Raw session token. Strict mode compares it to the stored hash.
        expires_at: Absolute expiry of the assertion.
        issued_at:  Defaults to now. Sliding renewal compares against it.
    """
    payload = {
        "sub": name,
        "dealer_id": dealer_id,
        "tok": token,
        "iat": issued_at or datetime.now(timezone.utc),
        "exp": expires_at,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_identity_assertion(value: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired assertions, bad signatures, and payloads missing a required claim
    all come back as None.
    """
    try:
        payload = jwt.decode(value, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("dealer_id"), int) or not payload.get("tok") or "iat" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, value: str, expires_at: datetime) -> None:
    """Write the identity assertion as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the assertion expiry so both lapse together.
    """
    max_age = max(int((expires_at - datetime.now(timezone.utc)).total_seconds()), 0)
    response.set_cookie(
        AUTH_COOKIE,
        value=value,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max_age,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE, httponly=True, samesite="lax", secure=_settings.secure_cookies)
