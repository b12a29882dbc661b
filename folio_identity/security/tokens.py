"""Session token verification and reset-link secrets."""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Any

import jwt

from ..config import get_settings
from ..domain.account import SessionClaims
from ..domain.errors import AuthenticationError

RESET_TOKEN_BYTES = 32


def issue_session_token(*, account_id: str, email: str) -> str:
    """Create a signed session JWT for an account.

    Sessions are normally minted by the identity provider in front of this
    service; this helper exists for provisioning scripts and tests.

    Parameters
    ----------
    account_id:
        Account identifier embedded in the ``sub`` claim.
    email:
        Account email embedded in the ``email`` claim.
    """

    settings = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": account_id,
        "email": email,
        "iat": now,
        "exp": now + settings.jwt_ttl_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


def decode_session_token(token: str) -> SessionClaims:
    """Verify a session JWT and return its claims.

    Raises
    ------
    AuthenticationError
        When the signature, issuer, or expiry check fails, or when the token
        lacks the ``sub``/``email`` claims.
    """

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationError() from exc

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise AuthenticationError()
    return SessionClaims(account_id=str(payload["sub"]), email=email)


def generate_reset_token() -> tuple[str, str]:
    """Generate a reset-link secret and its SHA-256 digest."""
    token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
    return token, hash_reset_token(token)


def hash_reset_token(token: str) -> str:
    """Return the SHA-256 hex digest used to look up a reset token.

    Reset secrets carry 256 bits of entropy, so a fast deterministic digest is
    enough; bcrypt here would only add latency to every reset attempt.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
