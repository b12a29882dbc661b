from __future__ import annotations

import time

import jwt
import pytest

from folio_identity.config import get_settings
from folio_identity.domain.errors import AuthenticationError
from folio_identity.security.tokens import decode_session_token, issue_session_token


def _encode(payload: dict, secret: str | None = None) -> str:
    settings = get_settings()
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm="HS256")


def test_session_token_round_trip():
    token = issue_session_token(account_id="acc-1", email="u@x.com")

    claims = decode_session_token(token)

    assert claims.account_id == "acc-1"
    assert claims.email == "u@x.com"


@pytest.mark.parametrize(
    "payload_overrides",
    [
        {"exp": int(time.time()) - 10},
        {"iss": "someone-else"},
        {"email": ""},
        {"email": None},
    ],
)
def test_invalid_session_tokens_are_rejected(payload_overrides):
    settings = get_settings()
    now = int(time.time())
    payload = {"iss": settings.jwt_issuer, "sub": "acc-1", "email": "u@x.com", "iat": now, "exp": now + 60}
    payload.update(payload_overrides)

    with pytest.raises(AuthenticationError):
        decode_session_token(_encode(payload))


def test_session_token_signed_with_other_secret_is_rejected():
    settings = get_settings()
    now = int(time.time())
    token = _encode(
        {"iss": settings.jwt_issuer, "sub": "acc-1", "email": "u@x.com", "exp": now + 60},
        secret="another-secret-that-is-long-enough-for-hs256",
    )

    with pytest.raises(AuthenticationError):
        decode_session_token(token)


def test_session_token_without_expiry_is_rejected():
    settings = get_settings()
    token = _encode({"iss": settings.jwt_issuer, "sub": "acc-1", "email": "u@x.com"})

    with pytest.raises(AuthenticationError):
        decode_session_token(token)
