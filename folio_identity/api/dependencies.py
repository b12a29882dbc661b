"""FastAPI dependencies resolving services and the caller identity."""

from __future__ import annotations

from fastapi import Depends, Header, Request

from ..domain.account import Identity
from ..domain.errors import AuthenticationError
from ..domain.gate import PrivilegedActionGate
from ..domain.portfolio import PortfolioService
from ..domain.service import AccountService
from ..security.tokens import decode_session_token


def get_account_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_portfolio_service(request: Request) -> PortfolioService:
    service: PortfolioService = request.app.state.portfolio_service
    return service


def get_gate(request: Request) -> PrivilegedActionGate:
    gate: PrivilegedActionGate = request.app.state.gate
    return gate


def get_identity(
    authorization: str | None = Header(default=None),
    gate: PrivilegedActionGate = Depends(get_gate),
) -> Identity:
    """Verify the bearer session token and load the caller's roles."""
    if not authorization:
        raise AuthenticationError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()
    claims = decode_session_token(token.strip())
    return gate.load_identity(claims)
