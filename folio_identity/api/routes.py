"""HTTP routes for credential workflows and super-admin account actions."""

from __future__ import annotations

import hashlib
from datetime import datetime
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from .dependencies import get_account_service, get_gate, get_identity
from .errors import internal_failure
from ..config import Settings, get_settings
from ..domain.account import AccountSummary, Identity
from ..domain.contracts import ResetPasswordInput, UpdatePasswordInput
from ..domain.errors import RateLimitedError
from ..domain.gate import PrivilegedActionGate
from ..domain.service import AccountService
from ..security.rate_limit import RateLimiter, build_rate_limiter

router = APIRouter(prefix="/v1")


class ResetPasswordRequest(BaseModel):
    """Body posted from the reset-password page."""

    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    token: str | None = None
    new_password: str | None = Field(default=None, alias="newPassword")


class UpdatePasswordRequest(BaseModel):
    """Body for an authenticated password change."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str | None = Field(default=None, alias="currentPassword")
    new_password: str | None = Field(default=None, alias="newPassword")


class TargetAccountRequest(BaseModel):
    email: str | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class ForcedResetResponse(BaseModel):
    """Result of a privileged reset; ``tempPassword`` only appears outside production."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    temp_password: str | None = Field(default=None, alias="tempPassword")


class ResetLinkResponse(BaseModel):
    """Result of issuing a reset link; ``resetUrl`` only appears outside production."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    expires_at: datetime = Field(alias="expiresAt")
    reset_url: str | None = Field(default=None, alias="resetUrl")


class AccountSummaryResponse(BaseModel):
    id: str
    email: str
    domain: str
    created_at: str
    email_confirmed_at: str | None

    @classmethod
    def from_domain(cls, summary: AccountSummary) -> "AccountSummaryResponse":
        return cls(
            id=summary.account_id,
            email=summary.email,
            domain=summary.domain or "",
            created_at=summary.created_at.isoformat(),
            email_confirmed_at=summary.email_verified_at.isoformat() if summary.email_verified_at else None,
        )


rate_limiter: RateLimiter = build_rate_limiter(get_settings())


def _rate_key(email: str | None) -> str:
    digest = hashlib.sha256((email or "").lower().encode("utf-8")).hexdigest()[:12]
    return f"reset:{digest}"


@router.post("/auth/reset-password", response_model=SuccessResponse)
def reset_password(
    payload: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
) -> SuccessResponse:
    """Consume a reset link and set a new password."""
    if not rate_limiter.allow(_rate_key(payload.email)):
        raise RateLimitedError()
    with internal_failure("Failed to reset password"):
        service.reset_password(
            ResetPasswordInput(
                email=payload.email or "",
                token=payload.token or "",
                new_password=payload.new_password or "",
            )
        )
    return SuccessResponse()


@router.post("/auth/update-password", response_model=SuccessResponse)
def update_password(
    payload: UpdatePasswordRequest,
    identity: Identity = Depends(get_identity),
    service: AccountService = Depends(get_account_service),
) -> SuccessResponse:
    """Change the signed-in account's password."""
    with internal_failure("Failed to update password"):
        service.update_password(
            identity,
            UpdatePasswordInput(
                new_password=payload.new_password or "",
                current_password=payload.current_password,
            ),
        )
    return SuccessResponse()


@router.post(
    "/admin/reset-password-for-user",
    response_model=ForcedResetResponse,
    response_model_exclude_none=True,
)
def reset_password_for_user(
    payload: TargetAccountRequest,
    identity: Identity = Depends(get_identity),
    gate: PrivilegedActionGate = Depends(get_gate),
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
) -> ForcedResetResponse:
    """Force a temporary password onto another account."""
    gate.require_super_admin(identity)
    with internal_failure("Failed to reset password"):
        result = service.forced_reset(identity, payload.email or "", production=settings.is_production)
    message = (
        "Password reset; the temporary password will be delivered to the account owner"
        if result.temp_password is None
        else "Password reset; share the temporary password with the account owner"
    )
    return ForcedResetResponse(message=message, temp_password=result.temp_password)


@router.post(
    "/admin/reset-links",
    response_model=ResetLinkResponse,
    response_model_exclude_none=True,
)
def issue_reset_link(
    payload: TargetAccountRequest,
    identity: Identity = Depends(get_identity),
    gate: PrivilegedActionGate = Depends(get_gate),
    service: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
) -> ResetLinkResponse:
    """Issue a single-use reset link for another account."""
    gate.require_super_admin(identity)
    with internal_failure("Failed to create reset link"):
        result = service.issue_reset_link(identity, payload.email or "", production=settings.is_production)

    reset_url = None
    if result.token is not None:
        query = urlencode({"token": result.token, "email": result.email})
        reset_url = f"{settings.public_base_url.rstrip('/')}/reset-password?{query}"
    return ResetLinkResponse(message="Password reset link created", expires_at=result.expires_at, reset_url=reset_url)


@router.get("/admin/users", response_model=list[AccountSummaryResponse])
def list_users(
    identity: Identity = Depends(get_identity),
    gate: PrivilegedActionGate = Depends(get_gate),
    service: AccountService = Depends(get_account_service),
) -> list[AccountSummaryResponse]:
    """List every account on the platform with its claimed domain."""
    gate.require_super_admin(identity)
    with internal_failure("Failed to fetch users"):
        summaries = service.list_accounts()
    return [AccountSummaryResponse.from_domain(summary) for summary in summaries]
