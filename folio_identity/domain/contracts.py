"""Domain-level request and result contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class ResetPasswordInput:
    """Self-service reset request: the raw link secret plus the claimed owner."""

    email: str
    token: str
    new_password: str


@dataclass(slots=True)
class UpdatePasswordInput:
    """Authenticated password change; ``current_password`` is optional."""

    new_password: str
    current_password: str | None = None


@dataclass(slots=True)
class ForcedResetResult:
    """Outcome of a privileged reset. ``temp_password`` is withheld in production."""

    email: str
    temp_password: str | None = None


@dataclass(slots=True)
class ResetLinkResult:
    """Outcome of issuing a reset link. ``token`` is withheld in production."""

    email: str
    expires_at: datetime
    token: str | None = None
