from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Roles attached to an identity when its session is loaded."""

    SUPER_ADMIN = "super_admin"


@dataclass(slots=True)
class Account:
    """Credential-bearing account. ``password_hash`` never leaves the service."""

    account_id: str
    email: str
    password_hash: str
    created_at: datetime
    email_verified_at: datetime | None = None


@dataclass(slots=True)
class AccountSummary:
    """Account listing row joined with the owned tenant's domain."""

    account_id: str
    email: str
    domain: str | None
    created_at: datetime
    email_verified_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class SessionClaims:
    """Verified claims taken from the caller's session token."""

    account_id: str
    email: str


@dataclass(slots=True, frozen=True)
class Identity:
    """An authenticated caller plus the roles granted to it for this request."""

    account_id: str
    email: str
    roles: frozenset[Role] = field(default_factory=frozenset)

    def has_role(self, role: Role) -> bool:
        return role in self.roles
