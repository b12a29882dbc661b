"""Role assignment and authorization for cross-account administrative actions."""

from __future__ import annotations

import logging

from .account import Identity, Role, SessionClaims
from .domains import DomainResolver, normalize_domain
from .errors import AuthorizationError, InternalError

logger = logging.getLogger(__name__)


class PrivilegedActionGate:
    """Grants the super-admin role to the owner of exactly one domain.

    The role is attached to the :class:`Identity` when the session is loaded;
    authorization checks then only look at the identity's roles.
    """

    def __init__(self, resolver: DomainResolver, privileged_domain: str) -> None:
        self._resolver = resolver
        self._privileged_domain = normalize_domain(privileged_domain)

    def load_identity(self, claims: SessionClaims) -> Identity:
        """Build the request identity, granting roles from the caller's own tenant."""
        roles: set[Role] = set()
        if self._owns_privileged_domain(claims.email):
            roles.add(Role.SUPER_ADMIN)
        return Identity(account_id=claims.account_id, email=claims.email, roles=frozenset(roles))

    def is_super_admin(self, identity: Identity) -> bool:
        return identity.has_role(Role.SUPER_ADMIN)

    def require_super_admin(self, identity: Identity) -> None:
        if not self.is_super_admin(identity):
            logger.warning("privileged action denied for account %s", identity.account_id)
            raise AuthorizationError()

    def _owns_privileged_domain(self, email: str) -> bool:
        if not self._privileged_domain:
            return False
        try:
            domain = self._resolver.owned_domain(email)
        except InternalError:
            # resolver failure never grants privileges
            logger.warning("tenant lookup failed while loading roles; granting none")
            return False
        return domain is not None and domain == self._privileged_domain
