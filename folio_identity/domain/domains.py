"""Custom-domain normalization and tenant resolution."""

from __future__ import annotations

import logging
import re
from typing import Protocol

from .errors import ValidationError
from .tenant import Tenant

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_PATH_DELIMITERS = re.compile(r"[/?#]")


def normalize_domain(host: str) -> str:
    """Canonicalise a raw host, URL, or domain string.

    Scheme, userinfo, path, port, trailing dots, and leading ``www.`` labels
    are removed and the result is lowercased, so ``"HTTPS://www.Example.com/"``
    and ``"example.com"`` both become ``"example.com"``. Applying the function
    to its own output returns the same value.
    """
    value = host
    while True:
        stripped = _strip_once(value)
        if stripped == value:
            return value
        value = stripped


def _strip_once(host: str) -> str:
    value = host.strip().lower()
    value = _SCHEME_RE.sub("", value, count=1)
    value = _PATH_DELIMITERS.split(value, maxsplit=1)[0]
    value = value.rpartition("@")[2]

    if value.startswith("["):
        # bracketed IPv6 literal, keep up to the closing bracket
        end = value.find("]")
        value = value[: end + 1] if end != -1 else value
    else:
        value = value.split(":", 1)[0]

    value = value.rstrip(".")
    while value.startswith("www."):
        value = value[len("www."):]
    return value


class TenantLookup(Protocol):
    def find_tenant_by_domain(self, domain: str) -> Tenant | None: ...

    def find_tenant_by_owner_email(self, email: str) -> Tenant | None: ...


class DomainResolver:
    """Resolve normalized domains to tenants.

    Lookups are read-only, so results can be cached or retried freely by
    callers.
    """

    def __init__(self, repository: TenantLookup) -> None:
        self._repository = repository

    def resolve(self, domain: str) -> Tenant | None:
        """Exact-match lookup of an already normalized domain."""
        if not domain:
            return None
        return self._repository.find_tenant_by_domain(domain)

    def resolve_host(self, host: str | None) -> Tenant | None:
        """Normalize ``host`` and resolve it.

        Raises
        ------
        ValidationError
            When ``host`` is missing or normalizes to an empty string. A missing
            domain is a bad request, never "no tenant".
        """
        if host is None or not host.strip():
            raise ValidationError("Domain is required")
        domain = normalize_domain(host)
        if not domain:
            raise ValidationError("Domain is required")
        tenant = self.resolve(domain)
        if tenant is None:
            logger.debug("no tenant bound to domain %s", domain)
        return tenant

    def owned_domain(self, email: str) -> str | None:
        """Return the normalized domain of the tenant owned by ``email``, if any."""
        tenant = self._repository.find_tenant_by_owner_email(email)
        if tenant is None or not tenant.domain:
            return None
        return normalize_domain(tenant.domain)
