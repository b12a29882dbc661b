"""Tenant-scoped public reads keyed by custom domain."""

from __future__ import annotations

from typing import Protocol

from .domains import DomainResolver
from .errors import NotFoundError
from .tenant import Project, Tenant, WorkExperience


class TenantContent(Protocol):
    def list_published_projects(self, account_id: str, *, featured_only: bool = False) -> list[Project]: ...

    def list_visible_work_experiences(self, account_id: str) -> list[WorkExperience]: ...


class PortfolioService:
    """Reads scoped to whichever tenant owns the requested domain.

    Collections come back empty for an unclaimed domain; the profile, being a
    single entity, raises :class:`NotFoundError` instead.
    """

    def __init__(self, resolver: DomainResolver, content: TenantContent) -> None:
        self._resolver = resolver
        self._content = content

    def get_profile(self, host: str | None) -> Tenant:
        tenant = self._resolver.resolve_host(host)
        if tenant is None:
            raise NotFoundError("Profile not found")
        return tenant

    def list_projects(self, host: str | None, *, featured_only: bool = False) -> list[Project]:
        tenant = self._resolver.resolve_host(host)
        if tenant is None:
            return []
        return self._content.list_published_projects(tenant.account_id, featured_only=featured_only)

    def list_work_experiences(self, host: str | None) -> list[WorkExperience]:
        tenant = self._resolver.resolve_host(host)
        if tenant is None:
            return []
        return self._content.list_visible_work_experiences(tenant.account_id)
