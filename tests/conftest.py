from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from folio_identity.api import routes, tenants
from folio_identity.api.errors import register_exception_handlers
from folio_identity.config import Settings, get_settings
from folio_identity.domain.account import Account, AccountSummary
from folio_identity.domain.domains import DomainResolver, normalize_domain
from folio_identity.domain.errors import InternalError
from folio_identity.domain.gate import PrivilegedActionGate
from folio_identity.domain.portfolio import PortfolioService
from folio_identity.domain.service import AccountService
from folio_identity.domain.tenant import Project, Tenant, WorkExperience
from folio_identity.repository import AuditEvent, ResetTokenRecord
from folio_identity.security import passwords
from folio_identity.security.passwords import CredentialManager
from folio_identity.security.rate_limit import InMemoryRateLimiter
from folio_identity.security.tokens import hash_reset_token, issue_session_token

PRIVILEGED_DOMAIN = "macm.dev"


@dataclass
class FakeResetToken:
    token_id: str
    account_id: str
    expires_at: datetime
    used_at: datetime | None = None


class FakeAccountRepository:
    """In-memory repository mimicking the Postgres account tables."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.reset_tokens: dict[str, FakeResetToken] = {}
        self.audit_log: list[dict[str, Any]] = []
        self.password_writes: list[str] = []
        self.fail_writes = False
        self.fail_audit = False
        self._lock = Lock()

    def add_account(self, email: str, password: str = "changeme123") -> Account:
        account = Account(
            account_id=str(uuid.uuid4()),
            email=email,
            password_hash=CredentialManager().hash(password),
            created_at=datetime.now(timezone.utc),
        )
        self.accounts[account.account_id] = account
        return account

    def add_reset_token(
        self,
        account: Account,
        raw_token: str,
        *,
        expires_in: timedelta = timedelta(hours=1),
    ) -> FakeResetToken:
        token = FakeResetToken(
            token_id=str(uuid.uuid4()),
            account_id=account.account_id,
            expires_at=datetime.now(timezone.utc) + expires_in,
        )
        self.reset_tokens[hash_reset_token(raw_token)] = token
        return token

    def get(self, email: str) -> Account:
        account = self.find_account_by_email(email)
        assert account is not None
        return account

    def find_account_by_email(self, email: str) -> Account | None:
        for account in self.accounts.values():
            if account.email == email:
                return account
        return None

    def update_password(
        self, account_id: str, password_hash: str, *, audit: AuditEvent | None = None
    ) -> None:
        if self.fail_writes:
            raise InternalError()
        self._check_audit(audit)
        self.accounts[account_id].password_hash = password_hash
        self.password_writes.append(account_id)
        self._record_audit(audit)

    def list_accounts(self) -> list[AccountSummary]:
        return [
            AccountSummary(
                account_id=account.account_id,
                email=account.email,
                domain=None,
                created_at=account.created_at,
            )
            for account in sorted(self.accounts.values(), key=lambda a: a.created_at, reverse=True)
        ]

    def create_reset_token(
        self,
        *,
        account_id: str,
        token_hash: str,
        expires_at: datetime,
        audit: AuditEvent | None = None,
    ) -> str:
        self._check_audit(audit)
        token = FakeResetToken(token_id=str(uuid.uuid4()), account_id=account_id, expires_at=expires_at)
        self.reset_tokens[token_hash] = token
        if audit is not None:
            audit.metadata["token_id"] = token.token_id
        self._record_audit(audit)
        return token.token_id

    def find_reset_token(self, token_hash: str) -> ResetTokenRecord | None:
        token = self.reset_tokens.get(token_hash)
        if token is None:
            return None
        return ResetTokenRecord(
            token_id=token.token_id,
            account_id=token.account_id,
            email=self.accounts[token.account_id].email,
            expires_at=token.expires_at,
            used_at=token.used_at,
        )

    def consume_reset_token(
        self,
        *,
        token_id: str,
        account_id: str,
        password_hash: str,
        audit: AuditEvent | None = None,
    ) -> bool:
        with self._lock:
            if self.fail_writes:
                raise InternalError()
            token = next(t for t in self.reset_tokens.values() if t.token_id == token_id)
            if token.used_at is not None:
                return False
            self._check_audit(audit)
            token.used_at = datetime.now(timezone.utc)
            self.accounts[account_id].password_hash = password_hash
            self.password_writes.append(account_id)
            self._record_audit(audit)
            return True

    def _check_audit(self, audit: AuditEvent | None) -> None:
        # a failed audit insert rolls back the whole write
        if audit is not None and self.fail_audit:
            raise InternalError()

    def _record_audit(self, audit: AuditEvent | None) -> None:
        if audit is not None:
            self.audit_log.append(
                {
                    "account_id": audit.account_id,
                    "event_type": audit.event_type,
                    "actor": audit.actor,
                    "metadata": audit.metadata,
                }
            )


class FakeTenantRepository:
    """In-memory stand-in for profiles, projects, and work experiences."""

    def __init__(self, accounts: FakeAccountRepository) -> None:
        self._accounts = accounts
        self.tenants: dict[str, Tenant] = {}
        self.projects: list[Project] = []
        self.work_experiences: list[WorkExperience] = []
        self.fail = False

    def add_tenant(self, account: Account, domain: str, **fields: Any) -> Tenant:
        tenant = Tenant(account_id=account.account_id, domain=normalize_domain(domain), **fields)
        self.tenants[tenant.domain] = tenant
        return tenant

    def find_tenant_by_domain(self, domain: str) -> Tenant | None:
        if self.fail:
            raise InternalError()
        return self.tenants.get(domain)

    def find_tenant_by_owner_email(self, email: str) -> Tenant | None:
        if self.fail:
            raise InternalError()
        account = self._accounts.find_account_by_email(email)
        if account is None:
            return None
        for tenant in self.tenants.values():
            if tenant.account_id == account.account_id:
                return tenant
        return None

    def list_published_projects(self, account_id: str, *, featured_only: bool = False) -> list[Project]:
        if self.fail:
            raise InternalError()
        items = [p for p in self.projects if p.account_id == account_id and p.published]
        if featured_only:
            items = [p for p in items if p.featured]
        return sorted(items, key=lambda p: p.created_at, reverse=True)

    def list_visible_work_experiences(self, account_id: str) -> list[WorkExperience]:
        items = [w for w in self.work_experiences if w.account_id == account_id and w.visible]
        return sorted(items, key=lambda w: (w.is_current, w.start_date), reverse=True)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Lower the bcrypt work factor so the suite stays quick."""
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def account_repo() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def tenant_repo(account_repo) -> FakeTenantRepository:
    return FakeTenantRepository(account_repo)


@pytest.fixture
def resolver(tenant_repo) -> DomainResolver:
    return DomainResolver(tenant_repo)


@pytest.fixture
def gate(resolver) -> PrivilegedActionGate:
    return PrivilegedActionGate(resolver, PRIVILEGED_DOMAIN)


@pytest.fixture
def account_service(account_repo) -> AccountService:
    return AccountService(account_repo)


@pytest.fixture
def app_settings() -> Settings:
    return Settings(environment="development")


@pytest.fixture
def api_client(account_repo, tenant_repo, resolver, gate, account_service, app_settings):
    """Provide a FastAPI test client wired to the in-memory repositories."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(routes.router)
    app.include_router(tenants.router)
    app.state.account_service = account_service
    app.state.portfolio_service = PortfolioService(resolver, tenant_repo)
    app.state.gate = gate
    app.dependency_overrides[get_settings] = lambda: app_settings

    original_limiter = routes.rate_limiter
    routes.rate_limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60)

    with TestClient(app) as client:
        yield client

    routes.rate_limiter = original_limiter


@pytest.fixture
def auth_headers():
    """Return a helper building bearer headers for an account."""

    def _headers(account: Account) -> dict[str, str]:
        token = issue_session_token(account_id=account.account_id, email=account.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
