from __future__ import annotations

import pytest

from folio_identity.domain.account import Identity, Role, SessionClaims
from folio_identity.domain.errors import AuthorizationError
from folio_identity.domain.gate import PrivilegedActionGate


def _claims(account) -> SessionClaims:
    return SessionClaims(account_id=account.account_id, email=account.email)


@pytest.mark.parametrize("stored_domain", ["macm.dev", "www.macm.dev", "MACM.dev"])
def test_owner_of_privileged_domain_is_super_admin(account_repo, tenant_repo, gate, stored_domain):
    admin = account_repo.add_account("admin@macm.dev")
    tenant_repo.add_tenant(admin, stored_domain)

    identity = gate.load_identity(_claims(admin))

    assert identity.has_role(Role.SUPER_ADMIN)
    assert gate.is_super_admin(identity)
    gate.require_super_admin(identity)


@pytest.mark.parametrize("domain", ["example.com", "macm.dev.evil.com", "evilmacm.dev", "sub.macm.dev"])
def test_other_domains_are_not_privileged(account_repo, tenant_repo, gate, domain):
    owner = account_repo.add_account("owner@example.com")
    tenant_repo.add_tenant(owner, domain)

    identity = gate.load_identity(_claims(owner))

    assert identity.roles == frozenset()
    assert not gate.is_super_admin(identity)
    with pytest.raises(AuthorizationError):
        gate.require_super_admin(identity)


def test_account_without_tenant_is_not_privileged(account_repo, gate):
    account = account_repo.add_account("nodomain@example.com")

    assert not gate.is_super_admin(gate.load_identity(_claims(account)))


def test_resolver_failure_fails_closed(account_repo, tenant_repo, gate):
    admin = account_repo.add_account("admin@macm.dev")
    tenant_repo.add_tenant(admin, "macm.dev")
    tenant_repo.fail = True

    identity = gate.load_identity(_claims(admin))

    assert not gate.is_super_admin(identity)


def test_role_comes_from_identity_not_from_email(gate):
    forged = Identity(account_id="x", email="admin@macm.dev")
    granted = Identity(account_id="x", email="anyone@example.com", roles=frozenset({Role.SUPER_ADMIN}))

    assert not gate.is_super_admin(forged)
    assert gate.is_super_admin(granted)


def test_empty_privileged_domain_grants_nobody(account_repo, tenant_repo, resolver):
    gate = PrivilegedActionGate(resolver, "")
    owner = account_repo.add_account("owner@example.com")
    tenant_repo.add_tenant(owner, "example.com")

    assert not gate.is_super_admin(gate.load_identity(_claims(owner)))
