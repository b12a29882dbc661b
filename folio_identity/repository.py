"""Database repositories for accounts, reset tokens, and tenant-scoped content."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator

import psycopg
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, AccountSummary
from .domain.errors import InternalError
from .domain.tenant import Project, Tenant, WorkExperience

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResetTokenRecord:
    """Row projection of ``password_reset_tokens`` joined with the owner's email."""

    token_id: str
    account_id: str
    email: str
    expires_at: datetime
    used_at: datetime | None


@dataclass(slots=True)
class AuditEvent:
    """An ``identity_audit_log`` row written alongside the change it describes."""

    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


def _insert_audit_event(cur: psycopg.Cursor, event: AuditEvent) -> None:
    cur.execute(
        """
        INSERT INTO identity_audit_log (account_id, event_type, actor, metadata)
        VALUES (%s, %s, %s, %s)
        """,
        (event.account_id, event.event_type, event.actor, Json(event.metadata)),
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Log driver failures in full and re-raise them as :class:`InternalError`."""
    try:
        yield
    except psycopg.Error as exc:
        logger.exception("storage failure during %s", operation)
        raise InternalError() from exc


class AccountRepository:
    """Postgres-backed persistence for credentials and reset tokens."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_account_by_email(self, email: str) -> Account | None:
        """Fetch an account by exact email match."""
        with _storage_errors("find_account_by_email"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT account_id, email, password_hash, created_at, email_verified_at
                        FROM accounts
                        WHERE email = %s
                        """,
                        (email,),
                    )
                    row = cur.fetchone()
        if not row:
            return None
        return Account(*row)

    def update_password(
        self, account_id: str, password_hash: str, *, audit: AuditEvent | None = None
    ) -> None:
        """Replace an account's password hash outside of any reset flow."""
        with _storage_errors("update_password"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE accounts
                        SET password_hash = %s, updated_at = NOW()
                        WHERE account_id = %s
                        """,
                        (password_hash, account_id),
                    )
                    if audit is not None:
                        _insert_audit_event(cur, audit)
                    conn.commit()

    def list_accounts(self) -> list[AccountSummary]:
        """Return every account with its tenant domain, newest first."""
        with _storage_errors("list_accounts"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT a.account_id, a.email, p.domain, a.created_at, a.email_verified_at
                        FROM accounts a
                        LEFT JOIN profiles p ON p.account_id = a.account_id
                        ORDER BY a.created_at DESC
                        """
                    )
                    rows = cur.fetchall()
        return [AccountSummary(*row) for row in rows]

    def create_reset_token(
        self,
        *,
        account_id: str,
        token_hash: str,
        expires_at: datetime,
        audit: AuditEvent | None = None,
    ) -> str:
        """Persist the digest of a freshly issued reset secret and return its id.

        When ``audit`` is given its metadata gains the new ``token_id`` and the
        row is written in the same transaction as the token.
        """
        token_id = str(uuid.uuid4())
        with _storage_errors("create_reset_token"):
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO password_reset_tokens (token_id, account_id, token_hash, expires_at)
                        VALUES (%s, %s, %s, %s)
                        """,
                        (token_id, account_id, token_hash, expires_at),
                    )
                    if audit is not None:
                        audit.metadata["token_id"] = token_id
                        _insert_audit_event(cur, audit)
                    conn.commit()
        return token_id

    def find_reset_token(self, token_hash: str) -> ResetTokenRecord | None:
        """Return the reset token with this digest, consumed or not."""
        with _storage_errors("find_reset_token"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT t.token_id, t.account_id, a.email, t.expires_at, t.used_at
                        FROM password_reset_tokens t
                        JOIN accounts a ON a.account_id = t.account_id
                        WHERE t.token_hash = %s
                        """,
                        (token_hash,),
                    )
                    row = cur.fetchone()
        if not row:
            return None
        return ResetTokenRecord(*row)

    def consume_reset_token(
        self,
        *,
        token_id: str,
        account_id: str,
        password_hash: str,
        audit: AuditEvent | None = None,
    ) -> bool:
        """Mark a token used, replace the owner's password and record ``audit``.

        All three writes share one transaction. Returns ``False`` without
        writing anything when the token was already consumed. Under concurrent
        attempts the row lock taken by the first ``UPDATE`` makes later
        attempts re-read ``used_at`` after it commits, so only one of them can
        return ``True``.
        """
        with _storage_errors("consume_reset_token"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        UPDATE password_reset_tokens
                        SET used_at = NOW()
                        WHERE token_id = %s AND used_at IS NULL
                        RETURNING token_id
                        """,
                        (token_id,),
                    )
                    if cur.fetchone() is None:
                        conn.rollback()
                        return False

                    cur.execute(
                        """
                        UPDATE accounts
                        SET password_hash = %s, updated_at = NOW()
                        WHERE account_id = %s
                        """,
                        (password_hash, account_id),
                    )
                    if cur.rowcount != 1:
                        conn.rollback()
                        logger.error("reset token %s references missing account %s", token_id, account_id)
                        raise InternalError()
                    if audit is not None:
                        _insert_audit_event(cur, audit)
                    conn.commit()
        return True


class TenantRepository:
    """Read-only access to profiles and the content they own."""

    _PROFILE_COLUMNS = """
        p.account_id, p.domain, p.full_name, p.tagline, p.home_page_data, p.about_page_data,
        p.avatar_url, p.avatar_position, p.avatar_zoom, p.avatar_size,
        p.background_image_url, p.favicon_url, p.contact_numbers
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_tenant_by_domain(self, domain: str) -> Tenant | None:
        """Exact match on the stored normalized domain."""
        return self._fetch_tenant(
            f"SELECT {self._PROFILE_COLUMNS} FROM profiles p WHERE p.domain = %s",
            (domain,),
        )

    def find_tenant_by_owner_email(self, email: str) -> Tenant | None:
        return self._fetch_tenant(
            f"""
            SELECT {self._PROFILE_COLUMNS}
            FROM profiles p
            JOIN accounts a ON a.account_id = p.account_id
            WHERE a.email = %s
            """,
            (email,),
        )

    def _fetch_tenant(self, query: str, params: tuple[Any, ...]) -> Tenant | None:
        with _storage_errors("fetch_tenant"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, params)
                    row = cur.fetchone()
        if not row:
            return None
        *fields, contact_numbers = row
        return Tenant(*fields, contact_numbers=contact_numbers or [])

    def list_published_projects(self, account_id: str, *, featured_only: bool = False) -> list[Project]:
        """Return the owner's published projects, newest first."""
        clauses = ["account_id = %s", "published"]
        if featured_only:
            clauses.append("featured")
        query = f"""
            SELECT project_id, account_id, title, description, long_description, created_at,
                   image, tech, demo_url, github_url, featured, published, key_features
            FROM projects
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC
        """
        with _storage_errors("list_published_projects"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(query, (account_id,))
                    rows = cur.fetchall()
        return [Project(*row) for row in rows]

    def list_visible_work_experiences(self, account_id: str) -> list[WorkExperience]:
        """Return visible work experiences, current roles first."""
        with _storage_errors("list_visible_work_experiences"):
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT experience_id, account_id, company, position, start_date, created_at,
                               location, end_date, is_current, visible, description
                        FROM work_experiences
                        WHERE account_id = %s AND visible
                        ORDER BY is_current DESC, end_date DESC NULLS FIRST, start_date DESC
                        """,
                        (account_id,),
                    )
                    rows = cur.fetchall()
        return [WorkExperience(*row) for row in rows]

    def ping(self) -> None:
        """Run a trivial query so health checks exercise the pool."""
        with _storage_errors("ping"):
            with self._pool.connection() as conn:
                conn.execute("SELECT 1")
