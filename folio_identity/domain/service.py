"""Account service orchestrating credential changes, reset tokens, and auditing."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .account import Account, AccountSummary, Identity
from .contracts import ForcedResetResult, ResetLinkResult, ResetPasswordInput, UpdatePasswordInput
from .errors import (
    IncorrectPassword,
    InvalidResetLink,
    NotFoundError,
    ResetLinkExpired,
    ResetLinkUsed,
    ValidationError,
)
from ..repository import AuditEvent, ResetTokenRecord
from ..security.passwords import CredentialManager, generate_temporary_password
from ..security.tokens import generate_reset_token, hash_reset_token

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    def find_account_by_email(self, email: str) -> Account | None: ...

    def update_password(
        self, account_id: str, password_hash: str, *, audit: AuditEvent | None = None
    ) -> None: ...

    def list_accounts(self) -> list[AccountSummary]: ...

    def create_reset_token(
        self,
        *,
        account_id: str,
        token_hash: str,
        expires_at: datetime,
        audit: AuditEvent | None = None,
    ) -> str: ...

    def find_reset_token(self, token_hash: str) -> ResetTokenRecord | None: ...

    def consume_reset_token(
        self,
        *,
        token_id: str,
        account_id: str,
        password_hash: str,
        audit: AuditEvent | None = None,
    ) -> bool: ...


class AccountService:
    """Credential workflows backed by Postgres storage.

    None of the mutating methods retry. A caller that sees an ambiguous failure
    must call again and let validation re-read the stored state; a reset that
    comes back as :class:`ResetLinkUsed` is not a success.
    """

    def __init__(
        self,
        repository: CredentialStore,
        credentials: CredentialManager | None = None,
        *,
        reset_token_ttl: timedelta = timedelta(hours=1),
    ) -> None:
        self._repository = repository
        self._credentials = credentials or CredentialManager()
        self._reset_token_ttl = reset_token_ttl

    def reset_password(self, payload: ResetPasswordInput) -> None:
        """Validate a reset link and consume it while setting the new password.

        Parameters
        ----------
        payload:
            The raw link secret, the email the caller claims owns it, and the
            new plaintext password.

        Raises
        ------
        ValidationError
            Missing email/token, or a password below the length floor.
        InvalidResetLink
            Unknown secret, or a secret presented with a different email.
        ResetLinkUsed
            The token was consumed earlier, including by a concurrent request
            that committed first.
        ResetLinkExpired
            The token is unconsumed but past its expiry.
        """
        if not payload.email:
            raise ValidationError("email is required")
        if not payload.token:
            raise ValidationError("token is required")

        record = self._repository.find_reset_token(hash_reset_token(payload.token))
        # unknown and mismatched tokens must be indistinguishable to the caller
        if record is None or record.email != payload.email:
            logger.info("reset rejected: invalid link")
            raise InvalidResetLink()
        if record.used_at is not None:
            logger.info("reset rejected: token %s already used", record.token_id)
            raise ResetLinkUsed()
        if datetime.now(timezone.utc) > record.expires_at:
            logger.info("reset rejected: token %s expired", record.token_id)
            raise ResetLinkExpired()

        password_hash = self._credentials.hash(payload.new_password)
        consumed = self._repository.consume_reset_token(
            token_id=record.token_id,
            account_id=record.account_id,
            password_hash=password_hash,
            audit=AuditEvent(
                account_id=record.account_id,
                event_type="password.reset",
                actor=record.account_id,
                metadata={"token_id": record.token_id},
            ),
        )
        if not consumed:
            logger.info("reset rejected: token %s consumed concurrently", record.token_id)
            raise ResetLinkUsed()

        logger.info("password reset completed for account %s", record.account_id)

    def update_password(self, identity: Identity, payload: UpdatePasswordInput) -> None:
        """Change the caller's own password.

        ``current_password`` is checked only when supplied, matching accounts
        that were provisioned with a temporary credential.
        """
        self._credentials.check_policy(payload.new_password)

        account = self._repository.find_account_by_email(identity.email)
        if account is None:
            raise NotFoundError("User not found")

        if payload.current_password and not self._credentials.verify(
            payload.current_password, account.password_hash
        ):
            raise IncorrectPassword()

        self._repository.update_password(
            account.account_id,
            self._credentials.hash(payload.new_password),
            audit=AuditEvent(
                account_id=account.account_id,
                event_type="password.updated",
                actor=identity.account_id,
                metadata={"verified_current": bool(payload.current_password)},
            ),
        )

    def forced_reset(self, actor: Identity, target_email: str, *, production: bool) -> ForcedResetResult:
        """Replace another account's password with a random temporary one.

        The temporary credential is only returned when ``production`` is false;
        in production it must reach the owner through a separate channel.
        Authorization is the caller's responsibility.
        """
        if not target_email:
            raise ValidationError("email is required")
        account = self._repository.find_account_by_email(target_email)
        if account is None:
            raise NotFoundError("User not found")

        temp_password = generate_temporary_password()
        self._repository.update_password(
            account.account_id,
            self._credentials.hash(temp_password),
            audit=AuditEvent(
                account_id=account.account_id,
                event_type="password.forced_reset",
                actor=actor.account_id,
                metadata={"production": production},
            ),
        )
        logger.info("account %s password force-reset by %s", account.account_id, actor.account_id)
        return ForcedResetResult(
            email=account.email,
            temp_password=None if production else temp_password,
        )

    def issue_reset_link(self, actor: Identity, target_email: str, *, production: bool) -> ResetLinkResult:
        """Create a single-use reset token for ``target_email``.

        Only the SHA-256 digest is stored. The raw secret is handed back when
        ``production`` is false; otherwise it is left to the delivery channel.
        """
        if not target_email:
            raise ValidationError("email is required")
        account = self._repository.find_account_by_email(target_email)
        if account is None:
            raise NotFoundError("User not found")

        token, token_hash = generate_reset_token()
        expires_at = datetime.now(timezone.utc) + self._reset_token_ttl
        token_id = self._repository.create_reset_token(
            account_id=account.account_id,
            token_hash=token_hash,
            expires_at=expires_at,
            audit=AuditEvent(
                account_id=account.account_id,
                event_type="reset_token.issued",
                actor=actor.account_id,
                metadata={"expires_at": expires_at.isoformat()},
            ),
        )
        logger.info("reset token %s issued for account %s", token_id, account.account_id)
        return ResetLinkResult(
            email=account.email,
            expires_at=expires_at,
            token=None if production else token,
        )

    def list_accounts(self) -> list[AccountSummary]:
        return self._repository.list_accounts()
