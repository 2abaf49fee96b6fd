"""Login workflow: input checks, lockout bookkeeping, and token issuance."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from .account import (
    Account,
    AccountStatus,
    FailureState,
    PublicUser,
    normalize_username,
    resolve_status,
)
from .errors import (
    AccountDisabled,
    AccountLocked,
    AuthenticationFailed,
    ConfigurationError,
    InvalidInput,
)
from .validation import validate_login_input
from .. import messages
from ..config import Settings, get_settings
from ..repository import AccountStore
from ..security.passwords import verify_password
from ..security.tokens import issue_access_token

logger = logging.getLogger(__name__)

MAX_FAILED_ATTEMPTS = 5
LOCK_DURATION = timedelta(minutes=10)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class LoginResult:
    """Successful login outcome returned to the transport layer."""

    message: str
    status: AccountStatus
    access_token: str
    expires_in: int
    user: PublicUser


class Authenticator:
    """Runs a single login attempt against an account store.

    The sequence short-circuits at the first failing step: input validation,
    account lookup, the ``enabled`` flag, an active lock, then password
    verification. A wrong password increments the failure counter and opens a
    lock once ``max_failed_attempts`` is reached. A correct password clears both
    counters before a token is issued.
    """

    def __init__(
        self,
        store: AccountStore,
        settings: Settings | None = None,
        *,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        lock_duration: timedelta = LOCK_DURATION,
        clock: Callable[[], datetime] = utc_now,
        password_verifier: Callable[[str, str], bool] = verify_password,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._max_failed_attempts = max_failed_attempts
        self._lock_duration = lock_duration
        self._clock = clock
        self._verify = password_verifier

    def account_overview(self) -> list[tuple[Account, AccountStatus]]:
        """Return every stored account with its status derived at the current time."""
        now = self._clock()
        return [(account, resolve_status(account, now)) for account in self._store.list_accounts()]

    def _msg(self, key: str, **params: Any) -> str:
        return messages.render(key, self._settings.locale, **params)

    def login(self, username: Any, password: Any) -> LoginResult:
        """Authenticate raw credentials and return a signed token on success.

        Raises
        ------
        InvalidInput, AuthenticationFailed, AccountDisabled, AccountLocked, ConfigurationError
            One per terminal failure; see :mod:`auth_service.domain.errors`.
        """
        rejection = validate_login_input(username, password)
        if rejection is not None:
            raise InvalidInput(self._msg(rejection.value), reason=rejection.value)

        account = self._store.find_by_username(normalize_username(username))
        if account is None:
            logger.info("login rejected: unknown username")
            raise AuthenticationFailed(self._msg("wrong_credentials"))

        self._ensure_can_attempt(account)

        if not self._verify(password, account.password_hash):
            self._record_failure(account)  # always raises

        self._record_success(account)
        return self._issue(account)

    def _ensure_can_attempt(self, account: Account) -> None:
        # enabled is checked before the lock window, unlike resolve_status
        if not account.enabled:
            logger.info("login rejected: account %s disabled", account.id)
            raise AccountDisabled(self._msg("account_inactive"))

        now = self._clock()
        if account.is_locked(now):
            remaining_seconds = math.ceil((account.locked_until - now).total_seconds())
            raise AccountLocked(
                self._msg("account_locked", remaining_seconds=remaining_seconds),
                remaining_seconds=remaining_seconds,
            )

    def _reload(self, account_id: str) -> Account:
        account = self._store.get_account(account_id)
        if account is None:
            raise AuthenticationFailed(self._msg("wrong_credentials"))
        self._ensure_can_attempt(account)
        return account

    def _record_failure(self, account: Account) -> None:
        """Persist one more failed attempt and raise the matching error."""
        while True:
            now = self._clock()
            expected = account.failure_state
            failed_attempts = expected.failed_attempts + 1
            lock_triggered = failed_attempts >= self._max_failed_attempts
            locked_until = now + self._lock_duration if lock_triggered else expected.locked_until
            new = FailureState(failed_attempts, locked_until)
            if self._store.compare_and_update_failure_state(account.id, expected, new):
                break
            # another attempt changed the account first
            account = self._reload(account.id)

        if lock_triggered:
            logger.warning(
                "account %s locked after %s failed attempts until %s",
                account.id,
                failed_attempts,
                locked_until.isoformat(),
            )
            raise AccountLocked(
                self._msg(
                    "lock_triggered",
                    max_attempts=self._max_failed_attempts,
                    lock_minutes=int(self._lock_duration.total_seconds() // 60),
                ),
                failed_attempts=failed_attempts,
                locked_until=locked_until,
                lock_triggered=True,
            )

        logger.info("login rejected: wrong password for account %s (%s)", account.id, failed_attempts)
        raise AuthenticationFailed(
            self._msg("wrong_credentials"),
            failed_attempts=failed_attempts,
            remaining_attempts=self._max_failed_attempts - failed_attempts,
        )

    def _record_success(self, account: Account) -> None:
        cleared = FailureState()
        while True:
            expected = account.failure_state
            if expected == cleared:
                return
            if self._store.compare_and_update_failure_state(account.id, expected, cleared):
                return
            account = self._reload(account.id)

    def _issue(self, account: Account) -> LoginResult:
        if not self._settings.jwt_secret:
            logger.warning("login for account %s aborted: signing secret not configured", account.id)
            raise ConfigurationError(self._msg("secret_missing"))

        token, expires_in = issue_access_token(
            subject=account.id, role=account.role, settings=self._settings
        )
        logger.info("account %s logged in", account.id)
        return LoginResult(
            message=self._msg("login_success"),
            status=AccountStatus.active,
            access_token=token,
            expires_in=expires_in,
            user=PublicUser.from_account(account),
        )
