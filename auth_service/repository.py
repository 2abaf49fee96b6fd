"""Account storage contract and the in-process implementation."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from typing import Iterable, Protocol

from .domain.account import Account, FailureState, normalize_username


class AccountStore(Protocol):
    """Storage operations the authenticator depends on.

    Implementations hand out detached snapshots: mutating a returned
    ``Account`` never changes stored state. The only write path for lockout
    bookkeeping is :meth:`compare_and_update_failure_state`.
    """

    def add(self, account: Account) -> None: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def find_by_username(self, username: str) -> Account | None: ...

    def list_accounts(self) -> list[Account]: ...

    def compare_and_update_failure_state(
        self, account_id: str, expected: FailureState, new: FailureState
    ) -> bool: ...


class InMemoryAccountStore:
    """Dictionary-backed store with one lock per account."""

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: dict[str, Account] = {}
        self._ids_by_username: dict[str, str] = {}
        self._account_locks: dict[str, Lock] = {}
        self._registry_lock = Lock()
        for account in accounts:
            self.add(account)

    def add(self, account: Account) -> None:
        """Register an account; usernames must be unique after normalisation."""
        key = normalize_username(account.username)
        with self._registry_lock:
            if account.id in self._accounts:
                raise ValueError(f"account id already exists: {account.id}")
            if key in self._ids_by_username:
                raise ValueError(f"username already exists: {account.username}")
            self._accounts[account.id] = replace(account)
            self._ids_by_username[key] = account.id
            self._account_locks[account.id] = Lock()

    def get_account(self, account_id: str) -> Account | None:
        with self._registry_lock:
            account = self._accounts.get(account_id)
            lock = self._account_locks.get(account_id)
        if account is None or lock is None:
            return None
        with lock:
            return replace(account)

    def find_by_username(self, username: str) -> Account | None:
        """Case-insensitive, whitespace-trimmed lookup."""
        with self._registry_lock:
            account_id = self._ids_by_username.get(normalize_username(username))
        if account_id is None:
            return None
        return self.get_account(account_id)

    def list_accounts(self) -> list[Account]:
        with self._registry_lock:
            ids = list(self._accounts)
        return [account for account in map(self.get_account, ids) if account is not None]

    def compare_and_update_failure_state(
        self, account_id: str, expected: FailureState, new: FailureState
    ) -> bool:
        """Write ``new`` only if the stored state still equals ``expected``."""
        with self._registry_lock:
            account = self._accounts.get(account_id)
            lock = self._account_locks.get(account_id)
        if account is None or lock is None:
            return False
        with lock:
            if account.failure_state != expected:
                return False
            account.failed_attempts = new.failed_attempts
            account.locked_until = new.locked_until
            return True
