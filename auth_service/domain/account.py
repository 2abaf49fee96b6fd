from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountStatus(str, Enum):
    """Derived account status; never stored."""

    active = "Active"
    locked = "Locked"
    inactive = "Inactive"


@dataclass(frozen=True, slots=True)
class FailureState:
    """The pair of fields a failed or successful login is allowed to write."""

    failed_attempts: int = 0
    locked_until: datetime | None = None


@dataclass(slots=True)
class Account:
    """Login identity with its lockout bookkeeping."""

    id: str
    username: str
    password_hash: str
    enabled: bool = True
    failed_attempts: int = 0
    locked_until: datetime | None = None
    role: str = "user"
    name: str = ""

    @property
    def failure_state(self) -> FailureState:
        return FailureState(self.failed_attempts, self.locked_until)

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


@dataclass(frozen=True, slots=True)
class PublicUser:
    """Account projection safe to return to clients."""

    id: str
    username: str
    role: str
    name: str

    @classmethod
    def from_account(cls, account: Account) -> "PublicUser":
        return cls(id=account.id, username=account.username, role=account.role, name=account.name)


def normalize_username(username: str) -> str:
    """Return the lookup key for a username: trimmed and lower-cased."""
    return username.strip().lower()


def resolve_status(account: Account, now: datetime) -> AccountStatus:
    """Derive the account status at ``now``.

    An active lock takes precedence over the administrative ``enabled`` flag, so
    a disabled account that is still inside its lock window reports ``Locked``.
    """
    if account.is_locked(now):
        return AccountStatus.locked
    if not account.enabled:
        return AccountStatus.inactive
    return AccountStatus.active
