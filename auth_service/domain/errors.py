"""Login failure taxonomy.

Each error carries a stable ``kind`` string and a ``details`` mapping of extra
fields for the response body. HTTP status codes are assigned by the API layer.
"""

from __future__ import annotations

from typing import Any


class LoginError(Exception):
    """Base class for every terminal login failure."""

    kind = "login_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(LoginError):
    kind = "invalid_input"


class AuthenticationFailed(LoginError):
    """Unknown username or wrong password; the two are indistinguishable."""

    kind = "authentication_failed"


class AccountDisabled(LoginError):
    kind = "account_disabled"


class AccountLocked(LoginError):
    """Account is inside a lock window, or this attempt just opened one."""

    kind = "account_locked"


class ConfigurationError(LoginError):
    """Server-side misconfiguration, such as a missing signing secret."""

    kind = "configuration_error"
