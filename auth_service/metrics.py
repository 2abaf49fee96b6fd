"""Prometheus instruments for the login flow."""

from __future__ import annotations

from prometheus_client import Counter

LOGIN_ATTEMPTS = Counter(
    "auth_login_attempts",
    "Login attempts by outcome.",
    ["outcome"],
)

ACCOUNT_LOCKOUTS = Counter(
    "auth_account_lockouts",
    "Accounts locked after reaching the failed attempt threshold.",
)
