"""Shape checks applied to raw login input before any account lookup."""

from __future__ import annotations

from enum import Enum
from typing import Any

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class InputRejection(str, Enum):
    missing_credentials = "missing_credentials"
    invalid_data = "invalid_data"
    username_too_short = "username_too_short"
    password_too_short = "password_too_short"


def validate_login_input(username: Any, password: Any) -> InputRejection | None:
    """Return the first rejection reason for the raw credentials, or ``None``.

    Checks run in a fixed order and stop at the first failure: presence, type,
    trimmed username length, then password length. The password is measured
    as given, without trimming.
    """
    if not username or not password:
        return InputRejection.missing_credentials
    if not isinstance(username, str) or not isinstance(password, str):
        return InputRejection.invalid_data
    if len(username.strip()) < MIN_USERNAME_LENGTH:
        return InputRejection.username_too_short
    if len(password) < MIN_PASSWORD_LENGTH:
        return InputRejection.password_too_short
    return None
