"""Client-facing message catalogue keyed by locale."""

from __future__ import annotations

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "missing_credentials": "Username and password are required.",
        "invalid_data": "Invalid data.",
        "username_too_short": "Username is too short.",
        "password_too_short": "Password must be at least 6 characters.",
        "wrong_credentials": "Incorrect username or password.",
        "account_inactive": "Account is not Active.",
        "account_locked": "Account is temporarily locked. Try again in {remaining_seconds} seconds.",
        "lock_triggered": (
            "More than {max_attempts} failed attempts. Account locked for {lock_minutes} minutes."
        ),
        "login_success": "Login successful.",
        "secret_missing": "JWT_ACCESS_SECRET is not set.",
        "rate_limited": "Too many requests. Try again later.",
    },
    "vi": {
        "missing_credentials": "Thiếu username hoặc password.",
        "invalid_data": "Dữ liệu không hợp lệ.",
        "username_too_short": "Username quá ngắn.",
        "password_too_short": "Password phải có ít nhất 6 ký tự.",
        "wrong_credentials": "Sai tài khoản hoặc mật khẩu.",
        "account_inactive": "Tài khoản không ở trạng thái Active.",
        "account_locked": "Tài khoản đang bị khóa tạm thời. Thử lại sau {remaining_seconds} giây.",
        "lock_triggered": "Bạn đã nhập sai quá {max_attempts} lần. Tài khoản bị khóa {lock_minutes} phút.",
        "login_success": "Đăng nhập thành công.",
        "secret_missing": "JWT_ACCESS_SECRET chưa set trong .env",
        "rate_limited": "Quá nhiều yêu cầu. Vui lòng thử lại sau.",
    },
}


def render(key: str, locale: str = DEFAULT_LOCALE, **params: object) -> str:
    """Format the message ``key`` for ``locale``, falling back to English."""
    catalogue = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    return catalogue[key].format(**params)
