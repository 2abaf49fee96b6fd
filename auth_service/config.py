from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os
import re

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> int:
    """Convert values such as ``"15m"``, ``"1h"`` or ``"900"`` to seconds."""
    match = _DURATION_RE.match(value.lower())
    if match is None:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    seconds = int(amount) * _DURATION_UNITS[unit]
    if seconds <= 0:
        raise ValueError(f"duration must be positive: {value!r}")
    return seconds


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to FastAPI components."""

    app_name: str = "auth-service"
    version: str = "0.1.0"
    http_host: str = os.getenv("HTTP_HOST", "0.0.0.0")
    http_port: int = int(os.getenv("PORT", "3000"))
    jwt_secret: str = os.getenv("JWT_ACCESS_SECRET", "")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "")
    jwt_ttl_seconds: int = parse_duration(os.getenv("ACCESS_EXPIRES_IN", "15m"))
    locale: str = os.getenv("LOGIN_LOCALE", "en").lower()
    debug_endpoints_enabled: bool = _env_flag("DEBUG_ENDPOINTS_ENABLED")
    require_signing_secret: bool = _env_flag("REQUIRE_SIGNING_SECRET")
    account_store_backend: str = os.getenv("ACCOUNT_STORE_BACKEND", "memory").lower()
    redis_url: str = os.getenv("REDIS_URL", "")
    rate_limit_requests: int = int(os.getenv("RATE_LIMIT_REQUESTS", "20"))
    rate_limit_window_seconds: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
    seed_admin_password: str = os.getenv("SEED_ADMIN_PASSWORD", "123456")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
