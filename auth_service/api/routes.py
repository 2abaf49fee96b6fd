"""HTTP route definitions for the auth service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .. import messages
from ..config import Settings
from ..domain.account import Account, AccountStatus, PublicUser
from ..domain.errors import (
    AccountDisabled,
    AccountLocked,
    AuthenticationFailed,
    ConfigurationError,
    InvalidInput,
    LoginError,
)
from ..domain.service import Authenticator
from ..metrics import ACCOUNT_LOCKOUTS, LOGIN_ATTEMPTS
from ..security.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_FAILED = "Login Failed"
LOCKED = "Locked"

# error kind -> (HTTP status, body status label)
_ERROR_STATUS: dict[str, tuple[int, str | None]] = {
    InvalidInput.kind: (status.HTTP_400_BAD_REQUEST, LOGIN_FAILED),
    AuthenticationFailed.kind: (status.HTTP_401_UNAUTHORIZED, LOGIN_FAILED),
    AccountDisabled.kind: (status.HTTP_403_FORBIDDEN, LOCKED),
    AccountLocked.kind: (status.HTTP_423_LOCKED, LOCKED),
    ConfigurationError.kind: (status.HTTP_500_INTERNAL_SERVER_ERROR, None),
}


class LoginRequest(BaseModel):
    """Raw login body; field types are checked by the authenticator, not here."""

    model_config = ConfigDict(extra="ignore")

    username: Any = None
    password: Any = None


class UserResponse(BaseModel):
    """Public projection of the authenticated account."""

    id: str
    username: str
    role: str
    name: str

    @classmethod
    def from_domain(cls, user: PublicUser) -> "UserResponse":
        return cls(id=user.id, username=user.username, role=user.role, name=user.name)


class LoginResponse(BaseModel):
    """Body returned after a successful login."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    status: AccountStatus
    access_token: str = Field(..., alias="accessToken")
    expires_in: int = Field(..., alias="expiresIn")
    user: UserResponse


class LoginErrorResponse(BaseModel):
    """Body returned for every rejected login."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    status: str | None = None
    error: str
    reason: str | None = None
    failed_attempts: int | None = Field(default=None, alias="failedAttempts")
    remaining_attempts: int | None = Field(default=None, alias="remainingAttempts")
    locked_until: datetime | None = Field(default=None, alias="lockedUntil")
    retry_after_seconds: int | None = Field(default=None, alias="retryAfterSeconds")


class DebugAccountEntry(BaseModel):
    """Diagnostic view of an account's lockout bookkeeping."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    enabled: bool
    failed_attempts: int = Field(..., alias="failedAttempts")
    locked_until: datetime | None = Field(default=None, alias="lockedUntil")
    account_status: AccountStatus = Field(..., alias="accountStatus")

    @classmethod
    def from_domain(cls, account: Account, account_status: AccountStatus) -> "DebugAccountEntry":
        return cls(
            username=account.username,
            enabled=account.enabled,
            failed_attempts=account.failed_attempts,
            locked_until=account.locked_until,
            account_status=account_status,
        )


def get_service(request: Request) -> Authenticator:
    """Resolve the `Authenticator` stored on the FastAPI application state."""
    service: Authenticator = request.app.state.authenticator
    return service


def get_app_settings(request: Request) -> Settings:
    """Resolve the `Settings` stored on the FastAPI application state."""
    settings: Settings = request.app.state.settings
    return settings


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Resolve the login rate limiter stored on the FastAPI application state."""
    limiter: SlidingWindowRateLimiter = request.app.state.rate_limiter
    return limiter


async def read_login_body(request: Request) -> LoginRequest:
    """Parse the JSON body leniently; anything but a JSON object counts as empty.

    Malformed, non-JSON and non-object bodies reach the authenticator as missing
    credentials instead of failing framework validation.
    """
    try:
        data = await request.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}
    return LoginRequest.model_validate(data)


@router.post(
    "/api/auth/login",
    response_model=LoginResponse,
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": LoginRequest.model_json_schema()}},
        }
    },
    responses={
        400: {"model": LoginErrorResponse},
        401: {"model": LoginErrorResponse},
        403: {"model": LoginErrorResponse},
        423: {"model": LoginErrorResponse},
        429: {"model": LoginErrorResponse},
        500: {"model": LoginErrorResponse},
    },
)
def login(
    request: Request,
    payload: LoginRequest = Depends(read_login_body),
    service: Authenticator = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
    rate_limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> LoginResponse | JSONResponse:
    """Authenticate a username/password pair and issue an access token."""
    client_key = f"login:{request.client.host if request.client else 'unknown'}"
    if not rate_limiter.allow(client_key):
        LOGIN_ATTEMPTS.labels(outcome="rate_limited").inc()
        retry_after = rate_limiter.retry_after(client_key)
        logger.warning("login rate limited for %s, retry after %ss", client_key, retry_after)
        body = LoginErrorResponse(
            message=messages.render("rate_limited", settings.locale),
            status=LOGIN_FAILED,
            error="rate_limited",
            retry_after_seconds=retry_after,
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
            headers={"Retry-After": str(retry_after)},
        )

    try:
        result = service.login(payload.username, payload.password)
    except LoginError as exc:
        LOGIN_ATTEMPTS.labels(outcome=exc.kind).inc()
        if exc.details.get("lock_triggered"):
            ACCOUNT_LOCKOUTS.inc()
        return _error_response(exc)

    LOGIN_ATTEMPTS.labels(outcome="success").inc()
    return LoginResponse(
        message=result.message,
        status=result.status,
        access_token=result.access_token,
        expires_in=result.expires_in,
        user=UserResponse.from_domain(result.user),
    )


@router.get("/api/debug/users", response_model=list[DebugAccountEntry], include_in_schema=False)
def list_debug_users(
    service: Authenticator = Depends(get_service),
    settings: Settings = Depends(get_app_settings),
) -> list[DebugAccountEntry]:
    """List every account with its derived status; unauthenticated, so off by default."""
    if not settings.debug_endpoints_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return [
        DebugAccountEntry.from_domain(account, account_status)
        for account, account_status in service.account_overview()
    ]


def _error_response(exc: LoginError) -> JSONResponse:
    status_code, label = _ERROR_STATUS[exc.kind]
    details = exc.details
    body = LoginErrorResponse(
        message=exc.message,
        status=label,
        error=exc.kind,
        reason=details.get("reason"),
        failed_attempts=details.get("failed_attempts"),
        remaining_attempts=details.get("remaining_attempts"),
        locked_until=details.get("locked_until"),
        retry_after_seconds=details.get("remaining_seconds"),
    )
    headers = None
    if "remaining_seconds" in details:
        headers = {"Retry-After": str(details["remaining_seconds"])}
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )
