"""FastAPI application wiring for the auth service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis
import uvicorn
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

from .api.routes import router as auth_router
from .config import Settings, get_settings
from .domain.service import Authenticator
from .redis_repository import RedisAccountStore
from .repository import AccountStore, InMemoryAccountStore
from .security.rate_limiter import SlidingWindowRateLimiter
from .seed import seed_accounts

logger = logging.getLogger(__name__)


def ensure_signing_config(settings: Settings) -> None:
    """Refuse to start without a signing secret when startup checks are enabled."""
    if settings.require_signing_secret and not settings.jwt_secret:
        raise RuntimeError("JWT_ACCESS_SECRET must be set when REQUIRE_SIGNING_SECRET is enabled")
    if not settings.jwt_secret:
        logger.warning("JWT_ACCESS_SECRET is not set; logins will fail with a server error")


def build_account_store(settings: Settings) -> AccountStore:
    """Instantiate the configured account store, preferring Redis when available."""
    if settings.account_store_backend == "redis" and settings.redis_url:
        try:
            client = redis.from_url(settings.redis_url)
            # fail fast and fall back
            client.ping()
            logger.info("account store configured for redis backend at %s", settings.redis_url)
            return RedisAccountStore(client)
        except (RedisError, ValueError) as exc:
            logger.warning("redis account store unavailable, falling back to in-memory: %s", exc)

    logger.info("account store using in-memory backend")
    return InMemoryAccountStore()


def build_rate_limiter(settings: Settings) -> SlidingWindowRateLimiter:
    """Instantiate the per-process login rate limiter from settings."""
    logger.info(
        "login rate limit: %s requests per %ss",
        settings.rate_limit_requests,
        settings.rate_limit_window_seconds,
    )
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the account store, authenticator and rate limiter for the app lifecycle."""
    settings: Settings = app.state.settings
    ensure_signing_config(settings)
    store = build_account_store(settings)
    seed_accounts(store, settings.seed_admin_password)
    app.state.account_store = store
    app.state.authenticator = Authenticator(store, settings)
    app.state.rate_limiter = build_rate_limiter(settings)
    yield


def create_app(settings: Settings | None = None) -> FastAPI:
    """Assemble the FastAPI application around ``settings``."""
    settings = settings or get_settings()
    application = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    application.state.settings = settings

    @application.get("/health", tags=["health"])
    def health() -> dict[str, bool]:
        """Return a minimal liveness indicator."""
        return {"ok": True}

    @application.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    application.include_router(auth_router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    settings = get_settings()
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    run()
