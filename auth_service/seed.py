"""Out-of-band account provisioning for local runs."""

from __future__ import annotations

import logging

from .domain.account import Account
from .repository import AccountStore
from .security.passwords import hash_password

logger = logging.getLogger(__name__)

ADMIN_ACCOUNT_ID = "u_001"
ADMIN_USERNAME = "admin@kitchen.com"


def seed_accounts(store: AccountStore, admin_password: str) -> None:
    """Provision the default admin account unless it already exists."""
    if store.find_by_username(ADMIN_USERNAME) is not None:
        logger.info("seed account %s already present", ADMIN_USERNAME)
        return
    store.add(
        Account(
            id=ADMIN_ACCOUNT_ID,
            username=ADMIN_USERNAME,
            password_hash=hash_password(admin_password),
            enabled=True,
            role="admin",
            name="Admin",
        )
    )
    logger.info("seeded account %s", ADMIN_USERNAME)
