from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from auth_service.config import Settings
from auth_service.domain.account import AccountStatus, FailureState
from auth_service.domain.errors import (
    AccountDisabled,
    AccountLocked,
    AuthenticationFailed,
    ConfigurationError,
    InvalidInput,
)
from auth_service.domain.service import LOCK_DURATION, MAX_FAILED_ATTEMPTS, Authenticator
from auth_service.repository import InMemoryAccountStore
from auth_service.security.tokens import decode_access_token

from conftest import ADMIN_PASSWORD


def test_success_issues_token_and_public_user(authenticator, settings):
    result = authenticator.login("admin@kitchen.com", ADMIN_PASSWORD)

    assert result.status is AccountStatus.active
    assert result.user.id == "u_001"
    assert result.user.role == "admin"
    assert result.expires_in == 15 * 60
    claims = decode_access_token(result.access_token, settings)
    assert claims["sub"] == "u_001"
    assert claims["role"] == "admin"
    assert claims["exp"] - claims["iat"] == 15 * 60


def test_success_resets_failure_state(make_account, settings, clock):
    store = InMemoryAccountStore(
        [make_account(failed_attempts=4, locked_until=clock() - timedelta(minutes=1))]
    )
    Authenticator(store, settings, clock=clock).login("admin@kitchen.com", ADMIN_PASSWORD)

    account = store.get_account("u_001")
    assert account.failed_attempts == 0
    assert account.locked_until is None


def test_username_lookup_ignores_case_and_whitespace(authenticator):
    result = authenticator.login("Admin@Kitchen.com ", ADMIN_PASSWORD)
    assert result.user.username == "admin@kitchen.com"


def test_unknown_user_matches_wrong_password_shape(authenticator):
    with pytest.raises(AuthenticationFailed) as unknown:
        authenticator.login("nobody@kitchen.com", ADMIN_PASSWORD)
    with pytest.raises(AuthenticationFailed) as wrong:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert unknown.value.message == wrong.value.message
    assert unknown.value.kind == wrong.value.kind == "authentication_failed"
    assert unknown.value.details == {}
    assert wrong.value.details == {"failed_attempts": 1, "remaining_attempts": 4}


def test_invalid_input_never_touches_the_store(make_account, settings, clock):
    class CountingStore(InMemoryAccountStore):
        lookups = 0

        def find_by_username(self, username):
            CountingStore.lookups += 1
            return super().find_by_username(username)

    store = CountingStore([make_account(failed_attempts=2)])
    authenticator = Authenticator(store, settings, clock=clock)

    with pytest.raises(InvalidInput) as exc:
        authenticator.login("admin@kitchen.com", "123")

    assert exc.value.details == {"reason": "password_too_short"}
    assert CountingStore.lookups == 0
    assert store.get_account("u_001").failed_attempts == 2


def test_wrong_password_counts_down_remaining_attempts(authenticator, store):
    for attempt in range(1, MAX_FAILED_ATTEMPTS):
        with pytest.raises(AuthenticationFailed) as exc:
            authenticator.login("admin@kitchen.com", "wrong-password")
        assert exc.value.details["failed_attempts"] == attempt
        assert exc.value.details["remaining_attempts"] == MAX_FAILED_ATTEMPTS - attempt

    assert store.get_account("u_001").failed_attempts == MAX_FAILED_ATTEMPTS - 1


def test_reaching_threshold_locks_account(make_account, settings, clock):
    store = InMemoryAccountStore([make_account(failed_attempts=4)])
    authenticator = Authenticator(store, settings, clock=clock)

    with pytest.raises(AccountLocked) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert exc.value.details["failed_attempts"] == 5
    assert exc.value.details["locked_until"] == clock() + LOCK_DURATION
    account = store.get_account("u_001")
    assert account.failed_attempts == 5
    assert account.locked_until == clock() + LOCK_DURATION


def test_locked_account_rejects_without_incrementing(make_account, settings, clock):
    store = InMemoryAccountStore(
        [make_account(failed_attempts=5, locked_until=clock() + timedelta(minutes=5))]
    )
    authenticator = Authenticator(store, settings, clock=clock)

    for password in (ADMIN_PASSWORD, "wrong-password"):
        with pytest.raises(AccountLocked) as exc:
            authenticator.login("admin@kitchen.com", password)
        assert exc.value.details["remaining_seconds"] == 300
        assert "300 seconds" in exc.value.message

    assert store.get_account("u_001").failed_attempts == 5


def test_remaining_seconds_round_up(make_account, settings, clock):
    store = InMemoryAccountStore(
        [make_account(locked_until=clock() + timedelta(seconds=10, milliseconds=1))]
    )
    with pytest.raises(AccountLocked) as exc:
        Authenticator(store, settings, clock=clock).login("admin@kitchen.com", ADMIN_PASSWORD)
    assert exc.value.details["remaining_seconds"] == 11


def test_expired_lock_keeps_counter_and_relocks_on_next_failure(make_account, settings, clock):
    store = InMemoryAccountStore(
        [make_account(failed_attempts=5, locked_until=clock() + timedelta(minutes=10))]
    )
    authenticator = Authenticator(store, settings, clock=clock)
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(AccountLocked) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert exc.value.details["failed_attempts"] == 6
    assert store.get_account("u_001").locked_until == clock() + LOCK_DURATION


def test_expired_lock_allows_correct_password(make_account, settings, clock):
    store = InMemoryAccountStore(
        [make_account(failed_attempts=5, locked_until=clock() + timedelta(minutes=10))]
    )
    authenticator = Authenticator(store, settings, clock=clock)
    clock.advance(minutes=11)

    result = authenticator.login("admin@kitchen.com", ADMIN_PASSWORD)

    assert result.status is AccountStatus.active
    assert store.get_account("u_001").failure_state == FailureState()


def test_disabled_is_reported_before_active_lock(make_account, settings, clock):
    # resolve_status would say Locked here; the login sequence says disabled
    store = InMemoryAccountStore(
        [make_account(enabled=False, locked_until=clock() + timedelta(minutes=5))]
    )
    authenticator = Authenticator(store, settings, clock=clock)

    with pytest.raises(AccountDisabled):
        authenticator.login("admin@kitchen.com", ADMIN_PASSWORD)

    [(_, status)] = authenticator.account_overview()
    assert status is AccountStatus.locked


def test_disabled_account_does_not_count_failures(make_account, settings, clock):
    store = InMemoryAccountStore([make_account(enabled=False)])
    with pytest.raises(AccountDisabled):
        Authenticator(store, settings, clock=clock).login("admin@kitchen.com", "wrong-password")
    assert store.get_account("u_001").failed_attempts == 0


def test_missing_secret_fails_after_reset(make_account, clock):
    store = InMemoryAccountStore([make_account(failed_attempts=3)])
    authenticator = Authenticator(store, Settings(jwt_secret=""), clock=clock)

    with pytest.raises(ConfigurationError):
        authenticator.login("admin@kitchen.com", ADMIN_PASSWORD)

    assert store.get_account("u_001").failed_attempts == 0


def test_vietnamese_locale_messages(store, clock):
    authenticator = Authenticator(
        store, Settings(jwt_secret="x" * 32, locale="vi"), clock=clock
    )
    with pytest.raises(AuthenticationFailed) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")
    assert exc.value.message == "Sai tài khoản hoặc mật khẩu."


def test_configurable_threshold_and_duration(make_account, settings, clock):
    store = InMemoryAccountStore([make_account()])
    authenticator = Authenticator(
        store, settings, max_failed_attempts=2, lock_duration=timedelta(minutes=1), clock=clock
    )

    with pytest.raises(AuthenticationFailed):
        authenticator.login("admin@kitchen.com", "wrong-password")
    with pytest.raises(AccountLocked) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert exc.value.details["locked_until"] == clock() + timedelta(minutes=1)


class RacingStore(InMemoryAccountStore):
    """Applies a competing write just before the first compare-and-update."""

    def __init__(self, accounts, competing_state):
        super().__init__(accounts)
        self._competing_state = competing_state
        self.attempts = 0

    def compare_and_update_failure_state(self, account_id, expected, new):
        self.attempts += 1
        if self._competing_state is not None:
            state, self._competing_state = self._competing_state, None
            assert super().compare_and_update_failure_state(account_id, expected, state)
        return super().compare_and_update_failure_state(account_id, expected, new)


def test_lost_update_is_retried_against_fresh_state(make_account, settings, clock):
    store = RacingStore([make_account(failed_attempts=1)], competing_state=FailureState(2, None))
    authenticator = Authenticator(store, settings, clock=clock)

    with pytest.raises(AuthenticationFailed) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert exc.value.details["failed_attempts"] == 3
    assert store.get_account("u_001").failed_attempts == 3
    assert store.attempts == 2


def test_concurrent_lock_wins_over_pending_failure(make_account, settings, clock):
    locked = FailureState(5, clock() + LOCK_DURATION)
    store = RacingStore([make_account(failed_attempts=4)], competing_state=locked)
    authenticator = Authenticator(store, settings, clock=clock)

    with pytest.raises(AccountLocked) as exc:
        authenticator.login("admin@kitchen.com", "wrong-password")

    assert "remaining_seconds" in exc.value.details
    assert store.get_account("u_001").failure_state == locked


def test_concurrent_lock_wins_over_pending_success(make_account, settings, clock):
    locked = FailureState(5, clock() + LOCK_DURATION)
    store = RacingStore([make_account(failed_attempts=4)], competing_state=locked)

    with pytest.raises(AccountLocked):
        Authenticator(store, settings, clock=clock).login("admin@kitchen.com", ADMIN_PASSWORD)

    assert store.get_account("u_001").failure_state == locked


def test_parallel_failures_are_not_lost(make_account, settings, clock):
    store = InMemoryAccountStore([make_account()])
    authenticator = Authenticator(
        store,
        settings,
        max_failed_attempts=1000,
        clock=clock,
        password_verifier=lambda password, password_hash: False,
    )
    barrier = threading.Barrier(16)

    def attempt() -> None:
        barrier.wait()
        for _ in range(10):
            with pytest.raises(AuthenticationFailed):
                authenticator.login("admin@kitchen.com", "wrong-password")

    threads = [threading.Thread(target=attempt) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get_account("u_001").failed_attempts == 160
