"""Redis-backed account store with atomic failure-state updates."""

from __future__ import annotations

from datetime import datetime
from typing import Final, Mapping

from redis import Redis
from redis.exceptions import ResponseError, WatchError

from .domain.account import Account, FailureState, normalize_username


def _text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def _encode_locked_until(value: datetime | None) -> str:
    return value.isoformat() if value is not None else ""


def _decode_locked_until(value: str) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class RedisAccountStore:
    """Accounts kept as Redis hashes, indexed by normalised username.

    Layout under ``key_prefix``:

    * ``<prefix>:account:<id>`` hash of account fields
    * ``<prefix>:username:<normalised username>`` string holding the account id
    * ``<prefix>:ids`` set of all account ids
    """

    _LUA_COMPARE_AND_SET: Final[str] = """
    local key = KEYS[1]
    local current = redis.call('HMGET', key, 'failed_attempts', 'locked_until')
    if not current[1] then
        return 0
    end
    if current[1] ~= ARGV[1] or (current[2] or '') ~= ARGV[2] then
        return 0
    end
    redis.call('HSET', key, 'failed_attempts', ARGV[3], 'locked_until', ARGV[4])
    return 1
    """

    def __init__(self, client: Redis, *, key_prefix: str = "auth") -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._script = client.register_script(self._LUA_COMPARE_AND_SET)

    def _account_key(self, account_id: str) -> str:
        return f"{self._key_prefix}:account:{account_id}"

    def _username_key(self, username: str) -> str:
        return f"{self._key_prefix}:username:{normalize_username(username)}"

    @property
    def _ids_key(self) -> str:
        return f"{self._key_prefix}:ids"

    def add(self, account: Account) -> None:
        """Register an account in one transaction.

        Raises ``ValueError`` when the id or the normalised username is taken,
        including when a concurrent registration claims either first.
        """
        account_key = self._account_key(account.id)
        username_key = self._username_key(account.username)
        with self._client.pipeline(transaction=True) as pipe:
            try:
                pipe.watch(account_key, username_key)
                if pipe.exists(account_key):
                    raise ValueError(f"account id already exists: {account.id}")
                if pipe.exists(username_key):
                    raise ValueError(f"username already exists: {account.username}")
                pipe.multi()
                pipe.set(username_key, account.id)
                pipe.hset(
                    account_key,
                    mapping={
                        "id": account.id,
                        "username": account.username,
                        "password_hash": account.password_hash,
                        "enabled": "1" if account.enabled else "0",
                        "failed_attempts": str(account.failed_attempts),
                        "locked_until": _encode_locked_until(account.locked_until),
                        "role": account.role,
                        "name": account.name,
                    },
                )
                pipe.sadd(self._ids_key, account.id)
                pipe.execute()
            except WatchError as exc:
                raise ValueError(f"concurrent registration for {account.username}") from exc

    def get_account(self, account_id: str) -> Account | None:
        raw = self._client.hgetall(self._account_key(account_id))
        if not raw:
            return None
        return self._map_record({_text(k): _text(v) for k, v in raw.items()})

    def find_by_username(self, username: str) -> Account | None:
        account_id = self._client.get(self._username_key(username))
        if account_id is None:
            return None
        return self.get_account(_text(account_id))

    def list_accounts(self) -> list[Account]:
        ids = sorted(_text(member) for member in self._client.smembers(self._ids_key))
        return [account for account in map(self.get_account, ids) if account is not None]

    def compare_and_update_failure_state(
        self, account_id: str, expected: FailureState, new: FailureState
    ) -> bool:
        """Atomically swap the failure counters if they still match ``expected``."""
        key = self._account_key(account_id)
        args = [
            str(expected.failed_attempts),
            _encode_locked_until(expected.locked_until),
            str(new.failed_attempts),
            _encode_locked_until(new.locked_until),
        ]
        try:
            result = self._script(keys=[key], args=args)
            return int(result) == 1
        except ResponseError as exc:
            message = str(exc).lower()
            if "unknown command" in message and "eval" in message:
                return self._compare_and_update_fallback(key, expected, new)
            raise

    def _compare_and_update_fallback(
        self, key: str, expected: FailureState, new: FailureState
    ) -> bool:
        """Optimistic WATCH/MULTI variant used when Lua is unavailable."""
        with self._client.pipeline() as pipe:
            try:
                pipe.watch(key)
                failed_attempts, locked_until = pipe.hmget(key, "failed_attempts", "locked_until")
                if failed_attempts is None:
                    pipe.unwatch()
                    return False
                current = FailureState(
                    int(_text(failed_attempts)), _decode_locked_until(_text(locked_until))
                )
                if current != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.hset(
                    key,
                    mapping={
                        "failed_attempts": str(new.failed_attempts),
                        "locked_until": _encode_locked_until(new.locked_until),
                    },
                )
                pipe.execute()
                return True
            except WatchError:
                return False

    def _map_record(self, fields: Mapping[str, str]) -> Account:
        """Convert a decoded Redis hash into the domain ``Account`` dataclass."""
        return Account(
            id=fields["id"],
            username=fields["username"],
            password_hash=fields["password_hash"],
            enabled=fields.get("enabled") == "1",
            failed_attempts=int(fields.get("failed_attempts") or 0),
            locked_until=_decode_locked_until(fields.get("locked_until", "")),
            role=fields.get("role", ""),
            name=fields.get("name", ""),
        )
