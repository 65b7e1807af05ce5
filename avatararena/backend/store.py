"""Key-value persistence interfaces and implementations.

The core only needs string values and flat hash maps, the way a Redis instance
would offer them. No adapter provides cross-key transactions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from avatararena.backend.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None:
        """Return the string stored at ``key`` or None."""

    def set(self, key: str, value: str) -> None:
        """Store ``value`` at ``key``, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove ``key`` whatever its value type."""

    def hash_get_all(self, hash_key: str) -> dict[str, str]:
        """Return every field of a hash in insertion order."""

    def hash_set(self, hash_key: str, field: str, value: str) -> None:
        """Set one field of a hash."""

    def hash_delete(self, hash_key: str, fields: Iterable[str]) -> None:
        """Remove the given fields from a hash."""


@dataclass
class InMemoryKeyValueStore:
    def __post_init__(self) -> None:
        self._strings: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = {}

    def get(self, key: str) -> str | None:
        return self._strings.get(key)

    def set(self, key: str, value: str) -> None:
        self._strings[key] = value

    def delete(self, key: str) -> None:
        self._strings.pop(key, None)
        self._hashes.pop(key, None)

    def hash_get_all(self, hash_key: str) -> dict[str, str]:
        return dict(self._hashes.get(hash_key, {}))

    def hash_set(self, hash_key: str, field: str, value: str) -> None:
        self._hashes.setdefault(hash_key, {})[field] = value

    def hash_delete(self, hash_key: str, fields: Iterable[str]) -> None:
        entries = self._hashes.get(hash_key)
        if entries is None:
            return
        for field in fields:
            entries.pop(field, None)
        if not entries:
            self._hashes.pop(hash_key, None)


@dataclass
class RedisKeyValueStore:
    redis_url: str

    def __post_init__(self) -> None:
        self._client: Any = None

    def _connect(self) -> Any:
        import redis

        return redis.Redis.from_url(self.redis_url, decode_responses=True)

    def _call(self, operation: Callable[[Any], Any]) -> Any:
        import redis

        if self._client is None:
            self._client = self._connect()
        try:
            return operation(self._client)
        except redis.RedisError as exc:
            logger.exception("Redis operation failed")
            raise StorageUnavailable("Key-value store is unavailable") from exc

    def get(self, key: str) -> str | None:
        return self._call(lambda client: client.get(key))

    def set(self, key: str, value: str) -> None:
        self._call(lambda client: client.set(key, value))

    def delete(self, key: str) -> None:
        self._call(lambda client: client.delete(key))

    def hash_get_all(self, hash_key: str) -> dict[str, str]:
        return dict(self._call(lambda client: client.hgetall(hash_key)))

    def hash_set(self, hash_key: str, field: str, value: str) -> None:
        self._call(lambda client: client.hset(hash_key, field, value))

    def hash_delete(self, hash_key: str, fields: Iterable[str]) -> None:
        field_list = list(fields)
        if not field_list:
            return
        self._call(lambda client: client.hdel(hash_key, *field_list))


@dataclass
class PostgresKeyValueStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def _run(self, operation: Callable[[Any], Any]) -> Any:
        import psycopg

        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    result = operation(cur)
                conn.commit()
        except psycopg.Error as exc:
            logger.exception("PostgreSQL operation failed")
            raise StorageUnavailable("Key-value store is unavailable") from exc
        return result

    def get(self, key: str) -> str | None:
        def operation(cur: Any) -> str | None:
            cur.execute("SELECT value FROM kv_strings WHERE key = %s", (key,))
            row = cur.fetchone()
            return None if row is None else row[0]

        return self._run(operation)

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)

        def operation(cur: Any) -> None:
            cur.execute(
                """
                INSERT INTO kv_strings (key, value, updated_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = EXCLUDED.updated_at
                """,
                (key, value, now),
            )

        self._run(operation)

    def delete(self, key: str) -> None:
        def operation(cur: Any) -> None:
            cur.execute("DELETE FROM kv_strings WHERE key = %s", (key,))
            cur.execute("DELETE FROM kv_hashes WHERE hash_key = %s", (key,))

        self._run(operation)

    def hash_get_all(self, hash_key: str) -> dict[str, str]:
        def operation(cur: Any) -> dict[str, str]:
            cur.execute(
                "SELECT field, value FROM kv_hashes WHERE hash_key = %s ORDER BY id",
                (hash_key,),
            )
            return {field: value for field, value in cur.fetchall()}

        return self._run(operation)

    def hash_set(self, hash_key: str, field: str, value: str) -> None:
        def operation(cur: Any) -> None:
            cur.execute(
                """
                INSERT INTO kv_hashes (hash_key, field, value)
                VALUES (%s, %s, %s)
                ON CONFLICT (hash_key, field) DO UPDATE SET value = EXCLUDED.value
                """,
                (hash_key, field, value),
            )

        self._run(operation)

    def hash_delete(self, hash_key: str, fields: Iterable[str]) -> None:
        field_list = list(fields)
        if not field_list:
            return

        def operation(cur: Any) -> None:
            cur.execute(
                "DELETE FROM kv_hashes WHERE hash_key = %s AND field = ANY(%s)",
                (hash_key, field_list),
            )

        self._run(operation)


def read_json(store: KeyValueStore, key: str) -> dict[str, Any] | None:
    raw = store.get(key)
    if raw is None:
        return None
    return json.loads(raw)


def write_json(store: KeyValueStore, key: str, payload: dict[str, Any]) -> None:
    store.set(key, json.dumps(payload))


def transactional_update(
    store: KeyValueStore,
    key: str,
    mutate: Callable[[dict[str, Any] | None], dict[str, Any]],
) -> dict[str, Any]:
    """Read the JSON document at ``key``, apply ``mutate`` and write the result back.

    This is a plain read-modify-write: concurrent writers to the same key race
    and the last write wins. Callers route every mutation through here so a
    compare-and-swap on a version field can replace it in one place.
    """
    next_payload = mutate(read_json(store, key))
    write_json(store, key, next_payload)
    return next_payload


def create_store(database_url: str | None, redis_url: str | None = None) -> KeyValueStore:
    if redis_url:
        return RedisKeyValueStore(redis_url=redis_url)
    if database_url:
        return PostgresKeyValueStore(database_url=database_url)
    return InMemoryKeyValueStore()
