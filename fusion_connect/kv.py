"""
Key-value store abstraction backing the signal mailboxes.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production. Values must be JSON-serializable.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import redis


class KeyValueStore(Protocol):
    """Minimal keyed store with list append and atomic drain."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def append(self, key: str, item: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def drain(self, key: str) -> list:
        """Return the list stored at key and remove it in one step."""
        ...


@dataclass
class InMemoryKeyValueStore:
    """Dict-backed store for testing/dev. All operations hold one lock."""

    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self.data.get(key)
            if isinstance(value, list):
                return list(value)
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self.data[key] = list(value) if isinstance(value, list) else value

    def append(self, key: str, item: Any) -> None:
        with self._lock:
            self.data.setdefault(key, []).append(item)

    def delete(self, key: str) -> None:
        with self._lock:
            self.data.pop(key, None)

    def drain(self, key: str) -> list:
        with self._lock:
            return self.data.pop(key, None) or []

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.data.clear()


@dataclass
class RedisKeyValueStore:
    """Redis-backed store. Lists use RPUSH/LRANGE, scalars use GET/SET."""

    url: str
    key_prefix: str = "fusion:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        full_key = self._key(key)
        if self.client.type(full_key) == b"list":
            return [json.loads(item) for item in self.client.lrange(full_key, 0, -1)]
        raw = self.client.get(full_key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.client.set(self._key(key), json.dumps(value))

    def append(self, key: str, item: Any) -> None:
        self.client.rpush(self._key(key), json.dumps(item))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def drain(self, key: str) -> list:
        full_key = self._key(key)
        # MULTI/EXEC: a concurrent drain sees either everything or nothing.
        pipe = self.client.pipeline(transaction=True)
        pipe.lrange(full_key, 0, -1)
        pipe.delete(full_key)
        items, _ = pipe.execute()
        return [json.loads(item) for item in items]
