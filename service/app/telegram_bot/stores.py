"""
Process-wide key/value stores for the Telegram bot.

For now: simple in-memory dict, lost on restart.
Callers depend only on the KeyValueStore protocol, so a bounded or
TTL-based cache can be swapped in without touching them.
"""

from typing import Dict, Generic, Optional, Protocol, TypeVar

V = TypeVar("V")


class KeyValueStore(Protocol[V]):
    def get(self, key: str) -> Optional[V]:
        ...

    def put(self, key: str, value: V) -> None:
        ...

    def evict(self, key: str) -> None:
        ...


class InMemoryStore(Generic[V]):
    """Unbounded dict-backed store. Writes are last-write-wins."""

    def __init__(self):
        self._data: Dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._data.get(key)

    def put(self, key: str, value: V) -> None:
        self._data[key] = value

    def evict(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data
