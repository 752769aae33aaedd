"""
Key-Value Storage Interface

💾 Flat Storage Contract:
Every record store in localdb talks to its backend through three awaitable
primitives. Values are always strings; serialization happens above this layer.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
import inspect
import logging

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """
    Abstract key-value storage backend.

    Implementations only need to provide get/set/remove. They are free to
    complete immediately or after awaiting I/O; callers never assume ordering
    between operations on different keys.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key

        Returns:
            The stored string, or None if nothing is stored under the key
        """
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> str:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Storage key
            value: String value to store

        Returns:
            The stored value
        """
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> bool:
        """
        Remove a key. Removing an absent key is not an error.

        Args:
            key: Storage key

        Returns:
            True once the key is gone
        """
        pass


class SyncStoreAdapter(KeyValueStore):
    """
    Adapts a store with plain (possibly synchronous) methods to KeyValueStore.

    The wrapped object must expose ``get_item``, ``set_item`` and
    ``remove_item``; each may return a value directly or an awaitable.
    """

    def __init__(self, store: Any):
        for method in ("get_item", "set_item", "remove_item"):
            if not callable(getattr(store, method, None)):
                raise TypeError(f"{type(store).__name__} has no callable {method}()")
        self._store = store

    @staticmethod
    async def _resolve(result: Any) -> Any:
        if inspect.isawaitable(result):
            return await result
        return result

    async def get_item(self, key: str) -> Optional[str]:
        return await self._resolve(self._store.get_item(key))

    async def set_item(self, key: str, value: str) -> str:
        return await self._resolve(self._store.set_item(key, value))

    async def remove_item(self, key: str) -> bool:
        return await self._resolve(self._store.remove_item(key))


def as_key_value_store(store: Any) -> KeyValueStore:
    """Return ``store`` as a KeyValueStore, wrapping it if needed."""
    if isinstance(store, KeyValueStore):
        return store
    logger.debug(f"Wrapping {type(store).__name__} in SyncStoreAdapter")
    return SyncStoreAdapter(store)


__all__ = ["KeyValueStore", "SyncStoreAdapter", "as_key_value_store"]
