"""
Key Index - Ordered List of Live Record Keys

📇 Collection Membership:
A collection's keys are kept, in insertion order, as one separator-joined
value stored under the collection's own name. Multi-record queries scan this
list because the key-value store itself cannot enumerate keys.
"""

from typing import Iterator, List
import logging

from ..backends.interface import KeyValueStore

logger = logging.getLogger(__name__)


class KeyIndex:
    """In-memory copy of a collection's key list and its persistence."""

    def __init__(self, name: str, storage: KeyValueStore, separator: str = ","):
        if not separator:
            raise ValueError("separator must be a non-empty string")
        self.name = name
        self.separator = separator
        self._storage = storage
        self._keys: List[str] = []

    async def load(self) -> List[str]:
        """Replace the in-memory keys with the persisted list."""
        raw = await self._storage.get_item(self.name)
        self._keys = raw.split(self.separator) if raw else []
        logger.debug(f"Loaded {len(self._keys)} keys for {self.name}")
        return self.keys

    async def save(self) -> str:
        """Persist the in-memory keys."""
        return await self._storage.set_item(self.name, self.separator.join(self._keys))

    def check(self, key: str) -> None:
        """Raise ValueError if ``key`` cannot be stored in the index."""
        if self.separator in key:
            raise ValueError(f"Key {key!r} contains the index separator {self.separator!r}")

    def append(self, key: str) -> None:
        self.check(key)
        self._keys.append(key)

    def append_unique(self, key: str) -> bool:
        """Append ``key`` unless present. Returns True if it was added."""
        if key in self._keys:
            return False
        self.append(key)
        return True

    def remove_first(self, key: str) -> bool:
        """Remove the first occurrence of ``key``. Returns True if one was found."""
        try:
            self._keys.remove(key)
        except ValueError:
            return False
        return True

    @property
    def keys(self) -> List[str]:
        return list(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def __len__(self) -> int:
        return len(self._keys)


__all__ = ["KeyIndex"]
