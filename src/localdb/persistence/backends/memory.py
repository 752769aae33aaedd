"""
Memory Storage - In-Memory Key-Value Backend

🧠 Mock Local Storage:
A dictionary-backed KeyValueStore for development and testing. An optional
artificial delay defers every response so callers can be exercised against
a slow store.
"""

from typing import Dict, Optional
import asyncio
import logging

from .interface import KeyValueStore

logger = logging.getLogger(__name__)


class MemoryStorage(KeyValueStore):
    """
    In-memory key-value storage.

    Each instance owns its own dictionary, so separate instances never see
    each other's data. Data is lost when the process exits.
    """

    def __init__(self, delay: float = 0):
        if delay < 0:
            raise ValueError("delay must be zero or positive")
        self._data: Dict[str, str] = {}
        self.delay = delay

    async def _respond(self) -> None:
        """Hold the response back for the configured delay."""
        if self.delay:
            await asyncio.sleep(self.delay)

    async def get_item(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        logger.debug(f"get_item: {key}, it is: {value!r}")
        await self._respond()
        return value

    async def set_item(self, key: str, value: str) -> str:
        logger.debug(f"set_item: {key} to {value!r}, was: {self._data.get(key)!r}")
        self._data[key] = value
        await self._respond()
        return value

    async def remove_item(self, key: str) -> bool:
        logger.debug(f"remove_item: {key}")
        self._data.pop(key, None)
        await self._respond()
        return True

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def clear(self) -> None:
        """Drop every stored value."""
        self._data.clear()


__all__ = ["MemoryStorage"]
