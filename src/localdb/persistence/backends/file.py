"""
File Storage - JSON File Key-Value Backend

📁 Persistent Local Storage:
Keeps every key in a single JSON document on disk, the way a browser keeps
its local storage in one profile file. Data survives process restarts.
"""

from pathlib import Path
from typing import Dict, Optional, Union
import asyncio
import json
import logging
import os

from .interface import KeyValueStore

logger = logging.getLogger(__name__)


class FileStorage(KeyValueStore):
    """
    Key-value storage persisted to a JSON file.

    The file is read once, on first access, and rewritten after every
    mutation. Writes go through a temporary file that replaces the target;
    flushes are serialized and each one writes a snapshot taken on the event
    loop.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._data: Optional[Dict[str, str]] = None
        self._flush_lock = asyncio.Lock()

    def _load(self) -> Dict[str, str]:
        if self._data is None:
            if self.path.exists():
                with open(self.path, encoding="utf-8") as f:
                    content = json.load(f)
                if not isinstance(content, dict):
                    raise ValueError(f"Storage file {self.path} does not hold a JSON object")
                self._data = {str(k): v for k, v in content.items()}
                logger.info(f"Loaded {len(self._data)} keys from {self.path}")
            else:
                self._data = {}
        return self._data

    def _write(self, snapshot: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    async def _flush(self) -> None:
        async with self._flush_lock:
            snapshot = dict(self._load())
            await asyncio.to_thread(self._write, snapshot)

    async def get_item(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        logger.debug(f"get_item: {key}, it is: {value!r}")
        return value

    async def set_item(self, key: str, value: str) -> str:
        data = self._load()
        logger.debug(f"set_item: {key} to {value!r}, was: {data.get(key)!r}")
        data[key] = value
        await self._flush()
        return value

    async def remove_item(self, key: str) -> bool:
        data = self._load()
        logger.debug(f"remove_item: {key}")
        if data.pop(key, None) is not None:
            await self._flush()
        return True


__all__ = ["FileStorage"]
