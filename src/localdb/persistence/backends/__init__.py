"""
Persistence Backends - Key-Value Storage Layer

💾 Pluggable Storage Implementations:
Concrete KeyValueStore implementations that record repositories read from
and write to.

Available Backends:
- MemoryStorage: In-memory mock with optional response delay
- FileStorage: JSON file on disk, the local-storage equivalent
"""

from .interface import KeyValueStore, SyncStoreAdapter, as_key_value_store
from .memory import MemoryStorage
from .file import FileStorage

__all__ = [
    "KeyValueStore", "SyncStoreAdapter", "as_key_value_store",
    "MemoryStorage", "FileStorage"
]
