"""
Record Codec - Serialization and Merge Rules

🔁 Stored Value Shapes:
Records are stored as JSON text. A stored value is a field map, a list or a
scalar, and each shape has its own rule for absorbing an update.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import json


class RecordCodec:
    """Encodes structured values to JSON text and back."""

    def encode(self, value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), default=str)

    def decode(self, raw: Optional[str]) -> Any:
        if raw is None or raw == "":
            return None
        return json.loads(raw)


class StoredValue(ABC):
    """A decoded stored value, tagged by shape."""

    value: Any

    @abstractmethod
    def merge(self, incoming: 'StoredValue') -> 'StoredValue':
        """Combine this stored value with an incoming one."""

    @staticmethod
    def of(value: Any) -> 'StoredValue':
        """Tag a plain decoded value with its shape."""
        if isinstance(value, dict):
            return MapRecord(value)
        if isinstance(value, list):
            return ListRecord(value)
        return ScalarRecord(value)


@dataclass
class MapRecord(StoredValue):
    """Field map; merges field by field with the incoming side winning."""
    value: Dict[str, Any]

    def merge(self, incoming: StoredValue) -> StoredValue:
        if isinstance(incoming, MapRecord):
            return MapRecord(deep_merge(self.value, incoming.value))
        return incoming


@dataclass
class ListRecord(StoredValue):
    """Sequence; appends the incoming value and drops duplicates."""
    value: List[Any]

    def merge(self, incoming: StoredValue) -> StoredValue:
        added = incoming.value if isinstance(incoming, ListRecord) else [incoming.value]
        return ListRecord(unique(self.value + added))


@dataclass
class ScalarRecord(StoredValue):
    """Anything else, including a missing value; replaced outright."""
    value: Any

    def merge(self, incoming: StoredValue) -> StoredValue:
        return incoming


def deep_merge(current: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``current`` updated recursively with ``incoming``."""
    merged = dict(current)
    for key, value in incoming.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def unique(values: List[Any]) -> List[Any]:
    """Drop repeated values, keeping the first occurrence of each."""
    result: List[Any] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


def merge_values(current: Any, incoming: Any) -> Any:
    """Apply the update merge rule to two plain decoded values."""
    return StoredValue.of(current).merge(StoredValue.of(incoming)).value


__all__ = [
    "RecordCodec", "StoredValue", "MapRecord", "ListRecord", "ScalarRecord",
    "deep_merge", "unique", "merge_values"
]
