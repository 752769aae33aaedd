"""
Models and storages shared by the test modules.
"""

from typing import Any, ClassVar, Optional

from localdb import Collection, MemoryStorage, Model


class Person(Model):
    """Model used across repository and entity tests"""
    collection_name = "mymodels"
    indexes = [{"property": "name"}, "email"]

    name: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None


class People(Collection):
    model = Person


class RecordStub:
    """Minimal record implementing the repository contract without pydantic"""

    id_attribute = "id"
    type = "stub"
    indexes: ClassVar[list] = []

    def __init__(self, value: Any, record_id: Any = None):
        self.value = value
        self.record_id = record_id

    def is_new(self) -> bool:
        return self.record_id is None

    def to_json(self) -> Any:
        return self.value

    def get(self, field: str) -> Any:
        if field == "id":
            return self.record_id
        return self.value.get(field) if isinstance(self.value, dict) else None

    def set(self, field: str, value: Any) -> None:
        if field == "id":
            self.record_id = value

    def url(self) -> str:
        return "stubs" if self.is_new() else f"stubs:{self.record_id}"


class CountingStorage(MemoryStorage):
    """MemoryStorage that records every key read"""

    def __init__(self, delay: float = 0):
        super().__init__(delay)
        self.reads = []

    async def get_item(self, key: str) -> Optional[str]:
        self.reads.append(key)
        return await super().get_item(key)


class FailingStorage(MemoryStorage):
    """MemoryStorage whose reads fail for chosen keys"""

    def __init__(self, failing_keys):
        super().__init__()
        self.failing_keys = set(failing_keys)

    async def get_item(self, key: str) -> Optional[str]:
        if key in self.failing_keys:
            raise ConnectionError(f"read of {key} failed")
        return await super().get_item(key)
