"""
Tests for the persisted key index.
"""

import pytest

from localdb import MemoryStorage
from localdb.persistence.repositories import KeyIndex


@pytest.fixture
def storage():
    return MemoryStorage()


class TestKeyIndex:

    @pytest.mark.asyncio
    async def test_load_missing_index_is_empty(self, storage):
        index = KeyIndex("things", storage)
        assert await index.load() == []

    @pytest.mark.asyncio
    async def test_save_writes_comma_joined_keys(self, storage):
        index = KeyIndex("things", storage)
        index.append("things:1")
        index.append("things:2")
        await index.save()
        assert await storage.get_item("things") == "things:1,things:2"

    @pytest.mark.asyncio
    async def test_load_reads_persisted_keys(self, storage):
        await storage.set_item("things", "things:2,things:1")
        index = KeyIndex("things", storage)
        assert await index.load() == ["things:2", "things:1"]
        assert "things:1" in index
        assert len(index) == 2

    @pytest.mark.asyncio
    async def test_custom_separator(self, storage):
        index = KeyIndex("things", storage, separator="|")
        index.append("things:a,b")
        await index.save()
        assert await storage.get_item("things") == "things:a,b"
        assert await KeyIndex("things", storage, separator="|").load() == ["things:a,b"]

    def test_remove_first_only_removes_one_occurrence(self, storage):
        index = KeyIndex("things", storage)
        for key in ("things:1", "things:2", "things:1"):
            index.append(key)
        assert index.remove_first("things:1") is True
        assert index.keys == ["things:2", "things:1"]

    def test_remove_absent_key(self, storage):
        index = KeyIndex("things", storage)
        index.append("things:1")
        assert index.remove_first("things:9") is False
        assert index.keys == ["things:1"]

    def test_append_unique(self, storage):
        index = KeyIndex("things", storage)
        assert index.append_unique("things:1") is True
        assert index.append_unique("things:1") is False
        assert index.keys == ["things:1"]

    def test_key_containing_separator_is_rejected(self, storage):
        index = KeyIndex("things", storage)
        with pytest.raises(ValueError):
            index.append("things:a,b")

    def test_keys_returns_a_copy(self, storage):
        index = KeyIndex("things", storage)
        index.append("things:1")
        index.keys.append("things:2")
        assert len(index) == 1

    def test_check_rejects_separator_without_appending(self, storage):
        index = KeyIndex("things", storage)
        index.check("things:1")
        with pytest.raises(ValueError):
            index.check("things:1,2")
        assert len(index) == 0
