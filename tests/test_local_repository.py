"""
Tests for LocalRepository: identity, key index upkeep, CRUD, queries,
increments and the sync dispatch surface.
"""

import asyncio
import json

import pytest

from localdb import (
    FileStorage, IncrementSpec, InvalidQueryError, LocalRepository, MemoryStorage, NotFoundError,
    QueryOptions, UUIDIdentityGenerator
)
from localdb.persistence.repositories import IdentityGenerator
from support import CountingStorage, FailingStorage, People, Person, RecordStub


async def index_keys(storage, name="mymodels"):
    raw = await storage.get_item(name)
    return raw.split(",") if raw else []


class TestCreate:
    """Identity assignment and storage on create"""

    @pytest.mark.asyncio
    async def test_assigns_increasing_ids(self, repo):
        first, second = Person(name="a"), Person(name="b")
        await repo.create(first)
        await repo.create(second)
        assert first.id == 1
        assert second.id == 2

    @pytest.mark.asyncio
    async def test_counters_are_per_repository(self):
        one = LocalRepository("one")
        other = LocalRepository("other")
        a, b = RecordStub({"v": 1}), RecordStub({"v": 2})
        await one.create(a)
        await other.create(b)
        assert a.record_id == 1
        assert b.record_id == 1

    @pytest.mark.asyncio
    async def test_custom_generator(self, storage):
        repo = LocalRepository("mymodels", storage, id_generator=UUIDIdentityGenerator())
        person = Person(name="a")
        await repo.create(person)
        assert isinstance(person.id, str)
        assert len(person.id) == 36

    @pytest.mark.asyncio
    async def test_model_hook_overrides_generator(self, repo):
        class Tagged(Person):
            collection_name = "mymodels"

            def create_id(self):
                return f"tag-{self.name}"

        tagged = Tagged(name="x")
        await repo.create(tagged)
        assert tagged.id == "tag-x"
        assert await repo.storage.get_item("mymodels:tag-x") is not None

    @pytest.mark.asyncio
    async def test_async_generator_subclass(self, storage):
        class Countdown(IdentityGenerator):
            def __init__(self):
                self.next_value = 100

            async def next_id(self, model):
                self.next_value -= 1
                return self.next_value

        repo = LocalRepository("mymodels", storage, id_generator=Countdown())
        person = Person(name="a")
        await repo.create(person)
        assert person.id == 99

    @pytest.mark.asyncio
    async def test_existing_id_is_kept(self, repo):
        person = Person(id=42, name="a")
        await repo.create(person)
        assert person.id == 42
        assert await index_keys(repo.storage) == ["mymodels:42"]

    @pytest.mark.asyncio
    async def test_writes_record_and_index(self, repo, storage):
        person = Person(name="a", age=3)
        result = await repo.create(person)
        stored = await storage.get_item("mymodels:1")
        assert json.loads(stored) == person.to_json()
        assert result.record == person.to_json()
        assert result.raw == stored
        assert await index_keys(storage) == ["mymodels:1"]

    @pytest.mark.asyncio
    async def test_reopened_file_store_continues_ids(self, tmp_path):
        path = tmp_path / "db.json"
        first = Person(name="first")
        await LocalRepository("mymodels", FileStorage(path)).create(first)

        reopened = LocalRepository("mymodels", FileStorage(path))
        second = Person(name="second")
        await reopened.create(second)

        assert (first.id, second.id) == (1, 2)
        assert (await reopened.find(first))["name"] == "first"
        assert await index_keys(reopened.storage) == ["mymodels:1", "mymodels:2"]

    @pytest.mark.asyncio
    async def test_explicit_id_moves_counter_forward(self, repo):
        await repo.create(Person(id=7, name="seven"))
        person = Person(name="next")
        await repo.create(person)
        assert person.id == 8

    @pytest.mark.asyncio
    async def test_concurrent_creates_on_file_store(self, tmp_path):
        path = tmp_path / "db.json"
        repo = LocalRepository("mymodels", FileStorage(path))
        people = [Person(name=f"p{i}") for i in range(10)]
        await asyncio.gather(*(repo.create(person) for person in people))

        reopened = LocalRepository("mymodels", FileStorage(path))
        results = await reopened.find_all(People(), {"sort": "id"})
        assert [r["id"] for r in results] == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_key_with_index_separator_is_rejected_before_write(self, repo, storage):
        class Listed(Person):
            collection_name = "mymodels"

            def create_id(self):
                return "a,b"

        with pytest.raises(ValueError):
            await repo.create(Listed(name="x"))
        assert await storage.get_item("mymodels:a,b") is None
        assert await storage.get_item("mymodels") is None
        assert len(repo.records) == 0


class TestFind:

    @pytest.mark.asyncio
    async def test_round_trip(self, repo, people):
        for person in people:
            assert await repo.find(person) == person.to_json()

    @pytest.mark.asyncio
    async def test_returns_last_written_value(self, repo, people):
        person = people[0]
        person.age = 31
        await repo.update(person)
        assert (await repo.find(person))["age"] == 31

    @pytest.mark.asyncio
    async def test_missing_record(self, repo):
        with pytest.raises(NotFoundError) as excinfo:
            await repo.find(Person(id=99))
        error = excinfo.value
        assert str(error) == "Person (99) not found (read)"
        assert error.record_type == "Person"
        assert error.record_id == 99
        assert error.operation == "read"

    @pytest.mark.asyncio
    async def test_destroyed_record(self, repo, people):
        await repo.destroy(people[1])
        with pytest.raises(NotFoundError):
            await repo.find(people[1])


class TestDestroy:

    @pytest.mark.asyncio
    async def test_removes_record_and_index_entry(self, repo, storage, people):
        await repo.destroy(people[1])
        assert await storage.get_item("mymodels:2") is None
        assert await index_keys(storage) == ["mymodels:1", "mymodels:3"]

    @pytest.mark.asyncio
    async def test_unknown_key_fails_and_keeps_index(self, repo, storage, people):
        with pytest.raises(NotFoundError) as excinfo:
            await repo.destroy(Person(id=77))
        assert str(excinfo.value) == "Person (77) not found (destroy)"
        assert excinfo.value.operation == "destroy"
        assert await index_keys(storage) == ["mymodels:1", "mymodels:2", "mymodels:3"]

    @pytest.mark.asyncio
    async def test_second_destroy_fails(self, repo, people):
        assert await repo.destroy(people[0]) is people[0]
        with pytest.raises(NotFoundError):
            await repo.destroy(people[0])

    @pytest.mark.asyncio
    async def test_new_model_is_ignored(self, repo, storage):
        assert await repo.destroy(Person(name="a")) is None
        assert await storage.get_item("mymodels") is None


class TestKeyIndexInvariant:

    @pytest.mark.asyncio
    async def test_index_tracks_live_keys_in_creation_order(self, repo, storage):
        people = [Person(name=n) for n in "abcde"]
        for person in people:
            await repo.create(person)
        await repo.destroy(people[1])
        await repo.destroy(people[3])
        extra = Person(name="f")
        await repo.create(extra)
        assert await index_keys(storage) == ["mymodels:1", "mymodels:3", "mymodels:5", "mymodels:6"]
        assert repo.records.keys == await index_keys(storage)

    @pytest.mark.asyncio
    async def test_update_does_not_duplicate_keys(self, repo, storage, people):
        for _ in range(3):
            people[0].age = 40
            await repo.update(people[0])
        assert await index_keys(storage) == ["mymodels:1", "mymodels:2", "mymodels:3"]

    @pytest.mark.asyncio
    async def test_recreating_same_id_does_not_duplicate_key(self, repo, storage, people):
        await repo.create(people[0])
        assert await index_keys(storage) == ["mymodels:1", "mymodels:2", "mymodels:3"]

    @pytest.mark.asyncio
    async def test_new_repository_loads_persisted_index(self, repo, storage, people):
        reopened = LocalRepository("mymodels", storage)
        results = await reopened.find_all(People())
        assert [r["id"] for r in results] == [1, 2, 3]


class TestUpdate:

    @pytest.mark.asyncio
    async def test_new_model_is_created(self, repo, storage):
        person = Person(name="a")
        await repo.update(person)
        assert person.id == 1
        assert await index_keys(storage) == ["mymodels:1"]

    @pytest.mark.asyncio
    async def test_field_maps_are_merged(self, repo, storage, people):
        stored = json.loads(await storage.get_item("mymodels:1"))
        stored["nickname"] = "bee"
        await storage.set_item("mymodels:1", json.dumps(stored))

        people[0].age = 33
        result = await repo.update(people[0])

        merged = json.loads(await storage.get_item("mymodels:1"))
        assert merged["age"] == 33
        assert merged["nickname"] == "bee"
        assert result.raw == merged
        assert result.record == people[0].to_json()

    @pytest.mark.asyncio
    async def test_list_values_are_appended(self, storage):
        repo = LocalRepository("stubs", storage)
        await storage.set_item("stubs:1", "[1,2]")
        await repo.update(RecordStub(3, record_id=1))
        await repo.update(RecordStub([2, 4], record_id=1))
        assert json.loads(await storage.get_item("stubs:1")) == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_scalar_values_are_replaced(self, storage):
        repo = LocalRepository("stubs", storage)
        await storage.set_item("stubs:1", '"old"')
        await repo.update(RecordStub({"a": 1}, record_id=1))
        assert json.loads(await storage.get_item("stubs:1")) == {"a": 1}

    @pytest.mark.asyncio
    async def test_unindexed_key_is_added_to_index(self, repo, storage):
        await repo.update(Person(id=5, name="e"))
        assert await index_keys(storage) == ["mymodels:5"]


class TestIncrement:

    @pytest.mark.asyncio
    async def test_adds_amount(self, repo, storage, people):
        options = QueryOptions(inc=IncrementSpec("age", 5))
        result = await repo.update(people[0], options)
        assert result.record["age"] == 35
        assert json.loads(await storage.get_item("mymodels:1"))["age"] == 35

    @pytest.mark.asyncio
    async def test_missing_attribute_starts_at_zero(self, repo, storage, people):
        result = await repo.update(people[0], {"inc": {"attribute": "visits", "amount": 1}})
        assert result.record["visits"] == 1
        result = await repo.inc(people[0], {"inc": {"attribute": "visits", "amount": 2}})
        assert result.record["visits"] == 3

    @pytest.mark.asyncio
    async def test_increment_keeps_other_fields(self, repo, storage, people):
        await repo.inc(people[2], {"inc": {"attribute": "age", "amount": -5}})
        stored = json.loads(await storage.get_item("mymodels:3"))
        assert stored == {**people[2].to_json(), "age": 15}

    @pytest.mark.asyncio
    async def test_absent_record_fails(self, repo):
        with pytest.raises(NotFoundError) as excinfo:
            await repo.inc(Person(id=42), {"inc": {"attribute": "age", "amount": 1}})
        assert str(excinfo.value) == "Person (42), cannot INC"
        assert excinfo.value.operation == "inc"

    @pytest.mark.asyncio
    async def test_absent_record_with_ignore_failures(self, repo, storage):
        person = Person(id=42)
        result = await repo.inc(person, {"inc": {"attribute": "age", "amount": 1}, "ignoreFailures": True})
        assert result.record is person
        assert await storage.get_item("mymodels:42") is None

    @pytest.mark.asyncio
    async def test_requires_increment_spec(self, repo, people):
        with pytest.raises(InvalidQueryError):
            await repo.inc(people[0], {})


class TestFindAll:

    @pytest.mark.asyncio
    async def test_collection_query(self, repo, people):
        results = await repo.find_all(People(), {"sort": ["-age", "name"]})
        assert [r["name"] for r in results] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_collection_filter_and_limit(self, repo, people):
        results = await repo.find_all(People(), {"where": {"age": 30}, "limit": 1})
        assert [r["name"] for r in results] == ["b"]

    @pytest.mark.asyncio
    async def test_empty_index_issues_no_reads(self, repo, storage):
        await repo.initialize()
        reads_before = len(storage.reads)
        assert await repo.find_all(People()) == []
        assert len(storage.reads) == reads_before

    @pytest.mark.asyncio
    async def test_reads_every_indexed_key(self, repo, storage, people):
        storage.reads.clear()
        await repo.find_all(People())
        assert sorted(storage.reads) == ["mymodels:1", "mymodels:2", "mymodels:3"]

    @pytest.mark.asyncio
    async def test_fetch_by_indexed_attribute(self, repo, people):
        found = await repo.find_all(Person(name="c"))
        assert found == people[2].to_json()

    @pytest.mark.asyncio
    async def test_fetch_by_plain_string_index(self, repo, people):
        found = await repo.find_all(Person(email="a@example.com"))
        assert found["name"] == "a"

    @pytest.mark.asyncio
    async def test_fetch_ignores_unindexed_attributes(self, repo, people):
        found = await repo.find_all(Person(name="b", age=99))
        assert found["age"] == 30

    @pytest.mark.asyncio
    async def test_fetch_without_indexed_attribute(self, repo, people):
        with pytest.raises(InvalidQueryError, match="Cannot fetch model with given attributes"):
            await repo.find_all(Person(age=30))

    @pytest.mark.asyncio
    async def test_fetch_without_match(self, repo, people):
        with pytest.raises(NotFoundError) as excinfo:
            await repo.find_all(Person(name="zed"))
        assert excinfo.value.operation == "read"

    @pytest.mark.asyncio
    async def test_single_read_failure_propagates(self):
        storage = FailingStorage({"mymodels:2"})
        repo = LocalRepository("mymodels", storage)
        for name in "abc":
            await repo.create(Person(name=name))
        with pytest.raises(ConnectionError, match="mymodels:2"):
            await repo.find_all(People())

    @pytest.mark.asyncio
    async def test_multiple_read_failures_are_grouped(self):
        storage = FailingStorage({"mymodels:1", "mymodels:3"})
        repo = LocalRepository("mymodels", storage)
        for name in "abc":
            await repo.create(Person(name=name))
        with pytest.raises(ExceptionGroup) as excinfo:
            await repo.find_all(People())
        assert len(excinfo.value.exceptions) == 2
        assert all(isinstance(e, ConnectionError) for e in excinfo.value.exceptions)

    @pytest.mark.asyncio
    async def test_dangling_index_entry_is_skipped(self, repo, storage, people):
        await storage.remove_item("mymodels:2")
        results = await repo.find_all(People())
        assert [r["id"] for r in results] == [1, 3]

    @pytest.mark.asyncio
    async def test_configured_id_attribute_drives_cursor(self, storage):
        repo = LocalRepository("mymodels", storage, id_attribute="seq")
        for seq, name in ((30, "x"), (10, "y"), (20, "z")):
            await repo.create(Person(name=name, seq=seq))
        results = await repo.find_all(People(), {"after_id": 10})
        assert [r["name"] for r in results] == ["z"]

    @pytest.mark.asyncio
    async def test_model_id_attribute_drives_cursor_by_default(self, repo, people):
        results = await repo.find_all(People(), {"after_id": 2})
        assert [r["id"] for r in results] == [3]

    @pytest.mark.asyncio
    async def test_delayed_storage(self):
        repo = LocalRepository("mymodels", delay=0.01)
        for name in "ab":
            await repo.create(Person(name=name))
        results = await repo.find_all(People(), {"sort": "-name"})
        assert [r["name"] for r in results] == ["b", "a"]


class TestSync:

    @pytest.mark.asyncio
    async def test_dispatch(self, repo, people):
        assert await repo.sync("read", people[0]) == people[0].to_json()
        assert len(await repo.sync("read", People())) == 3
        assert (await repo.sync("read", Person(name="a")))["id"] == 2
        people[0].age = 1
        await repo.sync("patch", people[0])
        assert (await repo.find(people[0]))["age"] == 1
        await repo.sync("delete", people[0])
        assert len(await repo.sync("read", People())) == 2

    @pytest.mark.asyncio
    async def test_create(self, repo):
        result = await repo.sync("create", Person(name="n"))
        assert result.record["id"] == 1

    @pytest.mark.asyncio
    async def test_unknown_method(self, repo):
        with pytest.raises(ValueError):
            await repo.sync("upsert", Person(name="a"))


class TestRepositoryMisc:

    @pytest.mark.asyncio
    async def test_store_exposes_backend(self, repo, storage):
        assert repo.store() is storage

    @pytest.mark.asyncio
    async def test_metrics(self, repo, people):
        with pytest.raises(NotFoundError):
            await repo.find(Person(id=100))
        metrics = await repo.get_metrics()
        assert metrics["total_operations"] == 4
        assert metrics["failed_operations"] == 0
        assert metrics["records_count"] == 3

    @pytest.mark.asyncio
    async def test_failed_operation_is_counted(self):
        storage = FailingStorage({"mymodels:1"})
        repo = LocalRepository("mymodels", storage)
        with pytest.raises(ConnectionError):
            await repo.find(Person(id=1))
        metrics = await repo.get_metrics()
        assert metrics["failed_operations"] == 1

    @pytest.mark.asyncio
    async def test_sync_store_is_adapted(self):
        class DictStore:
            def __init__(self):
                self.data = {}

            def get_item(self, key):
                return self.data.get(key)

            def set_item(self, key, value):
                self.data[key] = value
                return value

            def remove_item(self, key):
                self.data.pop(key, None)
                return True

        backend = DictStore()
        repo = LocalRepository("mymodels", backend)
        person = Person(name="a")
        await repo.create(person)
        assert backend.data["mymodels"] == "mymodels:1"
        assert await repo.find(person) == person.to_json()

    def test_name_is_required(self):
        with pytest.raises(ValueError):
            LocalRepository("")

    @pytest.mark.asyncio
    async def test_shutdown_and_reinitialize(self, repo, storage, people):
        await repo.shutdown()
        await storage.set_item("mymodels", "mymodels:3")
        assert [r["id"] for r in await repo.find_all(People())] == [3]

    def test_default_storage_is_memory(self):
        assert isinstance(LocalRepository("x").store(), MemoryStorage)
        assert isinstance(CountingStorage(), MemoryStorage)
