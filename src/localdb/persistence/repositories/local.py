"""
Local Repository - Record Store over a Key-Value Backend

💾 Local Persistence Adapter:
Implements create/find/find_all/update/destroy/inc for one collection of
records kept in a flat key-value store. Each record lives under
``<collection>:<id>``; the collection's key list lives under ``<collection>``
and is what multi-record queries scan.
"""

from dataclasses import replace
from typing import Any, Iterable, List, Optional, Set, Union, TYPE_CHECKING
import asyncio
import logging

from ..backends.interface import KeyValueStore, as_key_value_store
from ..backends.memory import MemoryStorage
from .base import BaseRepository, InvalidQueryError, NotFoundError, RepositoryError
from .codec import RecordCodec, merge_values
from .identity import CounterIdentityGenerator, IdentityGenerator, resolve_identity
from .interface import QueryOptions, StoreResult
from .key_index import KeyIndex
from .query import QueryEngine

if TYPE_CHECKING:
    from ...entities.model import Collection, Model

logger = logging.getLogger(__name__)

OptionsLike = Union[QueryOptions, dict, None]

class LocalRepository(BaseRepository):
    """
    Record store for one collection.

    Args:
        name: Collection name; also the storage key of the key index
        storage: Key-value backend. Defaults to a fresh MemoryStorage
        delay: Response delay of the default MemoryStorage, in seconds
        id_generator: Identity source for new records
        id_attribute: Identity field used by cursor pagination. Overrides the
            model's own id_attribute when given
        separator: Separator of the persisted key index
        codec: Record serializer
    """

    def __init__(self,
                 name: str,
                 storage: Any = None,
                 *,
                 delay: float = 0,
                 id_generator: Optional[IdentityGenerator] = None,
                 id_attribute: Optional[str] = None,
                 separator: str = ",",
                 codec: Optional[RecordCodec] = None):
        super().__init__()
        if not name:
            raise ValueError("Repository name must be a non-empty string")
        self.name = name
        self.storage: KeyValueStore = (
            as_key_value_store(storage) if storage is not None else MemoryStorage(delay)
        )
        self.id_generator = id_generator or CounterIdentityGenerator()
        self.id_attribute = id_attribute
        self.codec = codec or RecordCodec()
        self.records = KeyIndex(name, self.storage, separator)

    async def _do_initialize(self):
        await self.records.load()
        if isinstance(self.id_generator, CounterIdentityGenerator):
            self.id_generator.advance_past(_key_ids(self.records.keys))
        self.metrics.records_count = len(self.records)
        logger.info(f"LocalRepository {self.name} loaded with {len(self.records)} records")

    def store(self) -> KeyValueStore:
        """Expose the raw storage backend."""
        return self.storage

    async def save(self) -> str:
        """Persist the key index."""
        self.metrics.records_count = len(self.records)
        return await self.records.save()

    # Core CRUD operations
    async def create(self, model: 'Model', options: OptionsLike = None) -> StoreResult:
        """Store a record under its key, assigning an identity first if it has none."""
        options = QueryOptions.from_value(options)
        async with self._operation("create"):
            logger.debug(f"CREATE: {model.to_json()}")
            if model.is_new():
                await self.create_id(model)
            else:
                self._note_identity(model)
            key = self._key(model)
            self.records.check(key)
            raw = await self.storage.set_item(key, self.codec.encode(model.to_json()))
            self.records.append_unique(key)
            await self.save()
            return StoreResult(model.to_json(), raw)

    async def find(self, model: 'Model', options: OptionsLike = None) -> Any:
        """Return the value stored at the record's key."""
        async with self._operation("find"):
            key = self._key(model)
            logger.debug(f"FIND: {key}")
            data = self.codec.decode(await self.storage.get_item(key))
            if data is None:
                raise NotFoundError.for_record(_type_of(model), _identity(model), "read")
            return data

    async def find_all(self, model: Union['Model', 'Collection'], options: OptionsLike = None) -> Any:
        """
        Query the collection.

        With a collection handle, every indexed record is loaded and the query
        options are applied. With a single model, the model's indexed
        attributes become the filter and the first match is returned.

        Raises:
            InvalidQueryError: If a single model has no indexed attribute set
            NotFoundError: If a single-model fetch matches nothing
        """
        options = QueryOptions.from_value(options)
        singular = not _is_collection(model)
        async with self._operation("find_all"):
            logger.debug(f"FINDALL: {options}")
            if singular:
                options = replace(options, where=self._search_attributes(model))

            records = await self._load_all(self.records.keys)
            engine = QueryEngine(self.id_attribute or _id_attribute(model))
            results = engine.query(records, options)

            if singular:
                if not results:
                    raise NotFoundError.for_record(_type_of(model), _identity(model), "read")
                return results[0]
            return results

    async def update(self, model: 'Model', options: OptionsLike = None) -> StoreResult:
        """Merge the record into its stored value; new records are created instead."""
        options = QueryOptions.from_value(options)
        if model.is_new():
            return await self.create(model, options)
        if options.inc:
            return await self.inc(model, options)

        async with self._operation("update"):
            key = self._key(model)
            incoming = model.to_json()
            logger.debug(f"UPDATE: {key} with {incoming}")
            self._note_identity(model)
            self.records.check(key)
            current = self.codec.decode(await self.storage.get_item(key))
            data = merge_values(current, incoming)
            await self.storage.set_item(key, self.codec.encode(data))
            if self.records.append_unique(key):
                await self.save()
            return StoreResult(model.to_json(), data)

    async def destroy(self, model: 'Model', options: OptionsLike = None) -> Any:
        """Remove the record. New records are ignored and yield None."""
        if model.is_new():
            return None
        async with self._operation("destroy"):
            key = self._key(model)
            logger.debug(f"DESTROY: {key}")
            await self.storage.remove_item(key)
            if not self.records.remove_first(key):
                raise NotFoundError.for_record(_type_of(model), _identity(model), "destroy")
            await self.save()
            return model

    async def inc(self, model: 'Model', options: OptionsLike) -> StoreResult:
        """
        Add ``options.inc.amount`` to ``options.inc.attribute`` of the stored value.

        The read and the write are separate store calls; concurrent increments
        of the same record can lose updates.
        """
        options = QueryOptions.from_value(options)
        if options.inc is None:
            raise InvalidQueryError("inc requires an increment specification")
        async with self._operation("inc"):
            logger.debug(f"INC: {options.inc}")
            key = self._key(model)
            data = self.codec.decode(await self.storage.get_item(key))
            if data is None:
                if options.ignore_failures:
                    return StoreResult(model, None)
                raise NotFoundError(
                    f"{_type_of(model)} ({_identity(model)}), cannot INC",
                    record_type=_type_of(model), record_id=_identity(model), operation="inc"
                )
            if not isinstance(data, dict):
                raise RepositoryError(f"Cannot INC {key}: stored value is not a field map")
            data[options.inc.attribute] = data.get(options.inc.attribute, 0) + options.inc.amount
            raw = await self.storage.set_item(key, self.codec.encode(data))
            return StoreResult(data, raw)

    async def sync(self, method: str, model: Union['Model', 'Collection'], options: OptionsLike = None) -> Any:
        """
        Dispatch an object-model sync call to the matching operation.

        Args:
            method: One of create, read, update, patch, delete
            model: Model or collection being synced
            options: Operation options
        """
        if method == "create":
            return await self.create(model, options)
        if method == "read":
            if not _is_collection(model) and _identity(model) is not None:
                return await self.find(model, options)
            return await self.find_all(model, options)
        if method in ("update", "patch"):
            return await self.update(model, options)
        if method == "delete":
            return await self.destroy(model, options)
        raise ValueError(f"Unsupported sync method: {method}")

    # Identity and keys
    async def create_id(self, model: 'Model') -> Any:
        """Assign a fresh identity to ``model``."""
        record_id = await resolve_identity(model, self.id_generator)
        model.set(model.id_attribute, record_id)
        return record_id

    def _note_identity(self, model: Any) -> None:
        """Keep the default counter ahead of identities assigned elsewhere."""
        if isinstance(self.id_generator, CounterIdentityGenerator):
            self.id_generator.advance_past([_identity(model)])

    def _key(self, model: Any) -> str:
        url = getattr(model, "url", None)
        key = url() if callable(url) else url
        if not key:
            raise RepositoryError(f"{_type_of(model)} has no storage key")
        return key

    def _search_attributes(self, model: 'Model') -> dict:
        indexed = _indexed_fields(getattr(model, "indexes", None) or [])
        attributes = getattr(model, "attributes", None)
        if attributes is None:
            attributes = model.to_json()
        search = {
            name: model.get(name) for name in attributes
            if name in indexed and model.get(name) is not None
        }
        if not search:
            raise InvalidQueryError("Cannot fetch model with given attributes")
        return search

    async def _load_all(self, keys: List[str]) -> List[Any]:
        """Read every key concurrently and decode the values, in key order."""
        if not keys:
            return []
        results = await asyncio.gather(
            *(self.storage.get_item(key) for key in keys), return_exceptions=True
        )
        errors = [result for result in results if isinstance(result, BaseException)]
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise BaseExceptionGroup(f"{len(errors)} reads failed in {self.name}", errors)

        records = []
        for key, raw in zip(keys, results):
            data = self.codec.decode(raw)
            if data is None:
                logger.warning(f"Indexed key {key} has no stored value")
                continue
            records.append(data)
        return records

def _is_collection(model: Any) -> bool:
    return getattr(model, "model", None) is not None

def _type_of(model: Any) -> str:
    return getattr(model, "type", None) or type(model).__name__

def _identity(model: Any) -> Any:
    id_attribute = getattr(model, "id_attribute", "id")
    getter = getattr(model, "get", None)
    return getter(id_attribute) if callable(getter) else getattr(model, id_attribute, None)

def _id_attribute(model: Any) -> str:
    model_class = getattr(model, "model", None)
    source = model_class if model_class is not None else model
    return getattr(source, "id_attribute", None) or "id"

def _key_ids(keys: Iterable[str]) -> List[int]:
    """Integer identities found in ``<collection>:<id>`` keys."""
    ids = []
    for key in keys:
        _, _, raw = key.rpartition(":")
        if raw.isdigit():
            ids.append(int(raw))
    return ids

def _indexed_fields(indexes: Iterable[Any]) -> Set[str]:
    fields = set()
    for index in indexes:
        fields.add(index["property"] if isinstance(index, dict) else index)
    return fields

__all__ = ["LocalRepository"]
