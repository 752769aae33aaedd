"""
Persistence - Data Storage and Retrieval

💾 Pluggable Storage Backends:
Record repositories on top of flat key-value stores.

Structure:
- backends/: Key-value stores (memory, JSON file)
- repositories/: Record stores, query engine and supporting pieces

Example:
    from localdb.persistence import LocalRepository, FileStorage

    repo = LocalRepository("users", FileStorage("data/local.json"))
    users = await repo.find_all(UserCollection(), {"where": {"active": True}, "sort": "-age"})
"""

from .backends import KeyValueStore, MemoryStorage, FileStorage, as_key_value_store
from .repositories import (
    LocalRepository, QueryOptions, QueryEngine, IncrementSpec, StoreResult,
    RepositoryError, NotFoundError, InvalidQueryError,
    IdentityGenerator, CounterIdentityGenerator, UUIDIdentityGenerator
)

__all__ = [
    "KeyValueStore", "MemoryStorage", "FileStorage", "as_key_value_store",
    "LocalRepository", "QueryOptions", "QueryEngine", "IncrementSpec", "StoreResult",
    "RepositoryError", "NotFoundError", "InvalidQueryError",
    "IdentityGenerator", "CounterIdentityGenerator", "UUIDIdentityGenerator"
]
