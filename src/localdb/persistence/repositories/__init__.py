"""
Persistence Repositories - Record Access Layer

💾 Record Store Patterns:
Repositories turn a flat key-value store into a record store with identity,
a per-collection key index and in-memory queries.

Components:
- RecordRepository: Abstract interface of every record store
- LocalRepository: Record store over any KeyValueStore
- QueryEngine: Filtering, sorting and pagination over loaded records
- KeyIndex, RecordCodec, IdentityGenerator: the pieces LocalRepository is built from
"""

from .interface import (
    RecordRepository, QueryOptions, QueryOperator, LogicalOperator, QueryFilter,
    LogicalFilter, SortCriteria, SortDirection, IncrementSpec, StoreResult,
    QueryBuilder, query
)
from .base import (
    BaseRepository, RepositoryError, NotFoundError, InvalidQueryError,
    RepositoryMetrics
)
from .codec import RecordCodec, StoredValue, MapRecord, ListRecord, ScalarRecord
from .identity import IdentityGenerator, CounterIdentityGenerator, UUIDIdentityGenerator
from .key_index import KeyIndex
from .query import QueryEngine, compile_where
from .local import LocalRepository

# Importing the .query submodule binds the package attribute "query" to the
# module; re-bind it to the query() builder helper exported by the interface.
from .interface import query

__all__ = [
    # Interface components
    "RecordRepository", "QueryOptions", "QueryOperator", "LogicalOperator",
    "QueryFilter", "LogicalFilter", "SortCriteria", "SortDirection",
    "IncrementSpec", "StoreResult", "QueryBuilder", "query",

    # Base components
    "BaseRepository", "RepositoryError", "NotFoundError", "InvalidQueryError",
    "RepositoryMetrics",

    # Building blocks
    "RecordCodec", "StoredValue", "MapRecord", "ListRecord", "ScalarRecord",
    "IdentityGenerator", "CounterIdentityGenerator", "UUIDIdentityGenerator",
    "KeyIndex", "QueryEngine", "compile_where",

    # Stores
    "LocalRepository"
]
