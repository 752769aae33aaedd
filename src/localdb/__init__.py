"""
localdb - Local Persistence Adapter

A record store for object models on top of flat key-value storage: identity
assignment, a per-collection key index, in-memory queries with filtering,
sorting and cursor pagination, and merge/increment semantics on update.
"""

from .entities import Model, Collection
from .persistence import (
    KeyValueStore, MemoryStorage, FileStorage,
    LocalRepository, QueryOptions, QueryEngine, IncrementSpec, StoreResult,
    RepositoryError, NotFoundError, InvalidQueryError,
    IdentityGenerator, CounterIdentityGenerator, UUIDIdentityGenerator
)
from .configuration import (
    LocalDbConfig, Environment, LoggingConfig, ConfigurationError, configure_logging
)

__version__ = "0.1.0"

__all__ = [
    # Object model
    'Model',
    'Collection',

    # Storage
    'KeyValueStore',
    'MemoryStorage',
    'FileStorage',

    # Repositories
    'LocalRepository',
    'QueryOptions',
    'QueryEngine',
    'IncrementSpec',
    'StoreResult',
    'IdentityGenerator',
    'CounterIdentityGenerator',
    'UUIDIdentityGenerator',

    # Errors
    'RepositoryError',
    'NotFoundError',
    'InvalidQueryError',
    'ConfigurationError',

    # Configuration
    'LocalDbConfig',
    'Environment',
    'LoggingConfig',
    'configure_logging',
]
