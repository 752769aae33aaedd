"""
Base Repository - Common Repository Functionality

🏗️ Shared Repository Foundation:
Error types, operation metrics and the initialize/shutdown lifecycle shared
by record repositories.
"""

from abc import ABC
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional
from datetime import datetime
from dataclasses import dataclass
import logging

from .interface import RecordRepository

logger = logging.getLogger(__name__)

class RepositoryError(Exception):
    """Base exception for repository operations"""
    pass

class NotFoundError(RepositoryError):
    """Raised when a record is absent from the store"""

    def __init__(self, message: str, record_type: Optional[str] = None,
                 record_id: Any = None, operation: Optional[str] = None):
        super().__init__(message)
        self.record_type = record_type
        self.record_id = record_id
        self.operation = operation

    @classmethod
    def for_record(cls, record_type: Optional[str], record_id: Any, operation: str) -> 'NotFoundError':
        """Build the standard ``<type> (<id>) not found (<operation>)`` error."""
        return cls(f"{record_type} ({record_id}) not found ({operation})",
                   record_type=record_type, record_id=record_id, operation=operation)

class InvalidQueryError(RepositoryError):
    """Raised when a query cannot be evaluated"""
    pass

@dataclass
class RepositoryMetrics:
    """Metrics collected by repository implementations"""
    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    average_response_time_ms: float = 0.0
    records_count: int = 0
    uptime_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary"""
        return {
            "total_operations": self.total_operations,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "success_rate": self.successful_operations / max(self.total_operations, 1),
            "average_response_time_ms": self.average_response_time_ms,
            "records_count": self.records_count,
            "uptime_seconds": self.uptime_seconds
        }

class BaseRepository(RecordRepository, ABC):
    """
    Base repository implementation providing common functionality.

    This class provides:
    - Metrics collection
    - Lazy one-time initialization
    - Logging of failed operations
    """

    def __init__(self):
        self.metrics = RepositoryMetrics()
        self.start_time = datetime.now()
        self._is_initialized = False
        self._logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    async def initialize(self):
        """Initialize the repository"""
        if self._is_initialized:
            return

        await self._do_initialize()
        self._is_initialized = True
        self._logger.info(f"{self.__class__.__name__} initialized successfully")

    async def shutdown(self):
        """Shutdown the repository"""
        if not self._is_initialized:
            return

        await self._do_shutdown()
        self._is_initialized = False
        self._logger.info(f"{self.__class__.__name__} shutdown complete")

    async def _do_initialize(self):
        """Override in subclasses for specific initialization"""
        pass

    async def _do_shutdown(self):
        """Override in subclasses for specific shutdown"""
        pass

    # Metrics and monitoring
    async def get_metrics(self) -> Dict[str, Any]:
        """Get repository performance metrics"""
        self.metrics.uptime_seconds = (datetime.now() - self.start_time).total_seconds()
        return self.metrics.to_dict()

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Initialize on first use and record the outcome of one operation."""
        start_time = datetime.now()
        try:
            await self.initialize()
            yield
        except NotFoundError:
            # counted as a completed lookup
            self._record_operation_success(start_time)
            raise
        except Exception as e:
            self._record_operation_failure(name, e)
            raise
        else:
            self._record_operation_success(start_time)

    def _record_operation_success(self, start_time: datetime):
        """Record a successful operation"""
        duration = (datetime.now() - start_time).total_seconds() * 1000
        self.metrics.total_operations += 1
        self.metrics.successful_operations += 1

        total_time = self.metrics.average_response_time_ms * (self.metrics.successful_operations - 1)
        self.metrics.average_response_time_ms = (total_time + duration) / self.metrics.successful_operations

    def _record_operation_failure(self, name: str, error: Exception):
        """Record a failed operation"""
        self.metrics.total_operations += 1
        self.metrics.failed_operations += 1
        self._logger.error(f"Operation {name} failed: {error}")

__all__ = [
    "BaseRepository", "RepositoryError", "NotFoundError",
    "InvalidQueryError", "RepositoryMetrics"
]
