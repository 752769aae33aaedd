"""
Persistence Repository Interface

💾 Standard Data Access Contract:
This module defines the query options accepted by record repositories, the
small expression tree that ``where`` filters compile into, and the abstract
repository every store implements.
"""

from abc import ABC, abstractmethod
from typing import (
    Any, Dict, List, Mapping, Optional, Union, TYPE_CHECKING
)
from dataclasses import dataclass, field
from enum import Enum

if TYPE_CHECKING:
    from ...entities.model import Collection, Model

class QueryOperator(Enum):
    """Field operators of the ``where`` mini-language"""
    EQUALS = "$eq"
    NOT_EQUALS = "$ne"
    GREATER_THAN = "$gt"
    GREATER_THAN_OR_EQUAL = "$gte"
    LESS_THAN = "$lt"
    LESS_THAN_OR_EQUAL = "$lte"
    IN = "$in"
    NOT_IN = "$nin"
    ALL = "$all"
    EXISTS = "$exists"
    REGEX = "$regex"
    SIZE = "$size"
    MOD = "$mod"
    # A plain nested mapping: the operand is a sub-expression over the field's value
    MATCH = "$match"

class LogicalOperator(Enum):
    """Operators combining whole sub-queries"""
    AND = "$and"
    OR = "$or"
    NOR = "$nor"

class SortDirection(Enum):
    """Sort direction for ordering"""
    ASC = "asc"
    DESC = "desc"

@dataclass(frozen=True)
class QueryFilter:
    """A single condition on one field"""
    field: str
    operator: QueryOperator
    value: Any = None

@dataclass(frozen=True)
class LogicalFilter:
    """A combination of conditions; an empty AND matches everything"""
    operator: LogicalOperator
    conditions: tuple = ()

Condition = Union[QueryFilter, LogicalFilter]

@dataclass(frozen=True)
class SortCriteria:
    """Represents sorting criteria"""
    field: str
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def parse(cls, spec: str) -> 'SortCriteria':
        """Parse ``"name"`` or ``"-name"`` into sort criteria."""
        if spec.startswith("-"):
            return cls(spec[1:], SortDirection.DESC)
        return cls(spec, SortDirection.ASC)

@dataclass(frozen=True)
class IncrementSpec:
    """Numeric increment applied to one stored attribute"""
    attribute: str
    amount: Union[int, float] = 1

@dataclass
class QueryOptions:
    """Per-call options for repository operations"""
    where: Optional[Dict[str, Any]] = None
    sort: Union[str, List[str], None] = None
    offset: int = 0
    limit: Optional[int] = None
    after_id: Any = None
    before_id: Any = None
    inc: Optional[IncrementSpec] = None
    ignore_failures: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, options: Union['QueryOptions', Mapping[str, Any], None]) -> 'QueryOptions':
        """Build options from an existing instance, a plain mapping or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        values = dict(options)
        inc = values.pop("inc", None)
        if isinstance(inc, Mapping):
            inc = IncrementSpec(inc["attribute"], inc.get("amount", 1))
        ignore_failures = values.pop("ignore_failures", values.pop("ignoreFailures", False))
        known = {}
        for name in ("where", "sort", "offset", "limit", "after_id", "before_id"):
            if name in values:
                known[name] = values.pop(name)
        if known.get("offset") is None:
            known["offset"] = 0
        return cls(inc=inc, ignore_failures=bool(ignore_failures), extra=values, **known)

    @property
    def sort_criteria(self) -> List[SortCriteria]:
        """Sort specification as a list of criteria."""
        if not self.sort:
            return []
        specs = [self.sort] if isinstance(self.sort, str) else list(self.sort)
        return [SortCriteria.parse(spec) for spec in specs]

    def equals(self, field_name: str, value: Any) -> 'QueryOptions':
        """Convenience method for an equality filter"""
        return self.add_filter(field_name, QueryOperator.EQUALS, value)

    def add_filter(self, field_name: str, operator: QueryOperator, value: Any = None) -> 'QueryOptions':
        """Add a filter condition in ``where`` form"""
        where = dict(self.where or {})
        if operator is QueryOperator.MATCH:
            where[field_name] = value
        else:
            condition = dict(where.get(field_name) or {}) if is_expression(where.get(field_name)) else {}
            condition[operator.value] = value
            where[field_name] = condition
        self.where = where
        return self

    def add_sort(self, field_name: str, direction: SortDirection = SortDirection.ASC) -> 'QueryOptions':
        """Add sorting criteria"""
        spec = field_name if direction is SortDirection.ASC else f"-{field_name}"
        specs = [] if not self.sort else ([self.sort] if isinstance(self.sort, str) else list(self.sort))
        specs.append(spec)
        self.sort = specs
        return self

def is_expression(value: Any) -> bool:
    """True for a non-empty mapping whose keys are all operators."""
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(key, str) and key.startswith("$") for key in value
    )

@dataclass
class StoreResult:
    """Outcome of a write: the record as the caller sees it and what was stored"""
    record: Any
    raw: Any = None

class RecordRepository(ABC):
    """
    Abstract repository interface for record persistence.

    All operations are coroutines. Absence of a record is reported by raising
    NotFoundError, never by returning None.
    """

    @abstractmethod
    async def create(self, model: 'Model', options: Optional[QueryOptions] = None) -> StoreResult:
        """Assign identity if needed, store the record and index its key."""
        pass

    @abstractmethod
    async def find(self, model: 'Model', options: Optional[QueryOptions] = None) -> Any:
        """Read the stored value at the record's own key."""
        pass

    @abstractmethod
    async def find_all(self, model: Union['Model', 'Collection'],
                       options: Optional[QueryOptions] = None) -> Any:
        """Query every indexed record, or fetch one record by indexed attributes."""
        pass

    @abstractmethod
    async def update(self, model: 'Model', options: Optional[QueryOptions] = None) -> StoreResult:
        """Merge the record into its stored value."""
        pass

    @abstractmethod
    async def destroy(self, model: 'Model', options: Optional[QueryOptions] = None) -> Any:
        """Remove the record and its index entry."""
        pass

    @abstractmethod
    async def inc(self, model: 'Model', options: QueryOptions) -> StoreResult:
        """Add to a numeric attribute of the stored value."""
        pass

# Query builder helpers
class QueryBuilder:
    """Builder for constructing queries"""

    def __init__(self):
        self.options = QueryOptions()

    def where(self, field_name: str, operator: QueryOperator, value: Any = None) -> 'QueryBuilder':
        """Add a where condition"""
        self.options.add_filter(field_name, operator, value)
        return self

    def equals(self, field_name: str, value: Any) -> 'QueryBuilder':
        return self.where(field_name, QueryOperator.EQUALS, value)

    def gt(self, field_name: str, value: Any) -> 'QueryBuilder':
        return self.where(field_name, QueryOperator.GREATER_THAN, value)

    def lt(self, field_name: str, value: Any) -> 'QueryBuilder':
        return self.where(field_name, QueryOperator.LESS_THAN, value)

    def order_by(self, field_name: str, direction: SortDirection = SortDirection.ASC) -> 'QueryBuilder':
        """Add sorting"""
        self.options.add_sort(field_name, direction)
        return self

    def limit(self, count: int) -> 'QueryBuilder':
        self.options.limit = count
        return self

    def offset(self, count: int) -> 'QueryBuilder':
        self.options.offset = count
        return self

    def after(self, record_id: Any) -> 'QueryBuilder':
        """Page forward from the record with this identity"""
        self.options.after_id = record_id
        return self

    def before(self, record_id: Any) -> 'QueryBuilder':
        """Page backward from the record with this identity"""
        self.options.before_id = record_id
        return self

    def build(self) -> QueryOptions:
        """Build the final query options"""
        return self.options

def query() -> QueryBuilder:
    """Create a new query builder"""
    return QueryBuilder()

__all__ = [
    "QueryOperator", "LogicalOperator", "SortDirection", "QueryFilter",
    "LogicalFilter", "Condition", "SortCriteria", "IncrementSpec",
    "QueryOptions", "StoreResult", "RecordRepository", "QueryBuilder", "query"
]
