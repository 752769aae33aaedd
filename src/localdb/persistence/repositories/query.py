"""
Query Engine - In-Memory Filtering, Sorting and Pagination

🔎 Linear-Scan Queries:
The key-value store only knows single keys, so multi-record queries load every
record of a collection and evaluate the query here. The steps always run in
the same order: filter, sort, cursor/offset, limit.

Filters use a small Mongo-style language::

    {"age": {"$gte": 18}, "flags": {"active": True}, "$or": [{...}, {...}]}

A ``where`` mapping is compiled once per query into QueryFilter/LogicalFilter
nodes and then evaluated against each record.
"""

from collections.abc import Mapping
from datetime import date, datetime, time
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Tuple
import logging
import re

from pydantic_core import to_jsonable_python

from .base import InvalidQueryError
from .interface import (
    Condition, LogicalFilter, LogicalOperator, QueryFilter, QueryOperator,
    QueryOptions, SortCriteria, SortDirection, is_expression
)

logger = logging.getLogger(__name__)

_JSON_SCALARS = (str, int, float, bool, type(None))
_OPAQUE_ID_LENGTH = 24
_DATE_TYPES = (datetime, date, time)


def normalize_value(value: Any) -> Any:
    """Bring a filter operand into the form records are stored in."""
    if isinstance(value, _DATE_TYPES):
        return to_jsonable_python(value)
    if isinstance(value, Mapping):
        return {
            k: to_jsonable_python(v) if isinstance(v, _DATE_TYPES) else v
            for k, v in value.items()
        }
    if not isinstance(value, (_JSON_SCALARS, list, tuple, set, re.Pattern)):
        text = str(value)
        if len(text) == _OPAQUE_ID_LENGTH:
            return text
    return value


def normalize_where(where: Mapping) -> Dict[str, Any]:
    """Normalize every top-level operand of a ``where`` mapping."""
    return {field: normalize_value(value) for field, value in where.items()}


def compile_where(where: Mapping) -> LogicalFilter:
    """
    Compile a ``where`` mapping into an expression tree.

    Args:
        where: Mapping of field name to expected value, operator expression
            or nested mapping, plus optional ``$and``/``$or``/``$nor`` lists

    Returns:
        An AND node over one condition per field/operator

    Raises:
        InvalidQueryError: On unknown operators or malformed operands
    """
    if not isinstance(where, Mapping):
        raise InvalidQueryError(f"where must be a mapping, got {type(where).__name__}")

    conditions: List[Condition] = []
    for field, value in where.items():
        if isinstance(field, str) and field.startswith("$"):
            try:
                operator = LogicalOperator(field)
            except ValueError:
                raise InvalidQueryError(f"Unknown logical operator {field}") from None
            if not isinstance(value, (list, tuple)):
                raise InvalidQueryError(f"{field} expects a list of sub-queries")
            conditions.append(LogicalFilter(
                operator, tuple(compile_where(normalize_where(sub)) for sub in value)
            ))
        elif is_expression(value):
            for op_name, operand in value.items():
                try:
                    operator = QueryOperator(op_name)
                except ValueError:
                    raise InvalidQueryError(f"Unknown operator {op_name} on field {field}") from None
                if operator is QueryOperator.MATCH:
                    operand = compile_where(operand)
                _check_operand(field, operator, operand)
                conditions.append(QueryFilter(field, operator, operand))
        elif isinstance(value, Mapping) and value:
            if any(isinstance(key, str) and key.startswith("$") for key in value):
                raise InvalidQueryError(f"Cannot mix operators and fields in filter on {field}")
            conditions.append(QueryFilter(field, QueryOperator.MATCH, compile_where(value)))
        else:
            conditions.append(QueryFilter(field, QueryOperator.EQUALS, value))
    return LogicalFilter(LogicalOperator.AND, tuple(conditions))


def _check_operand(field: str, operator: QueryOperator, operand: Any) -> None:
    if operator in (QueryOperator.IN, QueryOperator.NOT_IN, QueryOperator.ALL):
        if not isinstance(operand, (list, tuple, set)):
            raise InvalidQueryError(f"{operator.value} on {field} expects a list")
    elif operator is QueryOperator.MOD:
        if not isinstance(operand, (list, tuple)) or len(operand) != 2 or not operand[0]:
            raise InvalidQueryError(f"$mod on {field} expects [divisor, remainder]")
    elif operator is QueryOperator.SIZE:
        if not isinstance(operand, int) or isinstance(operand, bool):
            raise InvalidQueryError(f"$size on {field} expects an integer")
    elif operator is QueryOperator.REGEX:
        if not isinstance(operand, (str, re.Pattern)):
            raise InvalidQueryError(f"$regex on {field} expects a pattern")


def _lookup(record: Any, field: str) -> Tuple[bool, Any]:
    """Find a field in a record, following dotted paths into nested maps."""
    if not isinstance(record, Mapping):
        return False, None
    if field in record:
        return True, record[field]
    current: Any = record
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return False, None
        current = current[part]
    return True, current


def _type_group(value: Any) -> str:
    return "number" if isinstance(value, (int, float)) else type(value).__name__


def _compare(a: Any, b: Any) -> int:
    """
    Natural ordering with missing values first.

    Values of types that cannot be compared are ordered by type group
    (numbers together, otherwise the type name) so the ordering stays total.
    """
    if a is None or b is None:
        return (a is not None) - (b is not None)
    try:
        if a < b:
            return -1
        if a > b:
            return 1
        return 0
    except TypeError:
        left, right = _type_group(a), _type_group(b)
        return (left > right) - (left < right)


def _equals(value: Any, operand: Any) -> bool:
    if isinstance(value, list) and not isinstance(operand, list):
        return operand in value
    return value == operand


def _ordered(value: Any, operand: Any, accept) -> bool:
    if value is None:
        return False
    candidates = value if isinstance(value, list) else [value]
    for candidate in candidates:
        try:
            if accept(candidate, operand):
                return True
        except TypeError:
            continue
    return False


def _field_matches(condition: QueryFilter, record: Any) -> bool:
    found, value = _lookup(record, condition.field)
    op = condition.operator
    operand = condition.value

    if op is QueryOperator.EXISTS:
        return found == bool(operand)
    if op is QueryOperator.EQUALS:
        return _equals(value, operand)
    if op is QueryOperator.NOT_EQUALS:
        return not _equals(value, operand)
    if op is QueryOperator.GREATER_THAN:
        return _ordered(value, operand, lambda a, b: a > b)
    if op is QueryOperator.GREATER_THAN_OR_EQUAL:
        return _ordered(value, operand, lambda a, b: a >= b)
    if op is QueryOperator.LESS_THAN:
        return _ordered(value, operand, lambda a, b: a < b)
    if op is QueryOperator.LESS_THAN_OR_EQUAL:
        return _ordered(value, operand, lambda a, b: a <= b)
    if op is QueryOperator.IN:
        candidates = value if isinstance(value, list) else [value]
        return any(candidate in operand for candidate in candidates)
    if op is QueryOperator.NOT_IN:
        candidates = value if isinstance(value, list) else [value]
        return not any(candidate in operand for candidate in candidates)
    if op is QueryOperator.ALL:
        return isinstance(value, list) and all(item in value for item in operand)
    if op is QueryOperator.SIZE:
        return isinstance(value, list) and len(value) == operand
    if op is QueryOperator.REGEX:
        return isinstance(value, str) and re.search(operand, value) is not None
    if op is QueryOperator.MOD:
        divisor, remainder = operand
        return (isinstance(value, (int, float)) and not isinstance(value, bool)
                and value % divisor == remainder)
    if op is QueryOperator.MATCH:
        return isinstance(value, Mapping) and matches(operand, value)
    return False


def matches(condition: Condition, record: Any) -> bool:
    """Evaluate a compiled condition against one record."""
    if isinstance(condition, QueryFilter):
        return _field_matches(condition, record)
    results = (matches(sub, record) for sub in condition.conditions)
    if condition.operator is LogicalOperator.AND:
        return all(results)
    if condition.operator is LogicalOperator.OR:
        return any(results)
    return not any(results)


class QueryEngine:
    """
    Applies QueryOptions to a list of loaded records.

    Records are plain decoded values, normally field maps. The identity field
    name is used to locate ``after_id``/``before_id`` cursors.
    """

    def __init__(self, id_attribute: str = "id"):
        self.id_attribute = id_attribute

    def query(self, records: List[Any], options: Optional[QueryOptions] = None) -> List[Any]:
        """
        Run filter, sort, cursor positioning and pagination, in that order.

        Args:
            records: Loaded records; the list is not modified
            options: Query options

        Returns:
            The page of matching records
        """
        options = QueryOptions.from_value(options)
        offset = options.offset or 0
        # the default page size is taken before filtering
        limit = options.limit or len(records)

        results = self.filter(records, options.where)
        results = self.sort(results, options.sort_criteria)

        if options.after_id is not None:
            position = self._position(results, options.after_id)
            if position is not None:
                offset = position + 1
        if options.before_id is not None:
            position = self._position(results, options.before_id)
            if position is not None:
                offset = max(position - limit, 0)

        return results[offset:offset + limit]

    def filter(self, records: List[Any], where: Optional[Mapping]) -> List[Any]:
        """Keep the records matching ``where``; no ``where`` keeps all."""
        if not where:
            return list(records)
        logger.debug(f"filtering results: {where}")
        condition = compile_where(normalize_where(where))
        return [record for record in records if matches(condition, record)]

    def sort(self, records: List[Any], criteria: List[SortCriteria]) -> List[Any]:
        """Stable sort by each criterion in turn."""
        if not criteria:
            return list(records)
        logger.debug(f"sorting by {[c.field for c in criteria]}")

        def compare(a: Any, b: Any) -> int:
            for criterion in criteria:
                _, left = _lookup(a, criterion.field)
                _, right = _lookup(b, criterion.field)
                result = _compare(left, right)
                if criterion.direction is SortDirection.DESC:
                    result = -result
                if result:
                    return result
            return 0

        return sorted(records, key=cmp_to_key(compare))

    def _position(self, records: List[Any], record_id: Any) -> Optional[int]:
        for i, record in enumerate(records):
            found, value = _lookup(record, self.id_attribute)
            if found and value == record_id:
                return i
        return None


__all__ = [
    "QueryEngine", "compile_where", "matches", "normalize_value", "normalize_where"
]
