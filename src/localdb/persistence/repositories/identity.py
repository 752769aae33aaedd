"""
Identity generation for new records.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable
import inspect
import uuid


class IdentityGenerator(ABC):
    """Source of identities for records that do not have one yet."""

    @abstractmethod
    async def next_id(self, model: Any) -> Any:
        pass


class CounterIdentityGenerator(IdentityGenerator):
    """Auto-increment integers, starting at ``start``.

    The counter belongs to the generator instance; two repositories sharing
    one generator share the sequence, separate generators never interfere.
    Identities already in use can be reported with ``advance_past`` so that
    a reopened store does not hand them out again.
    """

    def __init__(self, start: int = 1):
        self._next = start

    async def next_id(self, model: Any) -> int:
        value = self._next
        self._next += 1
        return value

    def advance_past(self, record_ids: Iterable[Any]) -> None:
        """Move the counter beyond every integer identity in ``record_ids``."""
        for record_id in record_ids:
            if isinstance(record_id, int) and not isinstance(record_id, bool) and record_id >= self._next:
                self._next = record_id + 1


class UUIDIdentityGenerator(IdentityGenerator):
    """Random UUID4 strings."""

    async def next_id(self, model: Any) -> str:
        return str(uuid.uuid4())


async def resolve_identity(model: Any, generator: IdentityGenerator) -> Any:
    """Use the model's own ``create_id`` hook if it has one, else the generator."""
    create_id = getattr(model, "create_id", None)
    if callable(create_id):
        result = create_id()
        if inspect.isawaitable(result):
            result = await result
        return result
    return await generator.next_id(model)


__all__ = [
    "IdentityGenerator", "CounterIdentityGenerator", "UUIDIdentityGenerator",
    "resolve_identity"
]
