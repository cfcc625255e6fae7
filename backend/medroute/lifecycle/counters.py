"""Atomic counters on hospital documents.

Counters are shared by every staff session of a hospital, so updates never
read-modify-write at the application layer. Each update reads the current
values, computes the new ones and writes them with a filter on the values it
read; if another writer got there first the filter misses and the update is
retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Protocol

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection


class CounterConflictError(RuntimeError):
    """Retries exhausted; the counters keep their previous values."""


class CounterTargetMissing(LookupError):
    pass


@dataclass(frozen=True)
class CounterPath:
    document_id: str
    field: str

    @classmethod
    def stat(cls, hospital_id: str, name: str) -> "CounterPath":
        return cls(hospital_id, f"stats.{name}")

    def __str__(self) -> str:
        return f"{self.document_id}/{self.field.replace('.', '/')}"


class CounterStore(Protocol):
    async def apply_delta(self, path: CounterPath, delta: int, clamp_at_zero: bool = True) -> int:
        ...

    async def apply_deltas(
        self, document_id: str, deltas: Mapping[str, int], clamp_at_zero: bool = True
    ) -> Dict[str, int]:
        ...

    async def read_value(self, path: CounterPath) -> int | None:
        ...

    async def compare_and_set(self, path: CounterPath, value: int, guard: CounterPath, expected: int | None) -> bool:
        ...


def _read_field(document: Mapping[str, Any], dotted: str) -> Any:
    value: Any = document
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


class MongoCounterStore:
    def __init__(self, collection: AsyncIOMotorCollection, max_retries: int = 5) -> None:
        self.collection = collection
        self.max_retries = max(1, max_retries)

    async def apply_delta(self, path: CounterPath, delta: int, clamp_at_zero: bool = True) -> int:
        values = await self.apply_deltas(path.document_id, {path.field: delta}, clamp_at_zero)
        return values[path.field]

    async def apply_deltas(
        self, document_id: str, deltas: Mapping[str, int], clamp_at_zero: bool = True
    ) -> Dict[str, int]:
        """Apply all ``deltas`` to one document in a single conditional write."""
        projection = {field: 1 for field in deltas}
        for attempt in range(1, self.max_retries + 1):
            document = await self.collection.find_one({"_id": document_id}, projection)
            if document is None:
                raise CounterTargetMissing(f"No document {document_id} for counters")

            expected: Dict[str, Any] = {}
            updated: Dict[str, int] = {}
            for field, delta in deltas.items():
                current = _read_field(document, field)
                expected[field] = current
                value = int(current or 0) + delta
                updated[field] = max(value, 0) if clamp_at_zero else value

            result = await self.collection.update_one(
                {"_id": document_id, **expected},
                {"$set": updated},
            )
            if result.matched_count == 1:
                return updated
            logger.debug(
                "Counter conflict on {} (attempt {}/{}), retrying",
                document_id,
                attempt,
                self.max_retries,
            )

        logger.warning("Counter update on {} gave up after {} attempts", document_id, self.max_retries)
        raise CounterConflictError(f"Concurrent updates on {document_id}; try again")

    async def read_value(self, path: CounterPath) -> int | None:
        document = await self.collection.find_one({"_id": path.document_id}, {path.field: 1})
        if document is None:
            raise CounterTargetMissing(f"No document {path.document_id} for counters")
        return _read_field(document, path.field)

    async def compare_and_set(self, path: CounterPath, value: int, guard: CounterPath, expected: int | None) -> bool:
        """Write ``value`` only while ``guard`` still holds ``expected``; ``False`` if it moved."""
        result = await self.collection.update_one(
            {"_id": path.document_id, guard.field: expected},
            {"$set": {path.field: value}},
        )
        return result.matched_count == 1
