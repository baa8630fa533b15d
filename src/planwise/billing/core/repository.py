"""
In-memory repositories with optimistic versioning.

Records are pydantic models carrying a ``version`` counter. Reads hand out
copies, so a caller mutates its own copy and commits it with ``update``; the
commit succeeds only if nobody else committed the same record in between.
"""

from collections.abc import Callable
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from planwise.billing.exceptions import ConcurrentModificationError


class VersionedRecord(BaseModel):
    """Base model for records stored in an ``InMemoryRepository``."""

    model_config = ConfigDict(
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    id_field: ClassVar[str] = "id"

    version: int = Field(0, ge=0, description="Optimistic concurrency version")

    @property
    def record_id(self) -> str:
        return str(getattr(self, self.id_field))


R = TypeVar("R", bound=VersionedRecord)


class InMemoryRepository(Generic[R]):
    """Map of records keyed by id, preserving insertion order."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._records: dict[str, R] = {}

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: R) -> R:
        """Insert a new record at version 1."""
        record_id = record.record_id
        if record_id in self._records:
            raise ConcurrentModificationError(
                f"{self.name} record {record_id} already exists",
                record_id=record_id,
                expected=0,
                actual=self._records[record_id].version,
            )
        stored = record.model_copy(update={"version": 1}, deep=True)
        self._records[record_id] = stored
        return stored.model_copy(deep=True)

    def get(self, record_id: str) -> R | None:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    def find_all(self, predicate: Callable[[R], bool] | None = None) -> list[R]:
        """Copies of all matching records in insertion order."""
        return [
            record.model_copy(deep=True)
            for record in self._records.values()
            if predicate is None or predicate(record)
        ]

    def remove(self, record_id: str) -> R | None:
        record = self._records.pop(record_id, None)
        return record.model_copy(deep=True) if record is not None else None

    def update(self, record: R) -> R:
        """Commit a modified copy; its version must match the stored one."""
        record_id = record.record_id
        current = self._records.get(record_id)
        actual = current.version if current is not None else 0
        if current is None or actual != record.version:
            raise ConcurrentModificationError(
                f"{self.name} record {record_id} was modified concurrently",
                record_id=record_id,
                expected=record.version,
                actual=actual,
            )
        stored = record.model_copy(update={"version": record.version + 1}, deep=True)
        self._records[record_id] = stored
        return stored.model_copy(deep=True)
