"""
Resource usage models.
"""

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from planwise.billing.core.repository import VersionedRecord


class ResourceUsageSnapshot(BaseModel):
    """Point-in-time copy of a user's usage counters."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    counters: dict[str, int] = Field(default_factory=dict)
    captured_at: datetime

    def get(self, resource: str) -> int:
        """Counter value, 0 for resources never tracked."""
        return self.counters.get(resource, 0)

    def __getitem__(self, resource: str) -> int:
        return self.get(resource)


class UsageCounters(VersionedRecord):
    """Stored counters of one user."""

    id_field: ClassVar[str] = "user_id"

    user_id: str = Field(min_length=1)
    counters: dict[str, int] = Field(default_factory=dict)
    updated_at: datetime | None = None
