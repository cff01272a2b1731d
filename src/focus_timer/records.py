"""Daily completion records and their aggregation.

One DailyRecord per calendar date (ISO ``YYYY-MM-DD`` key). The RecordBook
keeps them in insertion order and is only ever mutated by the session engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DailyRecord(BaseModel):
    """Aggregate of completed work sessions for one date."""

    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., min_length=1, description="ISO date, YYYY-MM-DD")
    count: int = Field(default=0, ge=0, description="Completed work sessions")
    total_minutes: int = Field(default=0, ge=0, alias="totalMinutes")

    def to_dict(self) -> dict:
        """Serialized form used by the record store."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class RecordSummary:
    today_count: int
    today_minutes: int
    total_count: int
    total_minutes: int
    days: int


class RecordBook:
    """Ordered collection of DailyRecords with accumulate-on-write semantics."""

    def __init__(self, records: Optional[list[DailyRecord]] = None):
        self._records: list[DailyRecord] = [r.model_copy() for r in records or []]

    @property
    def records(self) -> list[DailyRecord]:
        return [r.model_copy() for r in self._records]

    def replace(self, records: list[DailyRecord]) -> None:
        """Swap in a freshly loaded record list."""
        self._records = [r.model_copy() for r in records]

    def __len__(self) -> int:
        return len(self._records)

    def get(self, date: str) -> DailyRecord | None:
        for record in self._records:
            if record.date == date:
                return record.model_copy()
        return None

    def record_completion(self, date: str, minutes: int) -> list[DailyRecord]:
        """Count one completed work session of `minutes` on `date`.

        Calls accumulate: a second completion on the same date increments the
        existing record instead of replacing it.
        """
        if minutes < 0:
            raise ValueError(f"minutes must be >= 0, got {minutes}")

        record = self._find(date)
        if record is None:
            self._records.append(DailyRecord(date=date, count=1, total_minutes=minutes))
        else:
            record.count += 1
            record.total_minutes += minutes
        return self.records

    def add_minutes(self, date: str, minutes: int) -> DailyRecord | None:
        """Credit extra minutes to an already-recorded session.

        Targets the record for `date`, or the most recent record when that
        date has none. The completion count is left alone.
        """
        if minutes < 0:
            raise ValueError(f"minutes must be >= 0, got {minutes}")

        record = self._find(date)
        if record is None:
            if not self._records:
                return None
            record = self._records[-1]
        record.total_minutes += minutes
        return record.model_copy()

    def summary(self, today: str) -> RecordSummary:
        todays = self._find(today)
        return RecordSummary(
            today_count=todays.count if todays else 0,
            today_minutes=todays.total_minutes if todays else 0,
            total_count=sum(r.count for r in self._records),
            total_minutes=sum(r.total_minutes for r in self._records),
            days=len(self._records),
        )

    def recent(self, limit: int = 5) -> list[DailyRecord]:
        """Newest-first slice for history displays."""
        if limit <= 0:
            return []
        return [r.model_copy() for r in reversed(self._records[-limit:])]

    # ---- Serialization ----

    def to_list(self) -> list[dict]:
        return [r.to_dict() for r in self._records]

    @classmethod
    def from_list(cls, data: list[dict]) -> "RecordBook":
        return cls([DailyRecord.model_validate(item) for item in data])

    # ---- Internal ----

    def _find(self, date: str) -> DailyRecord | None:
        for record in self._records:
            if record.date == date:
                return record
        return None
