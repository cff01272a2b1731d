"""Sticky-notes board model.

Only the date-based pruning policy lives here; editing the board belongs to
the notes panel. "today" notes expire when the calendar date changes,
"permanent" notes never do.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class StickyNote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    color: str = ""
    created_at: str = Field(..., alias="createdAt")


class NotesBoard(BaseModel):
    today: list[StickyNote] = Field(default_factory=list)
    permanent: list[StickyNote] = Field(default_factory=list)

    def prune_stale(self, today: str) -> int:
        """Drop "today" notes created on another date. Returns how many went."""
        kept = [note for note in self.today if note.created_at == today]
        removed = len(self.today) - len(kept)
        self.today = kept
        return removed

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)
