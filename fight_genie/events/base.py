"""Base types for stored events and lifecycle results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class EventState(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


@dataclass
class EventMeta:
    """One real-world fight card, collapsed from its fight rows."""

    event_id: int
    name: str
    date: str  # YYYY-MM-DD
    city: str | None = None
    state: str | None = None
    country: str | None = None
    event_link: str | None = None
    is_completed: bool = False
    completed_at: str | None = None

    @property
    def status(self) -> EventState:
        return EventState.COMPLETED if self.is_completed else EventState.SCHEDULED

    @property
    def location(self) -> str:
        parts = [p for p in (self.city, self.state, self.country) if p]
        return ", ".join(parts) if parts else "TBA"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> EventMeta:
        return cls(
            event_id=row["event_id"],
            name=row["Event"],
            date=row["Date"],
            city=row["City"],
            state=row["State"],
            country=row["Country"],
            event_link=row["event_link"],
            is_completed=bool(row["is_completed"]),
            completed_at=row["completed_at"],
        )


@dataclass
class FightRow:
    fight_id: int
    event_id: int
    fighter1: str
    fighter2: str
    weight_class: str
    is_main_card: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> FightRow:
        return cls(
            fight_id=row["fight_id"],
            event_id=row["event_id"],
            fighter1=row["fighter1"],
            fighter2=row["fighter2"],
            weight_class=row["WeightClass"],
            is_main_card=bool(row["is_main_card"]),
        )


@dataclass
class AdvanceResult:
    advanced: bool
    completed: EventMeta | None = None
    next_event: EventMeta | None = None
    refreshed_fights: int = 0
    refresh_error: str | None = None
    reason: str | None = None  # set when nothing was advanced


@dataclass
class RollbackResult:
    rolled_back: bool
    event_id: int
    reset_event_ids: list[int] = field(default_factory=list)
    predictions_deleted: int = 0
    outcomes_deleted: int = 0
    reason: str | None = None
