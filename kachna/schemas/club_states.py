"""
kachna.schemas.club_states — Planned & repeating state DTOs
============================================================
"""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from kachna.constants import NOTE_MAX_LENGTH, to_naive_utc
from kachna.database.models import StateType


class StateDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    state: StateType
    start: datetime
    planned_end: datetime | None = None
    note_public: str | None = None
    next_planned_state_id: int | None = None
    associated_event_id: int | None = None


class ManagerStateDto(StateDto):
    made_by_id: int
    ended: datetime | None = None
    closed_by_id: int | None = None
    note_internal: str | None = None
    repeating_state_id: int | None = None


class ClubStatusDto(BaseModel):
    """What the club looks like right now; ``state`` is ``closed`` when nothing is planned."""

    state: StateType
    current: StateDto | None = None


class PlanStateDto(BaseModel):
    state: StateType
    start: datetime
    planned_end: datetime
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    note_public: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    associated_event_id: int | None = None


class LinkNextStateDto(BaseModel):
    next_planned_state_id: int


class CreateRepeatingStateDto(BaseModel):
    state: StateType
    day_of_week: int = Field(..., ge=0, le=6)
    effective_from: date
    effective_to: date
    time_from: time
    time_to: time
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    note_public: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)

    @field_validator("time_from", "time_to")
    @classmethod
    def _utc_time(cls, value: time) -> time:
        """Slot times are UTC; an offset is applied and dropped."""
        if value.tzinfo is None:
            return value
        # Offsets are fixed, so any anchor date converts the same way
        return to_naive_utc(datetime.combine(date(2000, 1, 1), value)).time()

    @model_validator(mode="after")
    def _ranges(self) -> CreateRepeatingStateDto:
        if self.effective_from > self.effective_to:
            raise ValueError("effective_from must not be after effective_to")
        return self


class RepeatingStateDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    state: StateType
    day_of_week: int
    effective_from: date
    effective_to: date
    time_from: time
    time_to: time
    note_public: str | None = None
    planned_state_ids: list[int] = []
