"""
kachna.schemas.board_games — Board game & reservation DTOs
===========================================================

Regular members get the plain shapes; board games managers get the
``Manager*`` variants which add stock details and internal notes.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from kachna.constants import NOTE_MAX_LENGTH
from kachna.database.models import (
    ReservationEventType,
    ReservationItemState,
    ReservationState,
)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
class CategoryDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    colour_hex: str


class CreateCategoryDto(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    colour_hex: str = Field(..., pattern=r"^#?[0-9a-fA-F]{6}$")


# ---------------------------------------------------------------------------
# Board games
# ---------------------------------------------------------------------------
class BoardGameDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    image_url: str | None = None
    players_min: int | None = None
    players_max: int | None = None
    category: CategoryDto
    available: int = 0
    default_reservation_days: int | None = None


class ManagerBoardGameDto(BoardGameDto):
    note_internal: str | None = None
    owner_id: int | None = None
    in_stock: int
    unavailable: int
    visible: bool


class CreateBoardGameDto(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    description: str | None = None
    image_url: str | None = Field(default=None, max_length=512)
    players_min: int | None = Field(default=None, ge=1)
    players_max: int | None = Field(default=None, ge=1)
    category_id: int
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    owner_id: int | None = None
    in_stock: int = Field(default=0, ge=0)
    unavailable: int = Field(default=0, ge=0)
    visible: bool = True
    default_reservation_days: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _players_range(self) -> CreateBoardGameDto:
        if (
            self.players_min is not None
            and self.players_max is not None
            and self.players_min > self.players_max
        ):
            raise ValueError("players_min must not exceed players_max")
        return self


class BoardGameStockDto(BaseModel):
    in_stock: int = Field(..., ge=0)
    unavailable: int = Field(..., ge=0)
    visible: bool


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------
class ReservationItemDto(BaseModel):
    id: int
    board_game_id: int
    board_game_name: str
    expires_on: datetime
    state: ReservationItemState
    assigned_to: int | None = None


class ReservationDto(BaseModel):
    id: int
    made_by_id: int
    made_on: datetime
    note_user: str | None = None
    state: ReservationState
    items: list[ReservationItemDto] = Field(default_factory=list)


class ManagerReservationDto(ReservationDto):
    note_internal: str | None = None


class CreateReservationDto(BaseModel):
    note_user: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    board_game_ids: list[int] = Field(..., min_length=1)


class ManagerCreateReservationDto(BaseModel):
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
    board_game_ids: list[int] = Field(..., min_length=1)


class UpdateReservationItemsDto(BaseModel):
    board_game_ids: list[int] = Field(..., min_length=1)


class ReservationNoteUserDto(BaseModel):
    note_user: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)


class ReservationNoteInternalDto(BaseModel):
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)


class ReservationItemEventDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reservation_item_id: int
    made_by_id: int
    made_on: datetime
    new_state: ReservationItemState
    type: ReservationEventType
    new_expiry: datetime | None = None
    note_internal: str | None = None


class CreateReservationItemEventDto(BaseModel):
    type: ReservationEventType
    new_expiry: datetime | None = None
    note_internal: str | None = Field(default=None, max_length=NOTE_MAX_LENGTH)
