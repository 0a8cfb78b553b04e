"""
kachna.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users                 — Club members (IDs assigned by the identity provider)
- roles                 — Named capabilities (Admin, BoardGamesManager, …)
- user_roles            — Role assignments with the assigning actor
- board_game_categories — Board game taxonomy
- board_games           — Catalog entries with stock counts
- board_game_reservations       — A member's reservation (aggregate root)
- board_game_reservation_items  — One reserved copy of a game
- board_game_reservation_item_events — Append-only item state log
- events                — Club events
- repeating_states      — Weekly templates for planned states
- planned_states        — Scheduled open/closed intervals

All timestamps are naive UTC.
"""

from __future__ import annotations

import enum
from datetime import date, datetime, time

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Kachna ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReservationItemState(enum.StrEnum):
    """Lifecycle of a single reserved board-game copy."""
    RESERVED = "reserved"
    ASSIGNED = "assigned"
    CURRENT = "current"
    DONE = "done"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ReservationEventType(enum.StrEnum):
    """What happened to a reservation item."""
    CREATED = "created"
    ASSIGNED = "assigned"
    HANDED_OVER = "handed_over"
    EXTENDED = "extended"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class ReservationState(enum.StrEnum):
    """Aggregate state of a reservation, derived from its items."""
    NEW = "new"
    CURRENT = "current"
    DONE = "done"
    EXPIRED = "expired"


class StateType(enum.StrEnum):
    """Kinds of club state."""
    CLOSED = "closed"
    OPEN_CHILLZONE = "open_chillzone"
    OPEN_BAR = "open_bar"
    PRIVATE = "private"


# ---------------------------------------------------------------------------
# Users & roles
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)

    roles: Mapped[list[UserRole]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserRole.user_id",
    )

    @property
    def role_names(self) -> list[str]:
        return sorted(ur.role.name for ur in self.roles)

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r}>"


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    role_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True
    )
    assigned_by_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )

    user: Mapped[User] = relationship(back_populates="roles", foreign_keys=[user_id])
    role: Mapped[Role] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_user_roles_role_id", "role_id"),
        Index("ix_user_roles_assigned_by", "assigned_by_user_id"),
    )

    def __repr__(self) -> str:
        return f"<UserRole user={self.user_id} role={self.role_id}>"


# ---------------------------------------------------------------------------
# Board games
# ---------------------------------------------------------------------------
class BoardGameCategory(Base):
    __tablename__ = "board_game_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    colour_hex: Mapped[str] = mapped_column(Text, nullable=False)

    games: Mapped[list[BoardGame]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<BoardGameCategory id={self.id} name={self.name!r}>"


class BoardGame(Base):
    __tablename__ = "board_games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    image_url: Mapped[str | None] = mapped_column(String(512), default=None)
    players_min: Mapped[int | None] = mapped_column(Integer, default=None)
    players_max: Mapped[int | None] = mapped_column(Integer, default=None)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("board_game_categories.id", ondelete="CASCADE"), nullable=False
    )
    note_internal: Mapped[str | None] = mapped_column(String(1024), default=None)
    owner_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    in_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unavailable: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    default_reservation_days: Mapped[int | None] = mapped_column(Integer, default=None)

    category: Mapped[BoardGameCategory] = relationship(back_populates="games", lazy="joined")

    __table_args__ = (
        Index("ix_board_games_category_id", "category_id"),
        Index("ix_board_games_owner_id", "owner_id"),
    )

    def __repr__(self) -> str:
        return f"<BoardGame id={self.id} name={self.name!r} stock={self.in_stock}>"


# ---------------------------------------------------------------------------
# Reservations — aggregate: reservation → items → events (cascade)
# ---------------------------------------------------------------------------
class Reservation(Base):
    __tablename__ = "board_game_reservations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    made_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    made_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    note_user: Mapped[str | None] = mapped_column(String(1024), default=None)
    note_internal: Mapped[str | None] = mapped_column(String(1024), default=None)

    items: Mapped[list[ReservationItem]] = relationship(
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationItem.id",
    )

    __table_args__ = (
        Index("ix_board_game_reservations_made_by_id", "made_by_id"),
    )

    def __repr__(self) -> str:
        return f"<Reservation id={self.id} made_by={self.made_by_id}>"


class ReservationItem(Base):
    __tablename__ = "board_game_reservation_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("board_game_reservations.id", ondelete="CASCADE"),
        nullable=False,
    )
    board_game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("board_games.id", ondelete="RESTRICT"), nullable=False
    )
    expires_on: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    reservation: Mapped[Reservation] = relationship(back_populates="items")
    board_game: Mapped[BoardGame] = relationship()
    events: Mapped[list[ReservationItemEvent]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ReservationItemEvent.made_on",
    )

    __table_args__ = (
        Index("ix_board_game_reservation_items_reservation_id", "reservation_id"),
        Index("ix_board_game_reservation_items_board_game_id", "board_game_id"),
    )

    def __repr__(self) -> str:
        return f"<ReservationItem id={self.id} game={self.board_game_id}>"


class ReservationItemEvent(Base):
    """Immutable record of a state change applied to one reservation item."""
    __tablename__ = "board_game_reservation_item_events"

    reservation_item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("board_game_reservation_items.id", ondelete="CASCADE"),
        primary_key=True,
    )
    made_on: Mapped[datetime] = mapped_column(DateTime, primary_key=True)
    made_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    new_state: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    new_expiry: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    note_internal: Mapped[str | None] = mapped_column(String(1024), default=None)

    item: Mapped[ReservationItem] = relationship(back_populates="events")

    __table_args__ = (
        Index("ix_board_game_reservation_item_events_made_by_id", "made_by_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ReservationItemEvent item={self.reservation_item_id} "
            f"type={self.type!r} state={self.new_state!r}>"
        )


# ---------------------------------------------------------------------------
# Club events
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    made_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    short_description: Mapped[str] = mapped_column(String(512), nullable=False)
    full_description: Mapped[str | None] = mapped_column(Text, default=None)
    url: Mapped[str | None] = mapped_column(String(512), default=None)
    from_: Mapped[datetime] = mapped_column("from", DateTime, nullable=False)
    to: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_events_made_by_id", "made_by_id"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# State planning
# ---------------------------------------------------------------------------
class RepeatingState(Base):
    """Weekly template: *state* every *day_of_week* (0 = Monday)."""
    __tablename__ = "repeating_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    made_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date] = mapped_column(Date, nullable=False)
    time_from: Mapped[time] = mapped_column(Time, nullable=False)
    time_to: Mapped[time] = mapped_column(Time, nullable=False)
    note_internal: Mapped[str | None] = mapped_column(String(1024), default=None)
    note_public: Mapped[str | None] = mapped_column(String(1024), default=None)

    planned_states: Mapped[list[PlannedState]] = relationship(
        back_populates="repeating_state"
    )

    __table_args__ = (
        Index("ix_repeating_states_made_by_id", "made_by_id"),
    )

    def __repr__(self) -> str:
        return f"<RepeatingState id={self.id} state={self.state!r} dow={self.day_of_week}>"


class PlannedState(Base):
    __tablename__ = "planned_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    made_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    planned_end: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    state: Mapped[str] = mapped_column(String(20), nullable=False)
    ended: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    closed_by_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )
    note_internal: Mapped[str | None] = mapped_column(String(1024), default=None)
    note_public: Mapped[str | None] = mapped_column(String(1024), default=None)
    next_planned_state_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("planned_states.id", ondelete="RESTRICT"), nullable=True
    )
    repeating_state_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("repeating_states.id", ondelete="CASCADE"), nullable=True
    )
    associated_event_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True
    )

    repeating_state: Mapped[RepeatingState | None] = relationship(
        back_populates="planned_states"
    )

    __table_args__ = (
        Index("ix_planned_states_next_planned_state_id", "next_planned_state_id", unique=True),
        Index("ix_planned_states_repeating_state_id", "repeating_state_id"),
        Index("ix_planned_states_associated_event_id", "associated_event_id"),
        Index("ix_planned_states_made_by_id", "made_by_id"),
        Index("ix_planned_states_closed_by_id", "closed_by_id"),
        Index("ix_planned_states_start", "start"),
    )

    @property
    def effective_end(self) -> datetime | None:
        """When the state stops being active: explicit close wins over plan."""
        return self.ended if self.ended is not None else self.planned_end

    def __repr__(self) -> str:
        return f"<PlannedState id={self.id} state={self.state!r} start={self.start}>"
