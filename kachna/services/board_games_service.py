"""
kachna.services.board_games_service — Catalog, Stock & Reservations
====================================================================

Business rules for the board-game library.  Every function takes an
open :class:`Session`; the caller owns the transaction (see
:func:`kachna.database.engine.get_session`), so a raised exception rolls
back everything the call touched.  A reservation is therefore either
created with all of its items or not at all.

Availability of a game::

    in_stock - unavailable - (items of the game that are reserved,
                              assigned or handed over right now)
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from kachna.database.models import (
    BoardGame,
    BoardGameCategory,
    Reservation,
    ReservationEventType,
    ReservationItem,
    ReservationItemEvent,
    ReservationItemState,
    ReservationState,
    User,
)
from kachna.database.repositories import Repository
from kachna.engine import reservation_states
from kachna.exceptions import (
    BoardGameManipulationFailedException,
    BoardGameNotFoundException,
    CategoryHasBoardGamesException,
    CategoryManipulationFailedException,
    CategoryNotFoundException,
    GameUnavailableException,
    InvalidStockException,
    ManipulationFailedError,
    ReservationAccessDeniedException,
    ReservationManipulationFailedException,
    ReservationNotFoundException,
    UserNotFoundException,
)

logger = logging.getLogger(__name__)

_BOARD_GAME_FIELDS = (
    "name", "description", "image_url", "players_min", "players_max",
    "category_id", "note_internal", "owner_id", "in_stock", "unavailable",
    "visible", "default_reservation_days",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _flush(session: Session, error: type[ManipulationFailedError], what: str) -> None:
    """Flush pending writes, turning DB errors into *error*."""
    try:
        session.flush()
    except SQLAlchemyError as exc:
        logger.exception("Failed to %s", what)
        raise error() from exc


def _require_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise UserNotFoundException()
    return user


def _validate_stock(in_stock: int, unavailable: int) -> None:
    if in_stock < 0 or unavailable < 0:
        raise InvalidStockException("Stock counts must not be negative")
    if unavailable > in_stock:
        raise InvalidStockException("Unavailable count must not exceed in-stock count")


def _reservation_options():
    return (
        selectinload(Reservation.items).selectinload(ReservationItem.events),
        selectinload(Reservation.items).joinedload(ReservationItem.board_game),
    )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def get_categories(session: Session) -> Sequence[BoardGameCategory]:
    return session.scalars(select(BoardGameCategory).order_by(BoardGameCategory.name)).all()


def get_category(session: Session, category_id: int) -> BoardGameCategory:
    category = session.get(BoardGameCategory, category_id)
    if category is None:
        raise CategoryNotFoundException()
    return category


def create_category(session: Session, *, name: str, colour_hex: str) -> BoardGameCategory:
    category = BoardGameCategory(name=name, colour_hex=colour_hex.lstrip("#"))
    session.add(category)
    _flush(session, CategoryManipulationFailedException, "create category")
    logger.info("Created board game category %d (%s)", category.id, name)
    return category


def update_category(
    session: Session, category_id: int, *, name: str, colour_hex: str
) -> BoardGameCategory:
    category = get_category(session, category_id)
    category.name = name
    category.colour_hex = colour_hex.lstrip("#")
    _flush(session, CategoryManipulationFailedException, "update category")
    return category


def delete_category(session: Session, category_id: int) -> None:
    """Delete a category; refused while any board game references it."""
    category = get_category(session, category_id)
    linked = session.scalars(
        select(BoardGame.id).where(BoardGame.category_id == category_id)
    ).all()
    if linked:
        raise CategoryHasBoardGamesException(list(linked))
    Repository(session, BoardGameCategory).delete(category)
    _flush(session, CategoryManipulationFailedException, "delete category")
    logger.info("Deleted board game category %d", category_id)


# ---------------------------------------------------------------------------
# Board games
# ---------------------------------------------------------------------------
def get_availability(
    session: Session, board_game_ids: Iterable[int], now: datetime
) -> dict[int, int]:
    """Return ``{board_game_id: copies available right now}``.

    One aggregate query: each item's latest event decides whether the
    item still holds a copy.
    """
    ids = list(set(board_game_ids))
    if not ids:
        return {}

    latest = (
        select(
            ReservationItemEvent.reservation_item_id.label("item_id"),
            func.max(ReservationItemEvent.made_on).label("last_on"),
        )
        .group_by(ReservationItemEvent.reservation_item_id)
        .subquery()
    )
    awaiting = (ReservationItemState.RESERVED.value, ReservationItemState.ASSIGNED.value)
    held_rows = session.execute(
        select(ReservationItem.board_game_id, func.count(ReservationItem.id))
        .join(latest, latest.c.item_id == ReservationItem.id)
        .join(
            ReservationItemEvent,
            and_(
                ReservationItemEvent.reservation_item_id == latest.c.item_id,
                ReservationItemEvent.made_on == latest.c.last_on,
            ),
        )
        .where(
            ReservationItem.board_game_id.in_(ids),
            or_(
                ReservationItemEvent.new_state == ReservationItemState.CURRENT.value,
                and_(
                    ReservationItemEvent.new_state.in_(awaiting),
                    ReservationItem.expires_on > now,
                ),
            ),
        )
        .group_by(ReservationItem.board_game_id)
    ).all()
    held = {game_id: count for game_id, count in held_rows}

    stock_rows = session.execute(
        select(BoardGame.id, BoardGame.in_stock, BoardGame.unavailable).where(
            BoardGame.id.in_(ids)
        )
    ).all()
    return {
        game_id: max(in_stock - unavailable - held.get(game_id, 0), 0)
        for game_id, in_stock, unavailable in stock_rows
    }


def get_board_games(
    session: Session,
    *,
    category_id: int | None = None,
    players: int | None = None,
    available: bool | None = None,
    visible: bool | None = None,
    now: datetime,
) -> tuple[list[BoardGame], dict[int, int]]:
    """Filtered catalog plus the availability of every returned game."""
    stmt = select(BoardGame).order_by(BoardGame.name)
    if category_id is not None:
        stmt = stmt.where(BoardGame.category_id == category_id)
    if players is not None:
        stmt = stmt.where(
            or_(BoardGame.players_min.is_(None), BoardGame.players_min <= players),
            or_(BoardGame.players_max.is_(None), BoardGame.players_max >= players),
        )
    if visible is not None:
        stmt = stmt.where(BoardGame.visible.is_(visible))

    games = list(session.scalars(stmt).all())
    availability = get_availability(session, (g.id for g in games), now)
    if available is not None:
        games = [g for g in games if (availability.get(g.id, 0) > 0) == available]
    return games, availability


def get_board_game(session: Session, board_game_id: int) -> BoardGame:
    game = session.get(BoardGame, board_game_id)
    if game is None:
        raise BoardGameNotFoundException()
    return game


def _apply_board_game_fields(session: Session, game: BoardGame, fields: dict) -> None:
    if "category_id" in fields and session.get(BoardGameCategory, fields["category_id"]) is None:
        raise CategoryNotFoundException()
    if fields.get("owner_id") is not None:
        _require_user(session, fields["owner_id"])
    for key in _BOARD_GAME_FIELDS:
        if key in fields:
            setattr(game, key, fields[key])
    _validate_stock(game.in_stock, game.unavailable)


def create_board_game(session: Session, **fields) -> BoardGame:
    game = BoardGame(in_stock=0, unavailable=0, visible=True)
    _apply_board_game_fields(session, game, fields)
    session.add(game)
    _flush(session, BoardGameManipulationFailedException, "create board game")
    session.refresh(game)
    logger.info("Created board game %d (%s)", game.id, game.name)
    return game


def update_board_game(session: Session, board_game_id: int, **fields) -> BoardGame:
    game = get_board_game(session, board_game_id)
    _apply_board_game_fields(session, game, fields)
    _flush(session, BoardGameManipulationFailedException, "update board game")
    session.refresh(game)
    return game


def update_board_game_stock(
    session: Session,
    board_game_id: int,
    *,
    in_stock: int,
    unavailable: int,
    visible: bool,
) -> BoardGame:
    game = get_board_game(session, board_game_id)
    _validate_stock(in_stock, unavailable)
    game.in_stock = in_stock
    game.unavailable = unavailable
    game.visible = visible
    _flush(session, BoardGameManipulationFailedException, "update board game stock")
    logger.info(
        "Stock of board game %d set to %d (unavailable %d, visible=%s)",
        board_game_id, in_stock, unavailable, visible,
    )
    return game


# ---------------------------------------------------------------------------
# Reservations — reads
# ---------------------------------------------------------------------------
def reservation_state_of(reservation: Reservation, now: datetime) -> ReservationState:
    return reservation_states.reservation_state(
        reservation_states.effective_state(item, now) for item in reservation.items
    )


def _filter_state(
    reservations: Iterable[Reservation], state: ReservationState | None, now: datetime
) -> list[Reservation]:
    if state is None:
        return list(reservations)
    return [r for r in reservations if reservation_state_of(r, now) == state]


def get_user_reservations(
    session: Session,
    user_id: int,
    *,
    state: ReservationState | None = None,
    now: datetime,
) -> list[Reservation]:
    """A member's reservations with items loaded, newest first."""
    rows = session.scalars(
        select(Reservation)
        .where(Reservation.made_by_id == user_id)
        .options(*_reservation_options())
        .order_by(Reservation.made_on.desc(), Reservation.id.desc())
    ).all()
    return _filter_state(rows, state, now)


def get_all_reservations(
    session: Session,
    *,
    state: ReservationState | None = None,
    assigned_to: int | None = None,
    now: datetime,
) -> list[Reservation]:
    """All reservations with items loaded, newest first.

    *assigned_to* keeps reservations where that manager took charge of at
    least one item.
    """
    rows = session.scalars(
        select(Reservation)
        .options(*_reservation_options())
        .order_by(Reservation.made_on.desc(), Reservation.id.desc())
    ).all()
    result = _filter_state(rows, state, now)
    if assigned_to is not None:
        result = [
            r for r in result
            if any(reservation_states.assigned_to(i) == assigned_to for i in r.items)
        ]
    return result


def get_reservation(session: Session, reservation_id: int) -> Reservation:
    reservation = session.scalar(
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .options(*_reservation_options())
    )
    if reservation is None:
        raise ReservationNotFoundException()
    return reservation


def get_reservation_item(
    session: Session, reservation_id: int, item_id: int
) -> ReservationItem:
    item = session.scalar(
        select(ReservationItem)
        .where(
            ReservationItem.id == item_id,
            ReservationItem.reservation_id == reservation_id,
        )
        .options(selectinload(ReservationItem.events), joinedload(ReservationItem.board_game))
    )
    if item is None:
        raise ReservationNotFoundException("Reservation item not found")
    return item


def get_item_history(
    session: Session, reservation_id: int, item_id: int
) -> list[ReservationItemEvent]:
    """Events of one item, oldest first."""
    item = get_reservation_item(session, reservation_id, item_id)
    return sorted(item.events, key=lambda e: e.made_on)


# ---------------------------------------------------------------------------
# Reservations — writes
# ---------------------------------------------------------------------------
def _check_games_available(
    session: Session,
    board_game_ids: Sequence[int],
    *,
    include_invisible: bool,
    now: datetime,
) -> dict[int, BoardGame]:
    """Load the requested games and verify the whole request can be served."""
    wanted = Counter(board_game_ids)
    games = {
        g.id: g
        for g in session.scalars(select(BoardGame).where(BoardGame.id.in_(list(wanted)))).all()
    }
    for game_id in wanted:
        game = games.get(game_id)
        if game is None or (not game.visible and not include_invisible):
            raise BoardGameNotFoundException(f"Board game {game_id} not found")

    availability = get_availability(session, wanted, now)
    missing = sorted(gid for gid, count in wanted.items() if availability.get(gid, 0) < count)
    if missing:
        raise GameUnavailableException(missing)
    return games


def _add_items(
    session: Session,
    reservation: Reservation,
    board_game_ids: Sequence[int],
    *,
    added_by: int,
    now: datetime,
    pickup_days: int,
) -> None:
    expires_on = now + timedelta(days=pickup_days)
    for game_id in board_game_ids:
        item = ReservationItem(board_game_id=game_id, expires_on=expires_on)
        item.events.append(ReservationItemEvent(
            made_on=now,
            made_by_id=added_by,
            new_state=ReservationItemState.RESERVED.value,
            type=ReservationEventType.CREATED.value,
        ))
        reservation.items.append(item)


def create_reservation(
    session: Session,
    *,
    made_for: int,
    made_by: int,
    board_game_ids: Sequence[int],
    note_user: str | None = None,
    note_internal: str | None = None,
    include_invisible: bool = False,
    now: datetime,
    pickup_days: int,
) -> Reservation:
    """Reserve one copy per entry of *board_game_ids* for *made_for*.

    Raises
    ------
    UserNotFoundException
        *made_for* or *made_by* doesn't exist.
    BoardGameNotFoundException
        A requested game doesn't exist (or is hidden from the caller).
    GameUnavailableException
        Not enough free copies of some game; nothing is written.
    ReservationManipulationFailedException
        The database refused the insert.
    """
    _require_user(session, made_for)
    if made_by != made_for:
        _require_user(session, made_by)
    _check_games_available(
        session, board_game_ids, include_invisible=include_invisible, now=now
    )

    reservation = Reservation(
        made_by_id=made_for,
        made_on=now,
        note_user=note_user,
        note_internal=note_internal,
    )
    _add_items(
        session, reservation, board_game_ids,
        added_by=made_by, now=now, pickup_days=pickup_days,
    )
    session.add(reservation)
    _flush(session, ReservationManipulationFailedException, "create reservation")
    logger.info(
        "Reservation %d created for user %d by %d (%d items)",
        reservation.id, made_for, made_by, len(board_game_ids),
    )
    return reservation


def add_reservation_items(
    session: Session,
    reservation_id: int,
    *,
    added_by: int,
    board_game_ids: Sequence[int],
    now: datetime,
    pickup_days: int,
) -> Reservation:
    reservation = get_reservation(session, reservation_id)
    _require_user(session, added_by)
    _check_games_available(session, board_game_ids, include_invisible=True, now=now)
    _add_items(
        session, reservation, board_game_ids,
        added_by=added_by, now=now, pickup_days=pickup_days,
    )
    _flush(session, ReservationManipulationFailedException, "add reservation items")
    logger.info("Added %d items to reservation %d", len(board_game_ids), reservation_id)
    return reservation


def update_reservation_note(
    session: Session, reservation_id: int, user_id: int, note: str | None
) -> Reservation:
    """Update the member-facing note; only the owner may do so."""
    reservation = session.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFoundException()
    if reservation.made_by_id != user_id:
        raise ReservationAccessDeniedException()
    reservation.note_user = note
    _flush(session, ReservationManipulationFailedException, "update reservation note")
    return reservation


def update_reservation_note_internal(
    session: Session, reservation_id: int, note: str | None
) -> Reservation:
    reservation = session.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFoundException()
    reservation.note_internal = note
    _flush(session, ReservationManipulationFailedException, "update internal note")
    return reservation


def modify_reservation_item(
    session: Session,
    reservation_id: int,
    item_id: int,
    *,
    actor_id: int,
    event_type: ReservationEventType,
    new_expiry: datetime | None = None,
    note_internal: str | None = None,
    now: datetime,
    default_loan_days: int,
) -> ReservationItemEvent:
    """Apply a state transition to one item and append its event.

    Raises
    ------
    ReservationNotFoundException
        No such item in the reservation.
    InvalidItemTransitionException
        The transition isn't legal from the item's current state.
    """
    item = get_reservation_item(session, reservation_id, item_id)
    _require_user(session, actor_id)

    loan_days = item.board_game.default_reservation_days or default_loan_days
    result = reservation_states.plan_transition(
        item,
        event_type,
        now=now,
        new_expiry=new_expiry,
        default_loan_end=now + timedelta(days=loan_days),
    )

    # Events are keyed by (item, made_on); keep the log strictly increasing
    made_on = now
    if item.events:
        last = max(e.made_on for e in item.events)
        if made_on <= last:
            made_on = last + timedelta(microseconds=1)

    event = ReservationItemEvent(
        made_on=made_on,
        made_by_id=actor_id,
        new_state=result.new_state.value,
        type=result.event_type.value,
        new_expiry=result.new_expiry,
        note_internal=note_internal,
    )
    item.events.append(event)
    if result.new_expiry is not None:
        item.expires_on = result.new_expiry
    _flush(session, ReservationManipulationFailedException, "modify reservation item")
    logger.info(
        "Reservation item %d: %s → %s by user %d",
        item_id, result.event_type, result.new_state, actor_id,
    )
    return event
