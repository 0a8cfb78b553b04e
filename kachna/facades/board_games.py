"""
kachna.facades.board_games — Authorization-aware Board Games Facade
====================================================================

Adapts :mod:`kachna.services.board_games_service` to the HTTP layer.
Every call opens one transaction, checks what the caller's
:class:`~kachna.engine.access.AccessContext` allows, and returns DTOs.

Board games managers see hidden games, stock counts and internal notes;
regular members only ever see visible games and their own reservations.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import Engine

from kachna.config import KachnaConfig
from kachna.constants import to_naive_utc, utcnow
from kachna.database.engine import get_session
from kachna.database.models import (
    BoardGame,
    Reservation,
    ReservationEventType,
    ReservationItem,
    ReservationState,
)
from kachna.engine import reservation_states
from kachna.engine.access import AccessContext
from kachna.exceptions import (
    NotABoardGamesManagerException,
    NotAuthenticatedException,
    ReservationAccessDeniedException,
)
from kachna.schemas.board_games import (
    BoardGameDto,
    BoardGameStockDto,
    CategoryDto,
    CreateBoardGameDto,
    CreateCategoryDto,
    CreateReservationDto,
    CreateReservationItemEventDto,
    ManagerBoardGameDto,
    ManagerCreateReservationDto,
    ManagerReservationDto,
    ReservationDto,
    ReservationItemDto,
    ReservationItemEventDto,
    ReservationNoteInternalDto,
    ReservationNoteUserDto,
    UpdateReservationItemsDto,
)
from kachna.services import board_games_service as svc

logger = logging.getLogger(__name__)


def _require_manager(ctx: AccessContext) -> None:
    if not ctx.is_authenticated:
        raise NotAuthenticatedException()
    if not ctx.is_board_games_manager:
        raise NotABoardGamesManagerException()


# ---------------------------------------------------------------------------
# DTO mapping
# ---------------------------------------------------------------------------
def _game_dto(game: BoardGame, available: int, *, manager: bool) -> BoardGameDto:
    dto = (ManagerBoardGameDto if manager else BoardGameDto).model_validate(game)
    dto.available = available
    return dto


def _item_dto(item: ReservationItem, now: datetime) -> ReservationItemDto:
    return ReservationItemDto(
        id=item.id,
        board_game_id=item.board_game_id,
        board_game_name=item.board_game.name,
        expires_on=item.expires_on,
        state=reservation_states.effective_state(item, now),
        assigned_to=reservation_states.assigned_to(item),
    )


def _reservation_dto(
    reservation: Reservation, now: datetime, *, manager: bool
) -> ReservationDto:
    fields = dict(
        id=reservation.id,
        made_by_id=reservation.made_by_id,
        made_on=reservation.made_on,
        note_user=reservation.note_user,
        state=svc.reservation_state_of(reservation, now),
        items=[_item_dto(item, now) for item in reservation.items],
    )
    if manager:
        return ManagerReservationDto(note_internal=reservation.note_internal, **fields)
    return ReservationDto(**fields)


class BoardGamesFacade:
    """Board games, categories and reservations as seen by one caller."""

    def __init__(
        self,
        engine: Engine,
        cfg: KachnaConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.engine = engine
        self.cfg = cfg
        self.clock = clock

    # -------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------
    def get_categories(self) -> list[CategoryDto]:
        with get_session(self.engine) as session:
            return [CategoryDto.model_validate(c) for c in svc.get_categories(session)]

    def get_category(self, category_id: int) -> CategoryDto:
        with get_session(self.engine) as session:
            return CategoryDto.model_validate(svc.get_category(session, category_id))

    def create_category(self, ctx: AccessContext, dto: CreateCategoryDto) -> CategoryDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            category = svc.create_category(session, name=dto.name, colour_hex=dto.colour_hex)
            return CategoryDto.model_validate(category)

    def update_category(
        self, ctx: AccessContext, category_id: int, dto: CreateCategoryDto
    ) -> CategoryDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            category = svc.update_category(
                session, category_id, name=dto.name, colour_hex=dto.colour_hex
            )
            return CategoryDto.model_validate(category)

    def delete_category(self, ctx: AccessContext, category_id: int) -> None:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            svc.delete_category(session, category_id)

    # -------------------------------------------------------------------
    # Board games
    # -------------------------------------------------------------------
    def get_board_games(
        self,
        ctx: AccessContext,
        *,
        category_id: int | None = None,
        players: int | None = None,
        available: bool | None = None,
        visible: bool | None = None,
    ) -> list[BoardGameDto]:
        """List the catalog; non-managers only ever get visible games."""
        manager = ctx.is_board_games_manager
        if not manager:
            visible = True
        with get_session(self.engine) as session:
            games, availability = svc.get_board_games(
                session,
                category_id=category_id,
                players=players,
                available=available,
                visible=visible,
                now=self.clock(),
            )
            return [_game_dto(g, availability.get(g.id, 0), manager=manager) for g in games]

    def get_board_game(self, ctx: AccessContext, board_game_id: int) -> BoardGameDto:
        """Fetch one game.

        Raises
        ------
        NotAuthenticatedException
            The game is hidden and the caller is anonymous.
        NotABoardGamesManagerException
            The game is hidden and the caller is not a manager.
        """
        manager = ctx.is_board_games_manager
        with get_session(self.engine) as session:
            game = svc.get_board_game(session, board_game_id)
            if not game.visible and not manager:
                if not ctx.is_authenticated:
                    raise NotAuthenticatedException()
                raise NotABoardGamesManagerException()
            available = svc.get_availability(session, [game.id], self.clock()).get(game.id, 0)
            return _game_dto(game, available, manager=manager)

    def create_board_game(
        self, ctx: AccessContext, dto: CreateBoardGameDto
    ) -> ManagerBoardGameDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            game = svc.create_board_game(session, **dto.model_dump())
            available = svc.get_availability(session, [game.id], self.clock()).get(game.id, 0)
            return _game_dto(game, available, manager=True)

    def update_board_game(
        self, ctx: AccessContext, board_game_id: int, dto: CreateBoardGameDto
    ) -> ManagerBoardGameDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            game = svc.update_board_game(session, board_game_id, **dto.model_dump())
            available = svc.get_availability(session, [game.id], self.clock()).get(game.id, 0)
            return _game_dto(game, available, manager=True)

    def update_board_game_stock(
        self, ctx: AccessContext, board_game_id: int, dto: BoardGameStockDto
    ) -> ManagerBoardGameDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            game = svc.update_board_game_stock(
                session,
                board_game_id,
                in_stock=dto.in_stock,
                unavailable=dto.unavailable,
                visible=dto.visible,
            )
            available = svc.get_availability(session, [game.id], self.clock()).get(game.id, 0)
            return _game_dto(game, available, manager=True)

    # -------------------------------------------------------------------
    # Reservations — reads
    # -------------------------------------------------------------------
    def get_user_reservations(
        self, ctx: AccessContext, state: ReservationState | None = None
    ) -> list[ReservationDto]:
        """The caller's own reservations, newest first."""
        user_id = ctx.require_user_id()
        now = self.clock()
        with get_session(self.engine) as session:
            rows = svc.get_user_reservations(session, user_id, state=state, now=now)
            return [_reservation_dto(r, now, manager=False) for r in rows]

    def get_all_reservations(
        self,
        ctx: AccessContext,
        *,
        state: ReservationState | None = None,
        assigned_to: int | None = None,
    ) -> list[ManagerReservationDto]:
        _require_manager(ctx)
        now = self.clock()
        with get_session(self.engine) as session:
            rows = svc.get_all_reservations(
                session, state=state, assigned_to=assigned_to, now=now
            )
            return [_reservation_dto(r, now, manager=True) for r in rows]

    def get_reservation(self, ctx: AccessContext, reservation_id: int) -> ReservationDto:
        """Managers see any reservation; members only their own."""
        user_id = ctx.require_user_id()
        manager = ctx.is_board_games_manager
        now = self.clock()
        with get_session(self.engine) as session:
            reservation = svc.get_reservation(session, reservation_id)
            if not manager and reservation.made_by_id != user_id:
                raise NotABoardGamesManagerException()
            return _reservation_dto(reservation, now, manager=manager)

    def get_item_history(
        self, ctx: AccessContext, reservation_id: int, item_id: int
    ) -> list[ReservationItemEventDto]:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            events = svc.get_item_history(session, reservation_id, item_id)
            return [ReservationItemEventDto.model_validate(e) for e in events]

    # -------------------------------------------------------------------
    # Reservations — writes
    # -------------------------------------------------------------------
    def create_new_reservation(
        self, ctx: AccessContext, dto: CreateReservationDto
    ) -> ReservationDto:
        user_id = ctx.require_user_id()
        now = self.clock()
        with get_session(self.engine) as session:
            reservation = svc.create_reservation(
                session,
                made_for=user_id,
                made_by=user_id,
                board_game_ids=dto.board_game_ids,
                note_user=dto.note_user,
                include_invisible=ctx.is_board_games_manager,
                now=now,
                pickup_days=self.cfg.reservation_pickup_days,
            )
            return _reservation_dto(reservation, now, manager=False)

    def manager_create_new_reservation(
        self, ctx: AccessContext, made_for: int, dto: ManagerCreateReservationDto
    ) -> ManagerReservationDto:
        _require_manager(ctx)
        now = self.clock()
        with get_session(self.engine) as session:
            reservation = svc.create_reservation(
                session,
                made_for=made_for,
                made_by=ctx.user_id,
                board_game_ids=dto.board_game_ids,
                note_internal=dto.note_internal,
                include_invisible=True,
                now=now,
                pickup_days=self.cfg.reservation_pickup_days,
            )
            return _reservation_dto(reservation, now, manager=True)

    def add_reservation_items(
        self, ctx: AccessContext, reservation_id: int, dto: UpdateReservationItemsDto
    ) -> ManagerReservationDto:
        _require_manager(ctx)
        now = self.clock()
        with get_session(self.engine) as session:
            reservation = svc.add_reservation_items(
                session,
                reservation_id,
                added_by=ctx.user_id,
                board_game_ids=dto.board_game_ids,
                now=now,
                pickup_days=self.cfg.reservation_pickup_days,
            )
            return _reservation_dto(reservation, now, manager=True)

    def update_reservation_note(
        self, ctx: AccessContext, reservation_id: int, dto: ReservationNoteUserDto
    ) -> None:
        user_id = ctx.require_user_id()
        with get_session(self.engine) as session:
            svc.update_reservation_note(session, reservation_id, user_id, dto.note_user)

    def update_reservation_note_internal(
        self, ctx: AccessContext, reservation_id: int, dto: ReservationNoteInternalDto
    ) -> None:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            svc.update_reservation_note_internal(session, reservation_id, dto.note_internal)

    def modify_reservation_item(
        self,
        ctx: AccessContext,
        reservation_id: int,
        item_id: int,
        dto: CreateReservationItemEventDto,
    ) -> ReservationItemEventDto:
        """Apply a state transition to one item.

        Managers may apply any legal transition.  Members may only cancel
        items of their own reservations.
        """
        user_id = ctx.require_user_id()
        with get_session(self.engine) as session:
            if not ctx.is_board_games_manager:
                item = svc.get_reservation_item(session, reservation_id, item_id)
                if (
                    item.reservation.made_by_id != user_id
                    or dto.type != ReservationEventType.CANCELLED
                ):
                    raise ReservationAccessDeniedException()
            event = svc.modify_reservation_item(
                session,
                reservation_id,
                item_id,
                actor_id=user_id,
                event_type=dto.type,
                new_expiry=to_naive_utc(dto.new_expiry),
                note_internal=dto.note_internal if ctx.is_board_games_manager else None,
                now=self.clock(),
                default_loan_days=self.cfg.default_loan_days,
            )
            return ReservationItemEventDto.model_validate(event)
