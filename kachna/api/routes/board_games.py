"""
kachna.api.routes.board_games — Board games, categories & reservations
=======================================================================

Anonymous callers may browse the visible catalog.  Everything else needs
a bearer token; what it unlocks is decided by :class:`BoardGamesFacade`.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from kachna.api.deps import get_access_context, get_board_games_facade
from kachna.database.models import ReservationState
from kachna.engine.access import AccessContext
from kachna.facades.board_games import BoardGamesFacade
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
    ReservationItemEventDto,
    ReservationNoteInternalDto,
    ReservationNoteUserDto,
    UpdateReservationItemsDto,
)

router = APIRouter(prefix="/boardgames", tags=["board games"])


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories", response_model=list[CategoryDto])
def list_categories(facade: BoardGamesFacade = Depends(get_board_games_facade)):
    return facade.get_categories()


@router.post("/categories", response_model=CategoryDto, status_code=201)
def create_category(
    body: CreateCategoryDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.create_category(ctx, body)


@router.get("/categories/{category_id}", response_model=CategoryDto)
def get_category(
    category_id: int,
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.get_category(category_id)


@router.put("/categories/{category_id}", response_model=CategoryDto)
def update_category(
    category_id: int,
    body: CreateCategoryDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.update_category(ctx, category_id, body)


@router.delete("/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    facade.delete_category(ctx, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Reservations (declared before /{board_game_id} so the literal paths win)
# ---------------------------------------------------------------------------
@router.get("/reservations", response_model=list[ReservationDto])
def my_reservations(
    state: ReservationState | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.get_user_reservations(ctx, state)


@router.post("/reservations", response_model=ReservationDto, status_code=201)
def create_reservation(
    body: CreateReservationDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.create_new_reservation(ctx, body)


@router.get("/reservations/all", response_model=list[ManagerReservationDto])
def all_reservations(
    state: ReservationState | None = Query(None),
    assigned_to: int | None = Query(None, alias="assignedTo"),
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.get_all_reservations(ctx, state=state, assigned_to=assigned_to)


@router.post(
    "/reservations/madeFor/{user_id}",
    response_model=ManagerReservationDto,
    status_code=201,
)
def create_reservation_for(
    user_id: int,
    body: ManagerCreateReservationDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.manager_create_new_reservation(ctx, user_id, body)


# Members and managers get different shapes
@router.get("/reservations/{reservation_id}", response_model=None)
def get_reservation(
    reservation_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
) -> ReservationDto:
    return facade.get_reservation(ctx, reservation_id)


@router.put("/reservations/{reservation_id}/note", status_code=204)
def update_note(
    reservation_id: int,
    body: ReservationNoteUserDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    facade.update_reservation_note(ctx, reservation_id, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/reservations/{reservation_id}/noteInternal", status_code=204)
def update_note_internal(
    reservation_id: int,
    body: ReservationNoteInternalDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    facade.update_reservation_note_internal(ctx, reservation_id, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reservations/{reservation_id}/items", response_model=ManagerReservationDto)
def add_items(
    reservation_id: int,
    body: UpdateReservationItemsDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.add_reservation_items(ctx, reservation_id, body)


@router.get(
    "/reservations/{reservation_id}/items/{item_id}/history",
    response_model=list[ReservationItemEventDto],
)
def item_history(
    reservation_id: int,
    item_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.get_item_history(ctx, reservation_id, item_id)


@router.post(
    "/reservations/{reservation_id}/items/{item_id}/events",
    response_model=ReservationItemEventDto,
    status_code=201,
)
def modify_item(
    reservation_id: int,
    item_id: int,
    body: CreateReservationItemEventDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.modify_reservation_item(ctx, reservation_id, item_id, body)


# ---------------------------------------------------------------------------
# Board games
# ---------------------------------------------------------------------------
# Members and managers get different shapes
@router.get("", response_model=None)
def list_board_games(
    category_id: int | None = Query(None, alias="categoryId"),
    players: int | None = Query(None, ge=1),
    available: bool | None = Query(None),
    visible: bool | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
) -> list[BoardGameDto]:
    return facade.get_board_games(
        ctx,
        category_id=category_id,
        players=players,
        available=available,
        visible=visible,
    )


@router.post("", response_model=ManagerBoardGameDto, status_code=201)
def create_board_game(
    body: CreateBoardGameDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.create_board_game(ctx, body)


# Members and managers get different shapes
@router.get("/{board_game_id}", response_model=None)
def get_board_game(
    board_game_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
) -> BoardGameDto:
    return facade.get_board_game(ctx, board_game_id)


@router.put("/{board_game_id}", response_model=ManagerBoardGameDto)
def update_board_game(
    board_game_id: int,
    body: CreateBoardGameDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.update_board_game(ctx, board_game_id, body)


@router.put("/{board_game_id}/stock", response_model=ManagerBoardGameDto)
def update_stock(
    board_game_id: int,
    body: BoardGameStockDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: BoardGamesFacade = Depends(get_board_games_facade),
):
    return facade.update_board_game_stock(ctx, board_game_id, body)
