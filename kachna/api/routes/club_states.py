"""
kachna.api.routes.club_states — Club state planning endpoints
==============================================================

``GET /states/current`` is public; the rest is for states managers.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status

from kachna.api.deps import get_access_context, get_club_states_facade
from kachna.engine.access import AccessContext
from kachna.facades.club_states import ClubStatesFacade
from kachna.schemas.club_states import (
    ClubStatusDto,
    CreateRepeatingStateDto,
    LinkNextStateDto,
    ManagerStateDto,
    PlanStateDto,
    RepeatingStateDto,
    StateDto,
)

router = APIRouter(prefix="/states", tags=["club states"])


@router.get("/current", response_model=ClubStatusDto)
def current_state(
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    return facade.get_current(ctx)


# Members and managers get different shapes
@router.get("", response_model=None)
def list_states(
    from_: datetime | None = Query(None, alias="from"),
    to: datetime | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
) -> list[StateDto]:
    return facade.get_states(ctx, from_=from_, to=to)


@router.post("", response_model=ManagerStateDto, status_code=201)
def plan_state(
    body: PlanStateDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    return facade.plan_state(ctx, body)


@router.post("/repeating", response_model=RepeatingStateDto, status_code=201)
def create_repeating_state(
    body: CreateRepeatingStateDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    return facade.create_repeating_state(ctx, body)


@router.delete("/repeating/{repeating_id}", status_code=204)
def remove_repeating_state(
    repeating_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    facade.remove_repeating_state(ctx, repeating_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{state_id}/close", response_model=ManagerStateDto)
def close_state(
    state_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    return facade.close_state(ctx, state_id)


@router.put("/{state_id}/next", response_model=ManagerStateDto)
def link_next_state(
    state_id: int,
    body: LinkNextStateDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    return facade.link_next_state(ctx, state_id, body)


@router.delete("/{state_id}", status_code=204)
def delete_state(
    state_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: ClubStatesFacade = Depends(get_club_states_facade),
):
    facade.delete_state(ctx, state_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
