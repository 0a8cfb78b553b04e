"""
kachna.facades.club_states — Club State Planning Facade
========================================================

Anyone may ask whether the club is open.  Planning, closing, chaining
and deleting states is reserved for states managers, who also get the
``Manager*`` DTOs with internal notes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import Engine

from kachna.constants import to_naive_utc, utcnow
from kachna.database.engine import get_session
from kachna.database.models import PlannedState, RepeatingState, StateType
from kachna.engine.access import AccessContext
from kachna.exceptions import NotAStatesManagerException, NotAuthenticatedException
from kachna.schemas.club_states import (
    ClubStatusDto,
    CreateRepeatingStateDto,
    LinkNextStateDto,
    ManagerStateDto,
    PlanStateDto,
    RepeatingStateDto,
    StateDto,
)
from kachna.services import state_planning_service as svc

logger = logging.getLogger(__name__)


def _require_manager(ctx: AccessContext) -> int:
    if not ctx.is_authenticated:
        raise NotAuthenticatedException()
    if not ctx.is_states_manager:
        raise NotAStatesManagerException()
    return ctx.user_id


def _state_dto(planned: PlannedState, *, manager: bool) -> StateDto:
    return (ManagerStateDto if manager else StateDto).model_validate(planned)


def _repeating_dto(template: RepeatingState) -> RepeatingStateDto:
    return RepeatingStateDto(
        id=template.id,
        state=template.state,
        day_of_week=template.day_of_week,
        effective_from=template.effective_from,
        effective_to=template.effective_to,
        time_from=template.time_from,
        time_to=template.time_to,
        note_public=template.note_public,
        planned_state_ids=sorted(p.id for p in template.planned_states),
    )


class ClubStatesFacade:
    def __init__(self, engine: Engine, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.engine = engine
        self.clock = clock

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_current(self, ctx: AccessContext) -> ClubStatusDto:
        with get_session(self.engine) as session:
            current = svc.get_current_state(session, self.clock())
            if current is None:
                return ClubStatusDto(state=StateType.CLOSED)
            return ClubStatusDto(
                state=current.state,
                current=_state_dto(current, manager=ctx.is_states_manager),
            )

    def get_states(
        self,
        ctx: AccessContext,
        *,
        from_: datetime | None = None,
        to: datetime | None = None,
    ) -> list[StateDto]:
        manager = ctx.is_states_manager
        with get_session(self.engine) as session:
            rows = svc.get_states(session, from_=to_naive_utc(from_), to=to_naive_utc(to))
            return [_state_dto(p, manager=manager) for p in rows]

    # -------------------------------------------------------------------
    # Planned states
    # -------------------------------------------------------------------
    def plan_state(self, ctx: AccessContext, dto: PlanStateDto) -> ManagerStateDto:
        user_id = _require_manager(ctx)
        with get_session(self.engine) as session:
            planned = svc.plan_state(
                session,
                made_by=user_id,
                state=dto.state,
                start=to_naive_utc(dto.start),
                planned_end=to_naive_utc(dto.planned_end),
                note_internal=dto.note_internal,
                note_public=dto.note_public,
                associated_event_id=dto.associated_event_id,
                now=self.clock(),
            )
            return _state_dto(planned, manager=True)

    def close_state(self, ctx: AccessContext, state_id: int) -> ManagerStateDto:
        user_id = _require_manager(ctx)
        with get_session(self.engine) as session:
            planned = svc.close_state(session, state_id, closed_by=user_id, now=self.clock())
            return _state_dto(planned, manager=True)

    def link_next_state(
        self, ctx: AccessContext, state_id: int, dto: LinkNextStateDto
    ) -> ManagerStateDto:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            planned = svc.link_next_state(session, state_id, dto.next_planned_state_id)
            return _state_dto(planned, manager=True)

    def delete_state(self, ctx: AccessContext, state_id: int) -> None:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            svc.delete_state(session, state_id, now=self.clock())

    # -------------------------------------------------------------------
    # Repeating states
    # -------------------------------------------------------------------
    def create_repeating_state(
        self, ctx: AccessContext, dto: CreateRepeatingStateDto
    ) -> RepeatingStateDto:
        user_id = _require_manager(ctx)
        with get_session(self.engine) as session:
            template = svc.create_repeating_state(
                session,
                made_by=user_id,
                state=dto.state,
                day_of_week=dto.day_of_week,
                effective_from=dto.effective_from,
                effective_to=dto.effective_to,
                time_from=dto.time_from,
                time_to=dto.time_to,
                note_internal=dto.note_internal,
                note_public=dto.note_public,
                now=self.clock(),
            )
            return _repeating_dto(template)

    def remove_repeating_state(self, ctx: AccessContext, repeating_id: int) -> None:
        _require_manager(ctx)
        with get_session(self.engine) as session:
            svc.remove_repeating_state(session, repeating_id, now=self.clock())
