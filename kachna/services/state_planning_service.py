"""
kachna.services.state_planning_service — Planned & Repeating Club States
=========================================================================

A planned state is an interval during which the club is in a given state
(open bar, chillzone, private, …).  Planned states never overlap.  A
state may name one successor that starts exactly when it ends; the
chain must stay acyclic.  Repeating states are weekly templates that
materialise into planned states.

The periodic runner (:mod:`kachna.tasks`) asks :func:`due_transitions`
which states started or ended since its previous tick.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kachna.database.models import (
    Event,
    PlannedState,
    RepeatingState,
    StateType,
    User,
)
from kachna.database.repositories import Repository
from kachna.exceptions import (
    EventNotFoundException,
    RepeatingStateNotFoundException,
    StateManipulationFailedException,
    StateNotFoundException,
    StatePlanningConflictException,
    UserNotFoundException,
)

logger = logging.getLogger(__name__)

_effective_end = func.coalesce(PlannedState.ended, PlannedState.planned_end)


def _flush(session: Session, what: str) -> None:
    try:
        session.flush()
    except SQLAlchemyError as exc:
        logger.exception("Failed to %s", what)
        raise StateManipulationFailedException() from exc


def _require_user(session: Session, user_id: int) -> None:
    if session.get(User, user_id) is None:
        raise UserNotFoundException()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_state(session: Session, state_id: int) -> PlannedState:
    state = session.get(PlannedState, state_id)
    if state is None:
        raise StateNotFoundException()
    return state


def get_states(
    session: Session, *, from_: datetime | None = None, to: datetime | None = None
) -> list[PlannedState]:
    """States intersecting ``[from_, to]``, ordered by start."""
    stmt = select(PlannedState).order_by(PlannedState.start)
    if to is not None:
        stmt = stmt.where(PlannedState.start <= to)
    if from_ is not None:
        stmt = stmt.where(or_(_effective_end.is_(None), _effective_end >= from_))
    return list(session.scalars(stmt).all())


def get_current_state(session: Session, now: datetime) -> PlannedState | None:
    """The state active at *now*, or ``None`` when the club is closed."""
    return session.scalar(
        select(PlannedState)
        .where(
            PlannedState.start <= now,
            or_(_effective_end.is_(None), _effective_end > now),
        )
        .order_by(PlannedState.start.desc())
        .limit(1)
    )


def find_overlapping(
    session: Session,
    start: datetime,
    end: datetime,
    *,
    exclude_id: int | None = None,
) -> list[PlannedState]:
    stmt = select(PlannedState).where(
        PlannedState.start < end,
        or_(_effective_end.is_(None), _effective_end > start),
    )
    if exclude_id is not None:
        stmt = stmt.where(PlannedState.id != exclude_id)
    return list(session.scalars(stmt).all())


def due_transitions(
    session: Session, since: datetime, now: datetime
) -> tuple[list[int], list[int]]:
    """IDs of states that started, and that ended, within ``(since, now]``."""
    started = session.scalars(
        select(PlannedState.id)
        .where(PlannedState.start > since, PlannedState.start <= now)
        .order_by(PlannedState.start)
    ).all()
    ended = session.scalars(
        select(PlannedState.id)
        .where(_effective_end > since, _effective_end <= now)
        .order_by(_effective_end)
    ).all()
    return list(started), list(ended)


# ---------------------------------------------------------------------------
# Planned states
# ---------------------------------------------------------------------------
def plan_state(
    session: Session,
    *,
    made_by: int,
    state: StateType,
    start: datetime,
    planned_end: datetime,
    note_internal: str | None = None,
    note_public: str | None = None,
    associated_event_id: int | None = None,
    now: datetime,
) -> PlannedState:
    """Plan a new state.

    Raises
    ------
    StatePlanningConflictException
        The interval is empty, lies in the past or overlaps another state.
    UserNotFoundException, EventNotFoundException
        Referenced rows don't exist.
    """
    if start >= planned_end:
        raise StatePlanningConflictException("Start must be before the planned end")
    if planned_end <= now:
        raise StatePlanningConflictException("Cannot plan a state in the past")
    _require_user(session, made_by)
    if associated_event_id is not None and session.get(Event, associated_event_id) is None:
        raise EventNotFoundException()
    if find_overlapping(session, start, planned_end):
        raise StatePlanningConflictException("The state overlaps another planned state")

    planned = PlannedState(
        made_by_id=made_by,
        state=StateType(state).value,
        start=start,
        planned_end=planned_end,
        note_internal=note_internal,
        note_public=note_public,
        associated_event_id=associated_event_id,
    )
    session.add(planned)
    _flush(session, "plan state")
    logger.info("Planned state %d (%s) %s → %s", planned.id, planned.state, start, planned_end)
    return planned


def close_state(
    session: Session, state_id: int, *, closed_by: int, now: datetime
) -> PlannedState:
    """End an active state right now.

    The successor, if any, started at the old planned end and no longer
    follows; the link is dropped and the successor keeps its own slot.
    """
    planned = get_state(session, state_id)
    _require_user(session, closed_by)
    end = planned.effective_end
    if planned.start > now or (end is not None and end <= now):
        raise StatePlanningConflictException("Only an active state can be closed")

    successor_id = planned.next_planned_state_id
    planned.ended = now
    planned.closed_by_id = closed_by
    planned.next_planned_state_id = None
    _flush(session, "close state")
    if successor_id is not None:
        logger.info(
            "State %d closed by user %d, unlinked from %d", state_id, closed_by, successor_id
        )
    else:
        logger.info("State %d closed by user %d", state_id, closed_by)
    return planned


def link_next_state(session: Session, state_id: int, next_id: int) -> PlannedState:
    """Chain *next_id* after *state_id*.

    The predecessor must not have been closed.  The successor must start
    exactly at the predecessor's end, may follow only one state and must
    not lead back to *state_id*.
    """
    if state_id == next_id:
        raise StatePlanningConflictException("A state cannot follow itself")
    planned = get_state(session, state_id)
    successor = get_state(session, next_id)

    if planned.ended is not None:
        raise StatePlanningConflictException("A closed state cannot have a successor")
    end = planned.effective_end
    if end is None or successor.start != end:
        raise StatePlanningConflictException(
            "The next state must start when the previous one ends"
        )
    taken = session.scalar(
        select(PlannedState.id).where(
            PlannedState.next_planned_state_id == next_id,
            PlannedState.id != state_id,
        )
    )
    if taken is not None:
        raise StatePlanningConflictException("The next state already follows another state")

    seen = {state_id}
    cursor: PlannedState | None = successor
    while cursor is not None and cursor.next_planned_state_id is not None:
        if cursor.next_planned_state_id in seen:
            raise StatePlanningConflictException("Linking would create a cycle")
        seen.add(cursor.id)
        cursor = session.get(PlannedState, cursor.next_planned_state_id)

    planned.next_planned_state_id = next_id
    _flush(session, "link next state")
    return planned


def _unlink_predecessors(session: Session, state_id: int) -> None:
    for predecessor in session.scalars(
        select(PlannedState).where(PlannedState.next_planned_state_id == state_id)
    ).all():
        predecessor.next_planned_state_id = None


def delete_state(session: Session, state_id: int, *, now: datetime) -> None:
    """Delete a state that hasn't started yet."""
    planned = get_state(session, state_id)
    if planned.start <= now:
        raise StatePlanningConflictException("A started state cannot be deleted")
    _unlink_predecessors(session, state_id)
    session.flush()
    Repository(session, PlannedState).delete(planned)
    _flush(session, "delete state")
    logger.info("Deleted planned state %d", state_id)


# ---------------------------------------------------------------------------
# Repeating states
# ---------------------------------------------------------------------------
def _occurrences(
    day_of_week: int,
    effective_from: date,
    effective_to: date,
    time_from: time,
    time_to: time,
):
    """Yield ``(start, end)`` for each matching weekday; overnight slots end next day."""
    day = effective_from + timedelta(days=(day_of_week - effective_from.weekday()) % 7)
    while day <= effective_to:
        start = datetime.combine(day, time_from)
        end = datetime.combine(day, time_to)
        if end <= start:
            end += timedelta(days=1)
        yield start, end
        day += timedelta(days=7)


def create_repeating_state(
    session: Session,
    *,
    made_by: int,
    state: StateType,
    day_of_week: int,
    effective_from: date,
    effective_to: date,
    time_from: time,
    time_to: time,
    note_internal: str | None = None,
    note_public: str | None = None,
    now: datetime,
) -> RepeatingState:
    """Create a weekly template and plan each future occurrence.

    Occurrences in the past or clashing with an existing state are skipped.
    """
    if effective_from > effective_to:
        raise StatePlanningConflictException("effective_from must not be after effective_to")
    if not 0 <= day_of_week <= 6:
        raise StatePlanningConflictException("day_of_week must be between 0 and 6")
    _require_user(session, made_by)

    template = RepeatingState(
        made_by_id=made_by,
        state=StateType(state).value,
        day_of_week=day_of_week,
        effective_from=effective_from,
        effective_to=effective_to,
        time_from=time_from,
        time_to=time_to,
        note_internal=note_internal,
        note_public=note_public,
    )
    session.add(template)

    skipped = 0
    for start, end in _occurrences(day_of_week, effective_from, effective_to, time_from, time_to):
        if end <= now or find_overlapping(session, start, end):
            skipped += 1
            continue
        template.planned_states.append(PlannedState(
            made_by_id=made_by,
            state=template.state,
            start=start,
            planned_end=end,
            note_internal=note_internal,
            note_public=note_public,
        ))
        session.flush()

    _flush(session, "create repeating state")
    logger.info(
        "Repeating state %d created: %d planned, %d skipped",
        template.id, len(template.planned_states), skipped,
    )
    return template


def get_repeating_state(session: Session, repeating_id: int) -> RepeatingState:
    template = session.get(RepeatingState, repeating_id)
    if template is None:
        raise RepeatingStateNotFoundException()
    return template


def remove_repeating_state(session: Session, repeating_id: int, *, now: datetime) -> None:
    """Delete a template with its future states; past states are kept detached."""
    template = get_repeating_state(session, repeating_id)
    doomed: list[PlannedState] = []
    for planned in list(template.planned_states):
        template.planned_states.remove(planned)
        if planned.start > now:
            _unlink_predecessors(session, planned.id)
            doomed.append(planned)
    session.flush()
    for planned in doomed:
        session.delete(planned)
    session.delete(template)
    _flush(session, "remove repeating state")
    logger.info("Removed repeating state %d", repeating_id)
