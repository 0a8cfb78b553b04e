"""
kachna.engine.reservation_states — Reservation Item State Machine
==================================================================

Pure logic: no DB I/O, no HTTP.  An item's state is whatever its latest
event says, except that an item still waiting for pickup past its
``expires_on`` is *effectively* expired.  Expiry is derived from time and
never written to the event log.

Transitions::

    (none)      --created-->     reserved
    reserved    --assigned-->    assigned
    reserved,
    assigned    --handed_over--> current     (new expiry = loan due date)
    current     --extended-->    current     (new expiry must move forward)
    current     --returned-->    done
    reserved,
    assigned    --cancelled-->   cancelled

``done``, ``cancelled`` and ``expired`` are terminal.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from kachna.database.models import (
    ReservationEventType,
    ReservationItemState,
    ReservationState,
)
from kachna.exceptions import InvalidItemTransitionException

__all__ = [
    "ACTIVE_STATES",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "TransitionResult",
    "assigned_to",
    "effective_state",
    "plan_transition",
    "recorded_state",
    "reservation_state",
]

# event type → (allowed source states, resulting state)
TRANSITIONS: dict[ReservationEventType, tuple[frozenset[ReservationItemState], ReservationItemState]] = {
    ReservationEventType.ASSIGNED: (
        frozenset({ReservationItemState.RESERVED}),
        ReservationItemState.ASSIGNED,
    ),
    ReservationEventType.HANDED_OVER: (
        frozenset({ReservationItemState.RESERVED, ReservationItemState.ASSIGNED}),
        ReservationItemState.CURRENT,
    ),
    ReservationEventType.EXTENDED: (
        frozenset({ReservationItemState.CURRENT}),
        ReservationItemState.CURRENT,
    ),
    ReservationEventType.RETURNED: (
        frozenset({ReservationItemState.CURRENT}),
        ReservationItemState.DONE,
    ),
    ReservationEventType.CANCELLED: (
        frozenset({ReservationItemState.RESERVED, ReservationItemState.ASSIGNED}),
        ReservationItemState.CANCELLED,
    ),
}

TERMINAL_STATES = frozenset({
    ReservationItemState.DONE,
    ReservationItemState.CANCELLED,
    ReservationItemState.EXPIRED,
})

# States that hold a copy of the game out of the available pool
ACTIVE_STATES = frozenset({
    ReservationItemState.RESERVED,
    ReservationItemState.ASSIGNED,
    ReservationItemState.CURRENT,
})

_AWAITING_PICKUP = frozenset({
    ReservationItemState.RESERVED,
    ReservationItemState.ASSIGNED,
})


class ItemEventLike(Protocol):
    made_on: datetime
    made_by_id: int
    new_state: str
    type: str


class ItemLike(Protocol):
    expires_on: datetime
    events: Sequence[ItemEventLike]


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """What an accepted transition writes: the new state and expiry."""

    event_type: ReservationEventType
    new_state: ReservationItemState
    new_expiry: datetime | None


# ---------------------------------------------------------------------------
# State derivation
# ---------------------------------------------------------------------------
def recorded_state(item: ItemLike) -> ReservationItemState:
    """State written by the latest event (``reserved`` when there is none)."""
    if not item.events:
        return ReservationItemState.RESERVED
    latest = max(item.events, key=lambda e: e.made_on)
    return ReservationItemState(latest.new_state)


def effective_state(item: ItemLike, now: datetime) -> ReservationItemState:
    """State as seen at *now*, applying pickup expiry."""
    state = recorded_state(item)
    if state in _AWAITING_PICKUP and now >= item.expires_on:
        return ReservationItemState.EXPIRED
    return state


def assigned_to(item: ItemLike) -> int | None:
    """Manager who took charge of the item (actor of the latest ``assigned`` event)."""
    assigned = [e for e in item.events if e.type == ReservationEventType.ASSIGNED]
    if not assigned:
        return None
    return max(assigned, key=lambda e: e.made_on).made_by_id


def reservation_state(
    item_states: Iterable[ReservationItemState],
) -> ReservationState:
    """Aggregate the effective states of a reservation's items."""
    states = set(item_states)
    if ReservationItemState.CURRENT in states:
        return ReservationState.CURRENT
    if states & _AWAITING_PICKUP or not states:
        return ReservationState.NEW
    if ReservationItemState.EXPIRED in states:
        return ReservationState.EXPIRED
    return ReservationState.DONE


# ---------------------------------------------------------------------------
# Transition planning
# ---------------------------------------------------------------------------
def plan_transition(
    item: ItemLike,
    event_type: ReservationEventType,
    *,
    now: datetime,
    new_expiry: datetime | None = None,
    default_loan_end: datetime | None = None,
) -> TransitionResult:
    """Validate *event_type* against *item* and compute its effect.

    ``handed_over`` uses *new_expiry* when given, otherwise
    *default_loan_end*.  ``extended`` requires a *new_expiry* later than
    the current one.

    Raises
    ------
    InvalidItemTransitionException
        When the transition isn't legal from the item's effective state or
        the requested expiry is unusable.
    """
    if event_type == ReservationEventType.CREATED:
        raise InvalidItemTransitionException("Items are created only with a new reservation")

    sources, target = TRANSITIONS[event_type]
    current = effective_state(item, now)
    if current not in sources:
        raise InvalidItemTransitionException(
            f"Cannot apply '{event_type}' to an item in state '{current}'"
        )

    expiry: datetime | None = None
    if event_type == ReservationEventType.HANDED_OVER:
        expiry = new_expiry or default_loan_end
        if expiry is None or expiry <= now:
            raise InvalidItemTransitionException("Loan end must be in the future")
    elif event_type == ReservationEventType.EXTENDED:
        if new_expiry is None or new_expiry <= item.expires_on:
            raise InvalidItemTransitionException(
                "Extension must move the expiry later than the current one"
            )
        expiry = new_expiry

    return TransitionResult(event_type=event_type, new_state=target, new_expiry=expiry)
