"""
kachna.constants — Shared Constants & Helpers
==============================================

Role names, identity claim keys and the UTC helpers used wherever a
timestamp is written to or compared against the database.
"""

from __future__ import annotations

from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
ADMIN_ROLE = "Admin"
STATES_MANAGER_ROLE = "StatesManager"
EVENTS_MANAGER_ROLE = "EventsManager"
BOARD_GAMES_MANAGER_ROLE = "BoardGamesManager"

ALL_ROLES: tuple[str, ...] = (
    ADMIN_ROLE,
    STATES_MANAGER_ROLE,
    EVENTS_MANAGER_ROLE,
    BOARD_GAMES_MANAGER_ROLE,
)

# JWT claims
ID_CLAIM = "sub"
ROLES_CLAIM = "roles"

NOTE_MAX_LENGTH = 1024


# ---------------------------------------------------------------------------
# Time helpers — the schema stores naive UTC datetimes
# ---------------------------------------------------------------------------
def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)
