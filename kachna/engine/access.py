"""
kachna.engine.access — Caller Capabilities
===========================================

Facades never inspect ambient identity.  The API layer decodes the bearer
token once and hands every facade call an :class:`AccessContext`.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from kachna.constants import (
    ADMIN_ROLE,
    BOARD_GAMES_MANAGER_ROLE,
    STATES_MANAGER_ROLE,
)
from kachna.exceptions import NotAuthenticatedException


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Who is calling and which roles they hold."""

    user_id: int | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls) -> AccessContext:
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def has_role(self, role: str) -> bool:
        # Admins implicitly hold every role
        return self.is_authenticated and (role in self.roles or ADMIN_ROLE in self.roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)

    @property
    def is_board_games_manager(self) -> bool:
        return self.has_role(BOARD_GAMES_MANAGER_ROLE)

    @property
    def is_states_manager(self) -> bool:
        return self.has_role(STATES_MANAGER_ROLE)

    def require_user_id(self) -> int:
        """Return the caller's ID or raise :class:`NotAuthenticatedException`."""
        if self.user_id is None:
            raise NotAuthenticatedException()
        return self.user_id
