"""
kachna.exceptions — Domain Exceptions
======================================

A flat set of named exceptions raised by services and facades.  Each one
belongs to a kind (not found, access denied, conflict, manipulation
failed) whose ``status_code`` the API layer turns into an HTTP response.
"""

from __future__ import annotations

from fastapi import status


class KachnaError(Exception):
    """Base class for all domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------
class NotFoundError(KachnaError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "not_found"


class AccessDeniedError(KachnaError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "forbidden"


class ConflictError(KachnaError):
    """A business rule forbids the requested change."""

    status_code = status.HTTP_409_CONFLICT
    detail = "conflict"


class ManipulationFailedError(KachnaError):
    """The database refused a write."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "manipulation_failed"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
class NotAuthenticatedException(AccessDeniedError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "not_authenticated"


class NotABoardGamesManagerException(AccessDeniedError):
    detail = "not_a_board_games_manager"


class NotAStatesManagerException(AccessDeniedError):
    detail = "not_a_states_manager"


class NotAnAdminException(AccessDeniedError):
    detail = "not_an_admin"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserNotFoundException(NotFoundError):
    detail = "user_not_found"


class RoleNotFoundException(NotFoundError):
    detail = "role_not_found"


class RoleAlreadyAssignedException(ConflictError):
    detail = "role_already_assigned"


class UserManipulationFailedException(ManipulationFailedError):
    detail = "user_manipulation_failed"


# ---------------------------------------------------------------------------
# Board games
# ---------------------------------------------------------------------------
class CategoryNotFoundException(NotFoundError):
    detail = "category_not_found"


class CategoryManipulationFailedException(ManipulationFailedError):
    detail = "category_manipulation_failed"


class CategoryHasBoardGamesException(ConflictError):
    detail = "category_has_board_games"

    def __init__(self, board_game_ids: list[int] | None = None) -> None:
        super().__init__()
        self.board_game_ids = board_game_ids or []


class BoardGameNotFoundException(NotFoundError):
    detail = "board_game_not_found"


class BoardGameManipulationFailedException(ManipulationFailedError):
    detail = "board_game_manipulation_failed"


class InvalidStockException(ConflictError):
    detail = "invalid_stock"


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------
class GameUnavailableException(ConflictError):
    detail = "game_unavailable"

    def __init__(self, unavailable_board_game_ids: list[int] | None = None) -> None:
        super().__init__()
        self.unavailable_board_game_ids = unavailable_board_game_ids or []


class ReservationNotFoundException(NotFoundError):
    detail = "reservation_not_found"


class ReservationAccessDeniedException(AccessDeniedError):
    detail = "reservation_access_denied"


class ReservationManipulationFailedException(ManipulationFailedError):
    detail = "reservation_manipulation_failed"


class InvalidItemTransitionException(ConflictError):
    detail = "invalid_item_transition"


# ---------------------------------------------------------------------------
# State planning
# ---------------------------------------------------------------------------
class StateNotFoundException(NotFoundError):
    detail = "state_not_found"


class RepeatingStateNotFoundException(NotFoundError):
    detail = "repeating_state_not_found"


class StatePlanningConflictException(ConflictError):
    detail = "state_planning_conflict"


class StateManipulationFailedException(ManipulationFailedError):
    detail = "state_manipulation_failed"


class EventNotFoundException(NotFoundError):
    detail = "event_not_found"
