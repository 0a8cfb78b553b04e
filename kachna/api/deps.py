"""
kachna.api.deps — FastAPI dependency injection
===============================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from kachna.config import KachnaConfig, load_config
from kachna.constants import ID_CLAIM, ROLES_CLAIM
from kachna.database.engine import create_db_engine
from kachna.engine.access import AccessContext
from kachna.exceptions import NotAuthenticatedException
from kachna.facades.board_games import BoardGamesFacade
from kachna.facades.club_states import ClubStatesFacade
from kachna.facades.users import UsersFacade

_WEAK_SECRETS = frozenset({
    "kachna-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "It must match the secret of the identity provider issuing tokens."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> KachnaConfig:
    return load_config()


def get_access_context(
    authorization: Annotated[str | None, Header()] = None,
) -> AccessContext:
    """Decode the optional bearer token into an :class:`AccessContext`.

    No token means an anonymous caller; a token that fails verification
    is rejected with 401.
    """
    if not authorization:
        return AccessContext.anonymous()
    if not authorization.startswith("Bearer "):
        raise NotAuthenticatedException("Malformed authorization header")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        user_id = int(payload[ID_CLAIM])
    except (InvalidTokenError, KeyError, TypeError, ValueError):
        raise NotAuthenticatedException("Invalid token")
    roles = payload.get(ROLES_CLAIM) or []
    if isinstance(roles, str):
        roles = [roles]
    return AccessContext(user_id=user_id, roles=frozenset(roles))


# ---------------------------------------------------------------------------
# Facades
# ---------------------------------------------------------------------------
def get_board_games_facade(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[KachnaConfig, Depends(get_config)],
) -> BoardGamesFacade:
    return BoardGamesFacade(engine, cfg)


def get_users_facade(engine: Annotated[Engine, Depends(get_engine)]) -> UsersFacade:
    return UsersFacade(engine)


def get_club_states_facade(
    engine: Annotated[Engine, Depends(get_engine)],
) -> ClubStatesFacade:
    return ClubStatesFacade(engine)
