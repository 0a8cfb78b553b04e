"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of kachna.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from kachna.config import KachnaConfig  # noqa: E402
from kachna.database.engine import init_db  # noqa: E402
from kachna.database.models import BoardGame, BoardGameCategory, User  # noqa: E402

# Fixed "now" shared by the facade/service tests
NOW = datetime(2026, 3, 14, 18, 0, 0)


def run_async(coro):
    """Run a coroutine to completion in a fresh event loop."""
    return asyncio.run(coro)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Kachna tables and roles.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine, expire_on_commit=False) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> KachnaConfig:
    return KachnaConfig(
        club_name="U Kachničky",
        reservation_pickup_days=7,
        default_loan_days=14,
        transition_check_seconds=30,
    )


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------
def add_user(session: Session, user_id: int, name: str | None = None) -> User:
    user = User(id=user_id, name=name or f"user{user_id}", email=f"user{user_id}@kachna.test")
    session.add(user)
    session.flush()
    return user


def add_category(session: Session, name: str = "Strategy") -> BoardGameCategory:
    category = BoardGameCategory(name=name, colour_hex="336699")
    session.add(category)
    session.flush()
    return category


def add_game(
    session: Session,
    category: BoardGameCategory,
    name: str = "Carcassonne",
    *,
    in_stock: int = 1,
    unavailable: int = 0,
    visible: bool = True,
    players_min: int | None = 2,
    players_max: int | None = 5,
    game_id: int | None = None,
) -> BoardGame:
    game = BoardGame(
        id=game_id,
        name=name,
        category_id=category.id,
        in_stock=in_stock,
        unavailable=unavailable,
        visible=visible,
        players_min=players_min,
        players_max=players_max,
    )
    session.add(game)
    session.flush()
    return game


def hours(n: float) -> timedelta:
    return timedelta(hours=n)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def make_token(user_id: int, roles: list[str] | None = None) -> str:
    """Create a bearer JWT as the identity provider would."""
    import jwt

    from kachna.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": str(user_id), "roles": roles or []},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(user_id: int, roles: list[str] | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, roles)}"}
