"""
kachna.database.repositories — Generic and User Repositories
=============================================================

Thin query helpers bound to an open :class:`Session`.  Services use them
for the CRUD they share; anything more specific lives in the service.
``add`` flushes so the new row has its key; ``delete`` leaves the flush
to the caller, which turns database errors into domain failures.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from kachna.database.models import Base, User, UserRole

M = TypeVar("M", bound=Base)


class Repository(Generic[M]):
    """CRUD over a single mapped class."""

    model: type[M]

    def __init__(self, session: Session, model: type[M] | None = None) -> None:
        self.session = session
        if model is not None:
            self.model = model

    def get(self, pk: Any) -> M | None:
        return self.session.get(self.model, pk)

    def list(self) -> Sequence[M]:
        return self.session.scalars(select(self.model)).all()

    def add(self, obj: M) -> M:
        self.session.add(obj)
        self.session.flush()
        return obj

    def delete(self, obj: M) -> None:
        """Mark *obj* for deletion; the caller flushes and maps failures."""
        self.session.delete(obj)


class UserRepository(Repository[User]):
    model = User

    def get_with_roles(self, user_id: int) -> User | None:
        """Fetch a user with role assignments (and role names) loaded."""
        return self.session.scalar(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.roles).joinedload(UserRole.role))
        )

    def get_filtered(self, name_filter: str | None) -> Sequence[User]:
        """Users whose name contains *name_filter* (case-insensitive)."""
        stmt = select(User).options(
            selectinload(User.roles).joinedload(UserRole.role)
        )
        if name_filter:
            stmt = stmt.where(
                func.lower(User.name).contains(name_filter.lower(), autoescape=True)
            )
        return self.session.scalars(stmt.order_by(User.name)).all()
