"""
kachna.services.users_service — Users & Role Assignment
========================================================

Users are created on first sight (their ID comes from the identity
provider); roles are assigned by admins and record who assigned them.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kachna.database.models import Role, User, UserRole
from kachna.database.repositories import Repository, UserRepository
from kachna.exceptions import (
    RoleAlreadyAssignedException,
    RoleNotFoundException,
    UserManipulationFailedException,
    UserNotFoundException,
)

logger = logging.getLogger(__name__)


def _flush(session: Session, what: str) -> None:
    try:
        session.flush()
    except SQLAlchemyError as exc:
        logger.exception("Failed to %s", what)
        raise UserManipulationFailedException() from exc


def get_user(session: Session, user_id: int) -> User:
    """Fetch a user with roles loaded or raise :class:`UserNotFoundException`."""
    user = UserRepository(session).get_with_roles(user_id)
    if user is None:
        raise UserNotFoundException()
    return user


def get_users(session: Session, name_filter: str | None = None) -> Sequence[User]:
    return UserRepository(session).get_filtered(name_filter)


def ensure_user(session: Session, user_id: int, *, name: str, email: str) -> User:
    """Fetch or insert a user, refreshing name and e-mail on every login."""
    repo = UserRepository(session)
    user = repo.get(user_id)
    if user is None:
        user = repo.add(User(id=user_id, name=name, email=email))
        logger.info("Registered user %d (%s)", user_id, name)
    else:
        user.name = name
        user.email = email
        _flush(session, "update user")
    return user


def get_roles(session: Session) -> list[Role]:
    """All roles a user can be given, by name."""
    return sorted(Repository(session, Role).list(), key=lambda r: r.name)


def _get_role(session: Session, role_name: str) -> Role:
    role = session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RoleNotFoundException()
    return role


def assign_role(
    session: Session, user_id: int, role_name: str, *, assigned_by: int | None
) -> User:
    """Give *role_name* to *user_id*, remembering *assigned_by*."""
    user = get_user(session, user_id)
    if assigned_by is not None and assigned_by != user_id:
        get_user(session, assigned_by)
    role = _get_role(session, role_name)
    if session.get(UserRole, (user_id, role.id)) is not None:
        raise RoleAlreadyAssignedException()

    user.roles.append(UserRole(role=role, assigned_by_user_id=assigned_by))
    _flush(session, "assign role")
    logger.info("Role %s assigned to user %d by %s", role_name, user_id, assigned_by)
    return user


def revoke_role(session: Session, user_id: int, role_name: str) -> User:
    """Remove *role_name* from *user_id*; no-op when it isn't assigned."""
    user = get_user(session, user_id)
    role = _get_role(session, role_name)
    assignment = session.get(UserRole, (user_id, role.id))
    if assignment is not None:
        user.roles.remove(assignment)
        _flush(session, "revoke role")
        logger.info("Role %s revoked from user %d", role_name, user_id)
    return user
