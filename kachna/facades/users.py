"""
kachna.facades.users — Users Facade
====================================

Managers of any kind may look people up (to make a reservation for them,
to see who closed the club).  Only admins change role assignments.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine

from kachna.constants import ADMIN_ROLE, ALL_ROLES
from kachna.database.engine import get_session
from kachna.engine.access import AccessContext
from kachna.exceptions import NotAnAdminException, NotAuthenticatedException
from kachna.schemas.users import RoleDto, UserDetailDto, UserDto
from kachna.services import users_service

logger = logging.getLogger(__name__)


def _require_admin(ctx: AccessContext) -> None:
    if not ctx.is_authenticated:
        raise NotAuthenticatedException()
    if not ctx.is_admin:
        raise NotAnAdminException()


def _require_any_manager(ctx: AccessContext) -> None:
    if not ctx.is_authenticated:
        raise NotAuthenticatedException()
    if not any(ctx.has_role(role) for role in ALL_ROLES if role != ADMIN_ROLE):
        raise NotAnAdminException()


class UsersFacade:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_users(self, ctx: AccessContext, name_filter: str | None = None) -> list[UserDto]:
        _require_any_manager(ctx)
        with get_session(self.engine) as session:
            return [UserDto.model_validate(u) for u in users_service.get_users(session, name_filter)]

    def get_roles(self, ctx: AccessContext) -> list[RoleDto]:
        _require_any_manager(ctx)
        with get_session(self.engine) as session:
            return [RoleDto.model_validate(r) for r in users_service.get_roles(session)]

    def get_user(self, ctx: AccessContext, user_id: int) -> UserDetailDto:
        """Users may read their own detail; anyone else's needs a manager role."""
        if ctx.user_id != user_id:
            _require_any_manager(ctx)
        with get_session(self.engine) as session:
            return UserDetailDto.model_validate(users_service.get_user(session, user_id))

    def assign_role(self, ctx: AccessContext, user_id: int, role_name: str) -> UserDetailDto:
        _require_admin(ctx)
        with get_session(self.engine) as session:
            user = users_service.assign_role(
                session, user_id, role_name, assigned_by=ctx.user_id
            )
            return UserDetailDto.model_validate(user)

    def revoke_role(self, ctx: AccessContext, user_id: int, role_name: str) -> UserDetailDto:
        _require_admin(ctx)
        with get_session(self.engine) as session:
            user = users_service.revoke_role(session, user_id, role_name)
            return UserDetailDto.model_validate(user)

    def register_self(self, ctx: AccessContext, name: str, email: str) -> UserDetailDto:
        """Create the caller's account on first login, refresh it afterwards."""
        user_id = ctx.require_user_id()
        with get_session(self.engine) as session:
            users_service.ensure_user(session, user_id, name=name, email=email)
            return UserDetailDto.model_validate(users_service.get_user(session, user_id))
