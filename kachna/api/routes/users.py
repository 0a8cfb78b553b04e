"""
kachna.api.routes.users — User lookup & role assignment
========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from kachna.api.deps import get_access_context, get_users_facade
from kachna.engine.access import AccessContext
from kachna.facades.users import UsersFacade
from kachna.schemas.users import RoleDto, UpdateSelfDto, UserDetailDto, UserDto

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserDto])
def list_users(
    name_filter: str | None = Query(None, alias="filter", max_length=128),
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.get_users(ctx, name_filter)


@router.get("/roles", response_model=list[RoleDto])
def list_roles(
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.get_roles(ctx)


@router.put("/me", response_model=UserDetailDto)
def register_self(
    body: UpdateSelfDto,
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.register_self(ctx, body.name, body.email)


@router.get("/{user_id}", response_model=UserDetailDto)
def get_user(
    user_id: int,
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.get_user(ctx, user_id)


@router.put("/{user_id}/roles/{role}", response_model=UserDetailDto)
def assign_role(
    user_id: int,
    role: str,
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.assign_role(ctx, user_id, role)


@router.delete("/{user_id}/roles/{role}", response_model=UserDetailDto)
def revoke_role(
    user_id: int,
    role: str,
    ctx: AccessContext = Depends(get_access_context),
    facade: UsersFacade = Depends(get_users_facade),
):
    return facade.revoke_role(ctx, user_id, role)
