"""
kachna.schemas.users — User DTOs
=================================
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UserDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class UserDetailDto(UserDto):
    email: str
    role_names: list[str] = []


class UpdateSelfDto(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=320)


class RoleDto(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
