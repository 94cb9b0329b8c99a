"""Pydantic schemas for user endpoints."""

from datetime import datetime

from app.schemas.common import APIModel


class UserResponse(APIModel):
    id: int
    name: str
    email: str
    photo: str
    role: str
    created_at: datetime
    version: int


class UserSummary(APIModel):
    """Compact user embedded in tours and reviews."""

    id: int
    name: str
    photo: str
    role: str


class UpdateMeRequest(APIModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    password_confirm: str | None = None


class UserCreateRequest(APIModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    password_confirm: str | None = None
    role: str | None = None


class UserUpdateRequest(APIModel):
    name: str | None = None
    email: str | None = None
    photo: str | None = None
    role: str | None = None
