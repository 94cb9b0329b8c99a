"""Pydantic schemas for authentication endpoints.

Fields are optional here; presence and content are checked by the validation
rules so every problem is reported in one response.
"""

from app.schemas.common import APIModel


class SignupRequest(APIModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    password_confirm: str | None = None


class LoginRequest(APIModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(APIModel):
    email: str | None = None


class ResetPasswordRequest(APIModel):
    password: str | None = None
    password_confirm: str | None = None


class UpdatePasswordRequest(APIModel):
    password_current: str | None = None
    password: str | None = None
    password_confirm: str | None = None
