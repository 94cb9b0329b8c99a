"""User and authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import clear_auth_cookie, get_current_user, restrict_to, set_auth_cookie
from app.models.user import User
from app.rate_limit import limiter
from app.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdatePasswordRequest,
)
from app.schemas.common import dump
from app.schemas.user import UpdateMeRequest, UserCreateRequest, UserResponse, UserUpdateRequest
from app.services.auth import get_auth_service
from app.services.jwt import get_jwt_service
from app.services.user import get_user_service
from app.utils.api_features import parse_query_string

logger = logging.getLogger("tourbook")

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def send_token(user: User, response: Response) -> dict:
    """Issue a session token as both cookie and body."""
    token = get_jwt_service().create_token(user_id=user.id)
    set_auth_cookie(response, token)
    return {"status": "success", "token": token, "data": {"user": dump(UserResponse, user)}}


# --- Authentication ---
@router.post("/signup", status_code=201)
@limiter.limit("5/minute")
def signup(request: Request, response: Response, body: SignupRequest, db: Session = Depends(get_db)) -> dict:
    """Register a new account. The role is always the default one."""
    user = get_auth_service().signup(db, body.name, body.email, body.password, body.password_confirm)
    return send_token(user, response)


@router.post("/login")
@limiter.limit("10/minute")
def login(request: Request, response: Response, body: LoginRequest, db: Session = Depends(get_db)) -> dict:
    """Authenticate and receive a session token."""
    user = get_auth_service().login(db, body.email, body.password)
    return send_token(user, response)


@router.get("/logout")
def logout(response: Response) -> dict:
    """Clear the auth cookie."""
    clear_auth_cookie(response)
    return {"status": "success"}


@router.post("/forgot-password")
@limiter.limit("3/minute")
def forgot_password(request: Request, body: ForgotPasswordRequest, db: Session = Depends(get_db)) -> dict:
    """Mail a password reset link to the account holder."""
    get_auth_service().forgot_password(
        db,
        body.email,
        lambda token: str(request.url_for("reset_password", reset_token=token)),
    )
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/reset-password/{reset_token}")
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    response: Response,
    reset_token: str,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> dict:
    """Set a new password using a reset token. Logs the user in."""
    user = get_auth_service().reset_password(db, reset_token, body.password, body.password_confirm)
    return send_token(user, response)


@router.patch("/update-my-password")
def update_my_password(
    response: Response,
    body: UpdatePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    """Change the caller's password. Returns a fresh token."""
    user = get_auth_service().update_password(db, user, body.password_current, body.password, body.password_confirm)
    return send_token(user, response)


# --- Current user ---
@router.get("/me")
def get_me(user: User = Depends(get_current_user)) -> dict:
    """Return the caller's own record."""
    return {"status": "success", "data": {"user": dump(UserResponse, user)}}


@router.patch("/update-me")
def update_me(body: UpdateMeRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    """Update the caller's name and email."""
    user = get_user_service().update_me(db, user, body.model_dump(exclude_unset=True))
    return {"status": "success", "data": {"user": dump(UserResponse, user)}}


@router.delete("/delete-me", status_code=204)
def delete_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    """Deactivate the caller's account."""
    get_user_service().deactivate(db, user)
    return Response(status_code=204)


# --- Administration ---
@router.get("/")
def list_users(request: Request, _: User = Depends(restrict_to("admin")), db: Session = Depends(get_db)) -> dict:
    """List users with query-string filtering, sorting, field limiting and pagination."""
    users = get_user_service().list_users(db, parse_query_string(request.query_params.multi_items()))
    return {"status": "success", "results": len(users), "data": {"users": users}}


@router.post("/", status_code=201)
def create_user(body: UserCreateRequest, _: User = Depends(restrict_to("admin")), db: Session = Depends(get_db)) -> dict:
    """Create a user with any role."""
    user = get_user_service().create_user(db, body.model_dump())
    return {"status": "success", "data": {"user": dump(UserResponse, user)}}


@router.get("/{user_id}")
def get_user(user_id: int, _: User = Depends(restrict_to("admin")), db: Session = Depends(get_db)) -> dict:
    """Get a single user by ID."""
    user = get_user_service().get_user(db, user_id)
    return {"status": "success", "data": {"user": dump(UserResponse, user)}}


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    _: User = Depends(restrict_to("admin")),
    db: Session = Depends(get_db),
) -> dict:
    """Update a user's profile or role. Not for passwords."""
    user = get_user_service().update_user(db, user_id, body.model_dump(exclude_unset=True))
    return {"status": "success", "data": {"user": dump(UserResponse, user)}}


@router.delete("/{user_id}", status_code=204)
def delete_user(user_id: int, _: User = Depends(restrict_to("admin")), db: Session = Depends(get_db)) -> Response:
    """Delete a user permanently."""
    get_user_service().delete_user(db, user_id)
    return Response(status_code=204)
