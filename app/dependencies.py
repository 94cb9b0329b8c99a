"""Authentication dependencies for FastAPI routes."""

from collections.abc import Callable

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.errors import AppError
from app.models.user import User
from app.services.jwt import get_jwt_service


def get_token(request: Request) -> str | None:
    """Bearer token from the Authorization header, falling back to the auth cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(get_settings().JWT_COOKIE_NAME) or None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Authenticate the request. Raises 401 unless the token is valid and still current."""
    token = get_token(request)
    if not token:
        raise AppError("You are not logged in! Please log in to get access.", 401)

    payload = get_jwt_service().verify_token(token)

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError("Invalid token. Please log in again!", 401) from None

    user = db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
    if not user:
        raise AppError("The user belonging to this token no longer exists.", 401)

    if user.changed_password_after(int(payload["iat"])):
        raise AppError("User recently changed password! Please log in again.", 401)

    return user


def restrict_to(*roles: str) -> Callable[..., User]:
    """Dependency factory allowing only the given roles. Runs after authentication."""

    def check_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise AppError("You do not have permission to perform this action", 403)
        return user

    return check_role


def set_auth_cookie(response: Response, token: str) -> None:
    """Set the authentication cookie."""
    settings = get_settings()
    response.set_cookie(
        key=settings.JWT_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        max_age=settings.JWT_EXPIRE_MINUTES * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    """Clear the authentication cookie."""
    response.delete_cookie(key=get_settings().JWT_COOKIE_NAME)
