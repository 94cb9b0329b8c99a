"""JWT Token Service."""

from datetime import datetime, timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import get_settings
from app.errors import AppError


class JWTService:
    """Handles session token creation and validation."""

    def __init__(self) -> None:
        settings = get_settings()
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES

    def create_token(self, user_id: int, issued_at: datetime | None = None) -> str:
        """Create a signed token whose subject is the user id."""
        issued_at = issued_at or datetime.utcnow()
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any]:
        """Decode a token, raising a 401 AppError if it is expired or tampered with."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AppError("Your token has expired! Please log in again.", 401) from None
        except JWTError:
            raise AppError("Invalid token. Please log in again!", 401) from None
        if "sub" not in payload or "iat" not in payload:
            raise AppError("Invalid token. Please log in again!", 401)
        return payload


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
