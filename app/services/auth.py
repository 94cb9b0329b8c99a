"""Authentication service: accounts, credentials and the password reset handshake."""

import hashlib
import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

import bcrypt
from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import AppError
from app.models.user import User
from app.services.email import get_email_service
from app.validation import PASSWORD_RULES, USER_RULES, ensure_valid

logger = logging.getLogger("tourbook")

INVALID_CREDENTIALS = "Incorrect email or password"


def normalize_email(email: str | None) -> str | None:
    return email.strip().lower() if email else email


def hash_reset_token(token: str) -> str:
    """One-way digest stored in place of a reset token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Handles sign-up, login and password changes."""

    def __init__(self) -> None:
        settings = get_settings()
        self.bcrypt_rounds = settings.BCRYPT_ROUNDS
        self.reset_expire_minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.bcrypt_rounds)).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    def set_password(self, user: User, password: str) -> None:
        """Replace the stored hash and stamp the change.

        The stamp is backdated one second so a token issued right after the
        save is never considered older than the change.
        """
        user.password_hash = self.hash_password(password)
        user.password_changed_at = datetime.utcnow() - timedelta(seconds=1)

    def signup(self, db: Session, name: str | None, email: str | None, password: str | None, password_confirm: str | None) -> User:
        """Register a new account with the default role. Nothing is written if validation fails."""
        email = normalize_email(email)
        ensure_valid(
            {"name": name, "email": email, "password": password, "password_confirm": password_confirm},
            USER_RULES + PASSWORD_RULES,
        )
        if db.query(User).filter(User.email == email).first():
            raise AppError("Email already registered", 400)

        user = User(name=name.strip(), email=email, role="user", is_active=True)  # type: ignore[union-attr]
        user.password_hash = self.hash_password(password)  # type: ignore[arg-type]
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("New account %s (%s)", user.id, user.email)
        return user

    def login(self, db: Session, email: str | None, password: str | None) -> User:
        """Check credentials. Unknown email and wrong password fail identically."""
        if not email or not password:
            raise AppError("Please provide email and password!", 400)

        user = db.query(User).filter(User.email == normalize_email(email), User.is_active.is_(True)).first()
        if not user or not self.verify_password(password, user.password_hash):
            raise AppError(INVALID_CREDENTIALS, 401)
        return user

    def forgot_password(self, db: Session, email: str | None, build_reset_url: Callable[[str], str]) -> None:
        """Issue a reset token and mail it to the account holder.

        Only the token's digest is stored. If the mail cannot be handed off the
        digest is cleared again so no usable token is left behind.
        """
        user = None
        if email:
            user = db.query(User).filter(User.email == normalize_email(email), User.is_active.is_(True)).first()
        if not user:
            raise AppError("There is no user with that email address.", 404)

        token = secrets.token_hex(32)
        user.password_reset_token_hash = hash_reset_token(token)
        user.password_reset_expires_at = datetime.utcnow() + timedelta(minutes=self.reset_expire_minutes)
        db.commit()

        reset_url = build_reset_url(token)
        message = (
            f"Forgot your password? Submit a PATCH request with your new password and passwordConfirm to: {reset_url}\n"
            "If you didn't forget your password, please ignore this email!"
        )
        sent = get_email_service().send(
            user.email,
            f"Your password reset token (valid for {self.reset_expire_minutes} min)",
            message,
        )
        if not sent:
            user.password_reset_token_hash = None
            user.password_reset_expires_at = None
            db.commit()
            raise AppError("There was an error sending the email. Try again later!", 500)

        logger.info("Password reset token sent to user %s", user.id)

    def reset_password(self, db: Session, token: str, password: str | None, password_confirm: str | None) -> User:
        """Consume a reset token and set a new password."""
        user = (
            db.query(User)
            .filter(
                User.password_reset_token_hash == hash_reset_token(token),
                User.password_reset_expires_at > datetime.utcnow(),
                User.is_active.is_(True),
            )
            .first()
        )
        if not user:
            raise AppError("Token is invalid or has expired", 400)

        ensure_valid({"password": password, "password_confirm": password_confirm}, PASSWORD_RULES)
        self.set_password(user, password)  # type: ignore[arg-type]
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        db.commit()
        logger.info("Password reset completed for user %s", user.id)
        return user

    def update_password(
        self,
        db: Session,
        user: User,
        password_current: str | None,
        password: str | None,
        password_confirm: str | None,
    ) -> User:
        """Change the password of a logged-in user after re-checking the current one."""
        if not password_current or not self.verify_password(password_current, user.password_hash):
            raise AppError("Your current password is wrong.", 401)

        ensure_valid({"password": password, "password_confirm": password_confirm}, PASSWORD_RULES)
        self.set_password(user, password)  # type: ignore[arg-type]
        db.commit()
        logger.info("Password changed for user %s", user.id)
        return user


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
