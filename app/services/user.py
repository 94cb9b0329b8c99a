"""User account management."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Query, Session

from app.errors import AppError, not_found
from app.models.review import Review
from app.models.user import User
from app.schemas.user import UserResponse
from app.services.auth import get_auth_service, normalize_email
from app.services.review import get_review_service
from app.utils.api_features import APIFeatures
from app.utils.helpers import filter_obj
from app.validation import PASSWORD_RULES, USER_RULES, ensure_valid

logger = logging.getLogger("tourbook")

SELF_EDITABLE_FIELDS = ("name", "email")
ADMIN_EDITABLE_FIELDS = ("name", "email", "photo", "role")


class UserService:
    """Reads and writes user records. Deactivated users are invisible to every read."""

    def active_users(self, db: Session) -> Query:
        return db.query(User).filter(User.is_active.is_(True))

    def list_users(self, db: Session, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        features = APIFeatures(self.active_users(db), params, User, UserResponse).filter().sort().limit_fields().paginate()
        return features.all()

    def get_user(self, db: Session, user_id: int) -> User:
        user = self.active_users(db).filter(User.id == user_id).first()
        if not user:
            raise not_found("user")
        return user

    def _ensure_email_free(self, db: Session, email: str | None, user_id: int | None = None) -> None:
        query = db.query(User).filter(User.email == email)
        if user_id is not None:
            query = query.filter(User.id != user_id)
        if email and query.first():
            raise AppError("Email already registered", 400)

    def _apply(self, db: Session, user: User, changes: dict[str, Any]) -> User:
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        merged = {"name": user.name, "email": user.email, "role": user.role, **changes}
        ensure_valid(merged, USER_RULES)
        self._ensure_email_free(db, changes.get("email"), user.id)

        for field, value in changes.items():
            if value is None and not User.__table__.columns[field].nullable:
                continue
            setattr(user, field, value.strip() if isinstance(value, str) else value)
        db.commit()
        db.refresh(user)
        return user

    def create_user(self, db: Session, data: Mapping[str, Any]) -> User:
        """Admin account creation. Unlike sign-up, the role may be chosen."""
        values = dict(data)
        values["email"] = normalize_email(values.get("email"))
        values["role"] = values.get("role") or "user"
        ensure_valid(values, USER_RULES + PASSWORD_RULES)
        self._ensure_email_free(db, values["email"])

        user = User(name=values["name"].strip(), email=values["email"], role=values["role"], is_active=True)
        user.password_hash = get_auth_service().hash_password(values["password"])
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Account %s created with role %s", user.id, user.role)
        return user

    def update_user(self, db: Session, user_id: int, data: Mapping[str, Any]) -> User:
        """Admin update. Passwords cannot be changed this way."""
        user = self.get_user(db, user_id)
        return self._apply(db, user, filter_obj(data, *ADMIN_EDITABLE_FIELDS))

    def delete_user(self, db: Session, user_id: int) -> None:
        """Delete permanently. The user's reviews go with it and the tours they rated are re-scored."""
        user = self.get_user(db, user_id)
        reviewed_tours = [
            tour_id for (tour_id,) in db.query(Review.tour_id).filter(Review.user_id == user_id).distinct()
        ]
        db.delete(user)
        db.commit()
        review_service = get_review_service()
        for tour_id in reviewed_tours:
            review_service.calc_average_ratings(db, tour_id)
        logger.info("Account %s deleted", user_id)

    def update_me(self, db: Session, user: User, data: Mapping[str, Any]) -> User:
        """Let users edit their own name and email."""
        if data.get("password") is not None or data.get("password_confirm") is not None:
            raise AppError("This route is not for password updates. Please use /update-my-password.", 400)
        return self._apply(db, user, filter_obj(data, *SELF_EDITABLE_FIELDS))

    def deactivate(self, db: Session, user: User) -> None:
        user.is_active = False
        db.commit()
        logger.info("Account %s deactivated", user.id)


_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get singleton user service instance."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
