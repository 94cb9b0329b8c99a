"""User model."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.database import Base

ROLES = ("user", "guide", "lead-guide", "admin")


class User(Base):
    """Account holder. Password and reset token are only ever stored hashed."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    photo = Column(String(256), nullable=False, default="default.jpg")
    role = Column(String(32), nullable=False, default="user")
    password_hash = Column(String(256), nullable=False)
    password_changed_at = Column(DateTime, nullable=True)
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def changed_password_after(self, issued_at: int) -> bool:
        """True if the password changed after a token issued at `issued_at` (unix seconds, UTC)."""
        if self.password_changed_at is None:
            return False
        changed_at = self.password_changed_at.replace(tzinfo=timezone.utc).timestamp()
        return int(changed_at) > issued_at
