"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; keep tests off the real database and fast on hashing.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["SMTP_HOST"] = ""

from datetime import datetime, timedelta  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from app.models.review import Review  # noqa: E402, F401
from app.models.tour import Tour, TourStartDate  # noqa: E402, F401
from app.models.user import User  # noqa: E402
from app.services.auth import get_auth_service  # noqa: E402
from app.services.jwt import get_jwt_service  # noqa: E402
from app.services.tour import get_tour_service  # noqa: E402
from app.services.user import get_user_service  # noqa: E402

PASSWORD = "password123"


class RecordingEmailService:
    """Stands in for the mail sender and keeps every message it was asked to send."""

    def __init__(self) -> None:
        self.messages: list[dict[str, str]] = []
        self.fail = False

    def send(self, to_email: str, subject: str, body: str) -> bool:
        if self.fail:
            return False
        self.messages.append({"to": to_email, "subject": subject, "body": body})
        return True


def make_token(user_id: int) -> str:
    """Token issued an hour ago, so a password change made during the test is strictly newer."""
    return get_jwt_service().create_token(user_id, issued_at=datetime.utcnow() - timedelta(hours=1))


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def create_account(db: Session, name: str, email: str, role: str = "user") -> dict:
    """Create an account with the shared test password and return its id, email and a token."""
    user = get_user_service().create_user(
        db,
        {"name": name, "email": email, "password": PASSWORD, "password_confirm": PASSWORD, "role": role},
    )
    token = make_token(user.id)
    return {"user_id": user.id, "email": user.email, "token": token, "headers": auth_header(token)}


def build_tour_data(name: str = "The Forest Hiker", **overrides) -> dict:
    data = {
        "name": name,
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "image_cover": "tour-1-cover.jpg",
    }
    data.update(overrides)
    return data


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="client")
def client_fixture(db_session: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="outbox")
def outbox_fixture():
    """Replace outgoing mail with a recorder."""
    recorder = RecordingEmailService()
    with patch("app.services.auth.get_email_service", return_value=recorder):
        yield recorder


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session):
    """A regular user: dict with user_id, email, token and auth headers."""
    return create_account(db_session, "Test User", "test@example.com")


@pytest.fixture(name="other_user")
def other_user_fixture(db_session: Session):
    return create_account(db_session, "Other User", "other@example.com")


@pytest.fixture(name="admin_user")
def admin_user_fixture(db_session: Session):
    return create_account(db_session, "Admin User", "admin@example.com", role="admin")


@pytest.fixture(name="lead_guide")
def lead_guide_fixture(db_session: Session):
    return create_account(db_session, "Lead Guide", "lead@example.com", role="lead-guide")


@pytest.fixture(name="tour")
def tour_fixture(db_session: Session) -> Tour:
    """One public tour with two start dates."""
    return get_tour_service().create_tour(
        db_session,
        build_tour_data(start_dates=[datetime(2027, 4, 25, 9), datetime(2027, 7, 20, 9)]),
    )


@pytest.fixture(name="auth_service")
def auth_service_fixture():
    return get_auth_service()


@pytest.fixture(name="get_user")
def get_user_fixture(db_session: Session):
    """Reload a user straight from the database."""

    def _get(user_id: int) -> User | None:
        db_session.expire_all()
        return db_session.get(User, user_id)

    return _get


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session):
    """Factory for extra accounts: make_user(name, email, role="user")."""

    def _make(name: str, email: str, role: str = "user") -> dict:
        return create_account(db_session, name, email, role)

    return _make


@pytest.fixture(name="tour_data")
def tour_data_fixture():
    """Factory for valid tour payloads (snake_case keys): tour_data(name, **overrides)."""
    return build_tour_data
