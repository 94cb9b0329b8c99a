"""Pydantic schemas for review endpoints."""

from datetime import datetime

from app.schemas.common import APIModel
from app.schemas.user import UserSummary


class ReviewWrite(APIModel):
    review: str | None = None
    rating: float | None = None
    tour: int | None = None


class ReviewSummary(APIModel):
    """Review as embedded in a tour."""

    id: int
    review: str
    rating: float
    user: UserSummary
    created_at: datetime


class ReviewResponse(ReviewSummary):
    tour_id: int
    version: int
