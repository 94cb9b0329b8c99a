"""Pydantic schemas for tour endpoints."""

from datetime import datetime
from typing import Any, Literal

from pydantic import field_validator

from app.schemas.common import APIModel
from app.schemas.review import ReviewSummary
from app.schemas.user import UserSummary


class Location(APIModel):
    type: Literal["Point"] = "Point"
    coordinates: list[float] = []
    address: str | None = None
    description: str | None = None
    day: int | None = None


class TourWrite(APIModel):
    name: str | None = None
    duration: int | None = None
    max_group_size: int | None = None
    difficulty: str | None = None
    ratings_average: float | None = None
    price: float | None = None
    price_discount: float | None = None
    summary: str | None = None
    description: str | None = None
    image_cover: str | None = None
    images: list[str] | None = None
    start_dates: list[datetime] | None = None
    start_location: Location | None = None
    locations: list[Location] | None = None
    secret_tour: bool | None = None
    guides: list[int] | None = None


class TourResponse(APIModel):
    id: int
    name: str
    slug: str
    duration: int
    duration_weeks: float
    max_group_size: int
    difficulty: str
    ratings_average: float
    ratings_quantity: int
    price: float
    price_discount: float | None
    summary: str
    description: str | None
    image_cover: str
    images: list[str]
    start_dates: list[datetime]
    start_location: Location | None
    locations: list[Location]
    guides: list[UserSummary]
    created_at: datetime
    version: int

    @field_validator("start_dates", mode="before")
    @classmethod
    def unwrap_start_dates(cls, value: Any) -> Any:
        return [getattr(item, "starts_at", item) for item in value or []]


class TourDetailResponse(TourResponse):
    reviews: list[ReviewSummary] = []
