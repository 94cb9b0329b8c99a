"""Tour service: CRUD, listing and reports."""

import logging
from collections import defaultdict
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, selectinload

from app.errors import AppError, not_found
from app.models.review import Review
from app.models.tour import Tour, TourStartDate
from app.models.user import User
from app.schemas.tour import TourResponse
from app.utils.api_features import APIFeatures
from app.utils.helpers import slugify
from app.validation import TOUR_RULES, ensure_valid

logger = logging.getLogger("tourbook")

TOP_TOURS_PRESET = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}
STATS_MIN_RATING = 4.5


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value


class TourService:
    """Handles tours. Secret tours never show up in reads or reports."""

    def visible_tours(self, db: Session) -> Query:
        return (
            db.query(Tour)
            .filter(Tour.secret_tour.is_(False))
            .options(selectinload(Tour.guides), selectinload(Tour.start_dates))
        )

    def list_tours(self, db: Session, params: Mapping[str, Any]) -> list[dict[str, Any]]:
        features = APIFeatures(self.visible_tours(db), params, Tour, TourResponse).filter().sort().limit_fields().paginate()
        return features.all()

    def get_tour(self, db: Session, tour_id: int, with_reviews: bool = False) -> Tour:
        query = self.visible_tours(db)
        if with_reviews:
            query = query.options(selectinload(Tour.reviews).selectinload(Review.user))
        tour = query.filter(Tour.id == tour_id).first()
        if not tour:
            raise not_found("tour")
        return tour

    def _resolve_guides(self, db: Session, guide_ids: list[int]) -> list[User]:
        guides = db.query(User).filter(User.id.in_(guide_ids), User.is_active.is_(True)).all() if guide_ids else []
        missing = set(guide_ids) - {g.id for g in guides}
        if missing:
            raise AppError(f"No user found with id {', '.join(str(i) for i in sorted(missing))}", 400)
        return guides

    def _assign(self, db: Session, tour: Tour, values: dict[str, Any]) -> None:
        if "guides" in values:
            tour.guides = self._resolve_guides(db, values.pop("guides") or [])
        if "start_dates" in values:
            dates = [_naive_utc(d) for d in values.pop("start_dates") or []]
            tour.start_dates = [TourStartDate(starts_at=d) for d in sorted(dates)]
        for field, value in values.items():
            if value is None and not Tour.__table__.columns[field].nullable:
                continue
            setattr(tour, field, value.strip() if isinstance(value, str) else value)
        tour.slug = slugify(tour.name)

    def create_tour(self, db: Session, data: Mapping[str, Any]) -> Tour:
        values = dict(data)
        ensure_valid(values, TOUR_RULES)
        tour = Tour()
        self._assign(db, tour, values)
        db.add(tour)
        db.commit()
        logger.info("Tour %s created (%s)", tour.id, tour.slug)
        return self.get_tour(db, tour.id) if not tour.secret_tour else tour

    def update_tour(self, db: Session, tour_id: int, data: Mapping[str, Any]) -> Tour:
        tour = self.get_tour(db, tour_id)
        values = dict(data)
        current = {column.key: getattr(tour, column.key) for column in Tour.__table__.columns}
        ensure_valid({**current, **values}, TOUR_RULES)
        self._assign(db, tour, values)
        db.commit()
        db.refresh(tour)
        return tour

    def delete_tour(self, db: Session, tour_id: int) -> None:
        tour = self.get_tour(db, tour_id)
        db.delete(tour)
        db.commit()
        logger.info("Tour %s deleted", tour_id)

    def get_tour_stats(self, db: Session) -> list[dict[str, Any]]:
        """Aggregate well-rated tours by difficulty, cheapest group first."""
        avg_price = func.avg(Tour.price)
        rows = (
            db.query(
                Tour.difficulty,
                func.count(Tour.id),
                func.sum(Tour.ratings_quantity),
                func.avg(Tour.ratings_average),
                avg_price,
                func.min(Tour.price),
                func.max(Tour.price),
            )
            .filter(Tour.secret_tour.is_(False), Tour.ratings_average >= STATS_MIN_RATING)
            .group_by(Tour.difficulty)
            .order_by(avg_price)
            .all()
        )
        return [
            {
                "difficulty": difficulty.upper(),
                "numTours": num_tours,
                "numRatings": int(num_ratings or 0),
                "avgRating": round(avg_rating, 2),
                "avgPrice": round(avg, 2),
                "minPrice": min_price,
                "maxPrice": max_price,
            }
            for difficulty, num_tours, num_ratings, avg_rating, avg, min_price, max_price in rows
        ]

    def get_monthly_plan(self, db: Session, year: int) -> list[dict[str, Any]]:
        """Tour departures in `year` grouped by month, busiest month first."""
        rows = (
            db.query(TourStartDate.starts_at, Tour.name)
            .join(Tour, Tour.id == TourStartDate.tour_id)
            .filter(
                Tour.secret_tour.is_(False),
                TourStartDate.starts_at >= datetime(year, 1, 1),
                TourStartDate.starts_at < datetime(year + 1, 1, 1),
            )
            .order_by(TourStartDate.starts_at)
            .all()
        )
        months: dict[int, list[str]] = defaultdict(list)
        for starts_at, name in rows:
            months[starts_at.month].append(name)

        plan = [{"month": month, "numTourStarts": len(names), "tours": names} for month, names in months.items()]
        plan.sort(key=lambda p: (-p["numTourStarts"], p["month"]))
        return plan[:12]


_tour_service: TourService | None = None


def get_tour_service() -> TourService:
    """Get singleton tour service instance."""
    global _tour_service
    if _tour_service is None:
        _tour_service = TourService()
    return _tour_service
