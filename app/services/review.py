"""Review service."""

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, selectinload

from app.errors import AppError, not_found
from app.models.review import Review
from app.models.tour import Tour
from app.models.user import User
from app.schemas.review import ReviewResponse
from app.services.tour import get_tour_service
from app.utils.api_features import APIFeatures
from app.validation import REVIEW_RULES, ensure_valid

logger = logging.getLogger("tourbook")

DEFAULT_RATINGS_AVERAGE = 4.5


class ReviewService:
    """Handles reviews and keeps each tour's rating summary in step with them."""

    def reviews(self, db: Session) -> Query:
        return db.query(Review).options(selectinload(Review.user))

    def list_reviews(self, db: Session, params: Mapping[str, Any], tour_id: int | None = None) -> list[dict[str, Any]]:
        query = self.reviews(db)
        if tour_id is not None:
            query = query.filter(Review.tour_id == tour_id)
        features = APIFeatures(query, params, Review, ReviewResponse).filter().sort().limit_fields().paginate()
        return features.all()

    def get_review(self, db: Session, review_id: int) -> Review:
        review = self.reviews(db).filter(Review.id == review_id).first()
        if not review:
            raise not_found("review")
        return review

    def _check_owner(self, review: Review, user: User) -> None:
        if review.user_id != user.id and user.role != "admin":
            raise AppError("You can only change your own reviews", 403)

    def calc_average_ratings(self, db: Session, tour_id: int) -> None:
        """Recompute a tour's ratings average and count from its reviews."""
        count, average = (
            db.query(func.count(Review.id), func.avg(Review.rating)).filter(Review.tour_id == tour_id).one()
        )
        tour = db.get(Tour, tour_id)
        if tour is None:
            return
        tour.ratings_quantity = count
        tour.ratings_average = round(average, 1) if count else DEFAULT_RATINGS_AVERAGE
        db.commit()

    def create_review(self, db: Session, user: User, data: Mapping[str, Any], tour_id: int | None = None) -> Review:
        tour_id = tour_id if tour_id is not None else data.get("tour")
        if tour_id is None:
            raise AppError("Review must belong to a tour", 400)
        get_tour_service().get_tour(db, tour_id)

        ensure_valid(data, REVIEW_RULES)
        if db.query(Review).filter(Review.tour_id == tour_id, Review.user_id == user.id).first():
            raise AppError("You have already reviewed this tour", 400)

        review = Review(review=data["review"].strip(), rating=data["rating"], tour_id=tour_id, user_id=user.id)
        db.add(review)
        db.commit()
        self.calc_average_ratings(db, tour_id)
        logger.info("Review %s on tour %s by user %s", review.id, tour_id, user.id)
        return self.get_review(db, review.id)

    def update_review(self, db: Session, review_id: int, user: User, data: Mapping[str, Any]) -> Review:
        review = self.get_review(db, review_id)
        self._check_owner(review, user)
        changes = {key: data[key] for key in ("review", "rating") if key in data}
        ensure_valid({"review": review.review, "rating": review.rating, **changes}, REVIEW_RULES)
        for field, value in changes.items():
            setattr(review, field, value.strip() if isinstance(value, str) else value)
        db.commit()
        self.calc_average_ratings(db, review.tour_id)
        db.refresh(review)
        return review

    def delete_review(self, db: Session, review_id: int, user: User) -> None:
        review = self.get_review(db, review_id)
        self._check_owner(review, user)
        tour_id = review.tour_id
        db.delete(review)
        db.commit()
        self.calc_average_ratings(db, tour_id)


_review_service: ReviewService | None = None


def get_review_service() -> ReviewService:
    """Get singleton review service instance."""
    global _review_service
    if _review_service is None:
        _review_service = ReviewService()
    return _review_service
