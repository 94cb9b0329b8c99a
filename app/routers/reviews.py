"""Review API endpoints, top-level and nested under a tour."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import restrict_to
from app.models.user import User
from app.schemas.common import dump
from app.schemas.review import ReviewResponse, ReviewWrite
from app.services.review import get_review_service
from app.utils.api_features import parse_query_string

router = APIRouter(prefix="/api/v1", tags=["Reviews"])

reviewers = restrict_to("user")
review_editors = restrict_to("user", "admin")


def _list(request: Request, db: Session, tour_id: int | None = None) -> dict:
    params = parse_query_string(request.query_params.multi_items())
    reviews = get_review_service().list_reviews(db, params, tour_id=tour_id)
    return {"status": "success", "results": len(reviews), "data": {"reviews": reviews}}


def _create(body: ReviewWrite, user: User, db: Session, tour_id: int | None = None) -> dict:
    review = get_review_service().create_review(db, user, body.model_dump(exclude_unset=True), tour_id=tour_id)
    return {"status": "success", "data": {"review": dump(ReviewResponse, review)}}


@router.get("/reviews/")
def list_reviews(request: Request, db: Session = Depends(get_db)) -> dict:
    """List all reviews."""
    return _list(request, db)


@router.post("/reviews/", status_code=201)
def create_review(body: ReviewWrite, user: User = Depends(reviewers), db: Session = Depends(get_db)) -> dict:
    """Review a tour given in the body."""
    return _create(body, user, db)


@router.get("/tours/{tour_id}/reviews")
def list_tour_reviews(tour_id: int, request: Request, db: Session = Depends(get_db)) -> dict:
    """List reviews of one tour."""
    return _list(request, db, tour_id=tour_id)


@router.post("/tours/{tour_id}/reviews", status_code=201)
def create_tour_review(
    tour_id: int,
    body: ReviewWrite,
    user: User = Depends(reviewers),
    db: Session = Depends(get_db),
) -> dict:
    """Review the tour in the path."""
    return _create(body, user, db, tour_id=tour_id)


@router.get("/reviews/{review_id}")
def get_review(review_id: int, db: Session = Depends(get_db)) -> dict:
    """Get a single review."""
    review = get_review_service().get_review(db, review_id)
    return {"status": "success", "data": {"review": dump(ReviewResponse, review)}}


@router.patch("/reviews/{review_id}")
def update_review(
    review_id: int,
    body: ReviewWrite,
    user: User = Depends(review_editors),
    db: Session = Depends(get_db),
) -> dict:
    """Edit a review. Authors may edit their own, admins any."""
    review = get_review_service().update_review(db, review_id, user, body.model_dump(exclude_unset=True))
    return {"status": "success", "data": {"review": dump(ReviewResponse, review)}}


@router.delete("/reviews/{review_id}", status_code=204)
def delete_review(review_id: int, user: User = Depends(review_editors), db: Session = Depends(get_db)) -> Response:
    """Delete a review."""
    get_review_service().delete_review(db, review_id, user)
    return Response(status_code=204)
