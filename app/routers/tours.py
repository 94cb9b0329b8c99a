"""Tour API endpoints."""

from fastapi import APIRouter, Depends, Path, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, restrict_to
from app.models.user import User
from app.schemas.common import dump
from app.schemas.tour import TourDetailResponse, TourResponse, TourWrite
from app.services.tour import TOP_TOURS_PRESET, get_tour_service
from app.utils.api_features import parse_query_string

router = APIRouter(prefix="/api/v1/tours", tags=["Tours"])

tour_editors = restrict_to("admin", "lead-guide")


@router.get("/top-5-cheap")
def top_tours(request: Request, db: Session = Depends(get_db)) -> dict:
    """Five best-rated tours, cheapest first among equals."""
    params = {**parse_query_string(request.query_params.multi_items()), **TOP_TOURS_PRESET}
    tours = get_tour_service().list_tours(db, params)
    return {"status": "success", "results": len(tours), "data": {"tours": tours}}


@router.get("/stats")
def tour_stats(db: Session = Depends(get_db)) -> dict:
    """Rating and price statistics per difficulty."""
    stats = get_tour_service().get_tour_stats(db)
    return {"status": "success", "data": {"stats": stats}}


@router.get("/monthly-plan/{year}")
def monthly_plan(year: int = Path(ge=1, le=9998), db: Session = Depends(get_db)) -> dict:
    """Number of tour departures per month of a year."""
    plan = get_tour_service().get_monthly_plan(db, year)
    return {"status": "success", "data": {"plan": plan}}


@router.get("/")
def list_tours(request: Request, _: User = Depends(get_current_user), db: Session = Depends(get_db)) -> dict:
    """List tours with query-string filtering, sorting, field limiting and pagination."""
    tours = get_tour_service().list_tours(db, parse_query_string(request.query_params.multi_items()))
    return {"status": "success", "results": len(tours), "data": {"tours": tours}}


@router.post("/", status_code=201)
def create_tour(body: TourWrite, _: User = Depends(tour_editors), db: Session = Depends(get_db)) -> dict:
    """Create a tour."""
    tour = get_tour_service().create_tour(db, body.model_dump(exclude_unset=True))
    return {"status": "success", "data": {"tour": dump(TourResponse, tour)}}


@router.get("/{tour_id}")
def get_tour(tour_id: int, db: Session = Depends(get_db)) -> dict:
    """Get a tour with its guides and reviews."""
    tour = get_tour_service().get_tour(db, tour_id, with_reviews=True)
    return {"status": "success", "data": {"tour": dump(TourDetailResponse, tour)}}


@router.patch("/{tour_id}")
def update_tour(tour_id: int, body: TourWrite, _: User = Depends(tour_editors), db: Session = Depends(get_db)) -> dict:
    """Update a tour."""
    tour = get_tour_service().update_tour(db, tour_id, body.model_dump(exclude_unset=True))
    return {"status": "success", "data": {"tour": dump(TourResponse, tour)}}


@router.delete("/{tour_id}", status_code=204)
def delete_tour(tour_id: int, _: User = Depends(tour_editors), db: Session = Depends(get_db)) -> Response:
    """Delete a tour and its reviews."""
    get_tour_service().delete_tour(db, tour_id)
    return Response(status_code=204)
