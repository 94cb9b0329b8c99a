"""API routers."""

from app.routers.reviews import router as reviews_router
from app.routers.tours import router as tours_router
from app.routers.users import router as users_router

__all__ = ["tours_router", "users_router", "reviews_router"]
