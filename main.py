"""Tourbook - Tour Booking API."""

import logging
import time
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.config import get_settings
from app.errors import AppError
from app.rate_limit import limiter
from app.routers import reviews_router, tours_router, users_router

# Logging
logger = logging.getLogger("tourbook")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

settings = get_settings()
for warning in settings.validate():
    logger.warning(warning)

app = FastAPI(title="Tourbook", version="0.1.0")
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


# --- Request size limit middleware ---
class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    MAX_BODY_SIZE = settings.MAX_BODY_KB * 1024

    async def dispatch(self, request: Request, call_next) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.MAX_BODY_SIZE:
            return JSONResponse(status_code=413, content={"status": "fail", "message": "Request body too large"})
        return await call_next(request)


# --- Request logging middleware ---
class RequestLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = ("/api/v1/users/signup", "/api/v1/users/login", "/api/v1/users/forgot-password", "/api/v1/users/reset-password")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        path = request.url.path
        method = request.method
        audited = method in ("POST", "PATCH") and path.startswith(self.AUDIT_PATHS)
        if audited or not settings.is_production:
            logger.info(
                "%s%s %s -> %d (%.0fms) from %s",
                "AUDIT " if audited else "",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RequestLogMiddleware)

# API routers
app.include_router(tours_router)
app.include_router(users_router)
app.include_router(reviews_router)


# --- Error responses ---
def error_response(request: Request, exc: Exception, status_code: int, body: dict) -> JSONResponse:
    """Send an error envelope. Outside production the exception details and stack are attached."""
    if not settings.is_production:
        body = {
            **body,
            "error": {"type": type(exc).__name__, "detail": str(exc)},
            "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Operational errors carry their own status and a message safe for clients."""
    return error_response(request, exc, exc.status_code, exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework errors such as unknown routes or wrong methods."""
    if exc.status_code == 404:
        message = f"Can't find {request.url.path} on this server!"
    else:
        message = str(exc.detail)
    status = "fail" if 400 <= exc.status_code < 500 else "error"
    return error_response(request, exc, exc.status_code, {"status": status, "message": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters."""
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]), "message": err["msg"]}
        for err in exc.errors()
    ]
    message = "Invalid input data. " + " ".join(f"{e['field']}: {e['message']}." for e in errors)
    return error_response(request, exc, 400, {"status": "fail", "message": message, "errors": errors})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Unique constraint violations, e.g. a duplicate email or tour name."""
    logger.info("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return error_response(
        request, exc, 400, {"status": "fail", "message": "Duplicate field value. Please use another value!"}
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded."""
    return JSONResponse(
        status_code=429, content={"status": "fail", "message": "Too many requests. Please try again later."}
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Programming errors: logged in full, reported generically."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, exc, 500, {"status": "error", "message": "Something went very wrong!"})


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "tourbook", "version": "0.1.0"}
