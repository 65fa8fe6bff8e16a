"""
api/main.py -- FastAPI application entry point for the Dealer Stock API.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan opens the dealer and car stores and builds the SessionAuthority on
startup, and disposes the engines on shutdown.

Error handling: every handler below returns the same ErrorResponse envelope.
Domain errors (core/errors.py) carry their own status and code. Database
errors are reported as store_failure with the traceback logged server-side.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.cars import router as cars_router
from api.routes.v1.dealers import router as dealers_router
from auth.dependencies import require_identity
from auth.models import Identity
from auth.session import SessionAuthority
from auth.store import DealerStore
from core.config import get_settings
from core.errors import DealerAPIError, ResourceNotFound, StoreFailure
from inventory.store import CarStore

_VERSION = "1.0.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("dealerapi.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup, close them on shutdown.

    Both stores share DATABASE_URL. The SessionAuthority is built last because
    it needs the dealer store.
    """
    logger.info("Dealer Stock API starting up")
    app.state.dealer_store = DealerStore(settings.database_url)
    app.state.car_store = CarStore(settings.database_url)
    app.state.session_authority = SessionAuthority(app.state.dealer_store, settings)
    if not app.state.dealer_store.has_dealers():
        logger.warning("No dealers provisioned -- run `python main.py create-dealer NAME`")
    logger.info(
        "Auth initialized (strict_sessions=%s, sliding=%s, lifetime_days=%d)",
        settings.verify_session_token,
        settings.sliding_expiration,
        settings.session_lifetime_days,
    )

    yield

    app.state.car_store.close()
    app.state.dealer_store.close()
    logger.info("Dealer Stock API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Car Stock Management API",
    description="API for managing dealers, cars, and authentication.",
    version=_VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by auth-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(dealers_router, prefix="/api/v1", tags=["Dealers"])
app.include_router(cars_router, prefix="/api/v1", tags=["Cars"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


def _with_renewal(page: HTMLResponse, response: Response) -> HTMLResponse:
    """Copy any renewal cookie require_identity set on the injected response.

    FastAPI only merges the injected response's headers into return values it
    serializes itself, not into a Response returned directly.
    """
    for value in response.headers.getlist("set-cookie"):
        page.headers.append("set-cookie", value)
    return page


@app.get("/docs", include_in_schema=False)
async def docs(response: Response, identity: Identity = Depends(require_identity)) -> HTMLResponse:
    """Swagger UI -- requires authentication."""
    return _with_renewal(get_swagger_ui_html(openapi_url="/openapi.json", title="Car Stock Management API"), response)


@app.get("/redoc", include_in_schema=False)
async def redoc(response: Response, identity: Identity = Depends(require_identity)) -> HTMLResponse:
    """ReDoc UI -- requires authentication."""
    return _with_renewal(get_redoc_html(openapi_url="/openapi.json", title="Car Stock Management API"), response)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(DealerAPIError)
async def domain_error_handler(request: Request, exc: DealerAPIError) -> JSONResponse:
    """Render any core/errors.py failure with its own status and code."""
    if isinstance(exc, StoreFailure):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc.detail)
        return _error_response(exc.status_code, exc.code, StoreFailure.message)
    return _error_response(exc.status_code, exc.code, exc.message, exc.detail)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Persistence faults surface as store_failure. No retry; details stay in the log."""
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    failure = StoreFailure()
    return _error_response(failure.status_code, failure.code, failure.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured error for routing-level HTTP errors (unknown path, wrong method)."""
    if exc.status_code == 404:
        return _error_response(404, ResourceNotFound.code, ResourceNotFound.message)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability. No auth."""
    try:
        db_ok = request.app.state.dealer_store.ping() and request.app.state.car_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        db_ok = False
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
