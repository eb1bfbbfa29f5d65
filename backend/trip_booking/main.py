"""
Trip Booking API - Main Application Entry Point

Seat sales for trips with:
- Row-locked, idempotent seat reservation (no overselling under contention)
- Payment webhooks applied exactly once through an event ledger
- Refund policy with a per-trip cancellation cutoff
- Background sweeper that reclaims unpaid holds
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from trip_booking.core.config import get_settings
from trip_booking.core.exceptions import BookingError
from trip_booking.core.logging import setup_logging, get_logger
from trip_booking.core.metrics import metrics_endpoint
from trip_booking.api.router import api_router
from trip_booking.api.middleware import RequestLoggingMiddleware
from trip_booking.db.session import AsyncSessionLocal, engine
from trip_booking.jobs.expiry_sweeper import ExpirySweeper

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    sweeper: Optional[ExpirySweeper] = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper = ExpirySweeper(
            AsyncSessionLocal,
            interval_seconds=settings.EXPIRY_SWEEP_INTERVAL_SECONDS,
        )
        sweeper.start()
    else:
        logger.warning("expiry_sweeper_disabled")
    app.state.expiry_sweeper = sweeper

    yield

    # Cleanup: let the in-flight tick finish before closing the pool
    if sweeper is not None:
        await sweeper.stop()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Trip seat booking API with concurrency-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    logger.info(
        "booking_rule_violation",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    sweeper = getattr(app.state, "expiry_sweeper", None)
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "expiry_sweeper": "running" if sweeper is not None and sweeper.running else "stopped",
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
