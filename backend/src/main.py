# pyright: reportMissingTypeStubs=false
"""
Clinic CRM Scheduling API

A FastAPI application serving appointment availability, bookings and
derived patient lifecycle status for clinics.

Features:
- Slot generation reconciled against local bookings and Google Calendar busy times
- Booking creation with optional Google Calendar mirroring
- Patient status derived from booking outcomes
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import scheduling
from core.constants import CORS_ORIGINS
from services.calendar_sync_scheduler import start_calendar_sync_scheduler, stop_calendar_sync_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic CRM Scheduling API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic CRM Scheduling API")

    # Note: Database sessions are created fresh for each scheduler run
    try:
        await start_calendar_sync_scheduler()
        logger.info("✅ Calendar sync scheduler started")
    except Exception as e:
        logger.exception(f"❌ Failed to start calendar sync scheduler: {e}")

    yield

    try:
        await stop_calendar_sync_scheduler()
        logger.info("🛑 Calendar sync scheduler stopped")
    except Exception as e:
        logger.exception(f"❌ Error stopping calendar sync scheduler: {e}")

    logger.info("🛑 Shutting down Clinic CRM Scheduling API")


# Create FastAPI application
app = FastAPI(
    title="Clinic CRM Scheduling",
    description="Appointment availability and patient lifecycle status for clinics",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    scheduling.router,
    prefix="/api",
    tags=["scheduling"],
    responses={
        400: {"description": "Bad request"},
        404: {"description": "Resource not found"},
        409: {"description": "Slot no longer available"},
        500: {"description": "Internal server error"},
        503: {"description": "Booking store unavailable"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic CRM Scheduling API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )
