# pyright: reportMissingTypeStubs=false
"""
Clinic Scheduling API

A FastAPI application exposing the clinic's appointment scheduling and
resource-conflict engine.

Features:
- Single, online and recurring appointment booking without double-booking
- Appointment lifecycle (check-in, start, complete, cancel, no-show)
- Availability checks and slot generation per doctor, room and equipment
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import appointments, availability
from core.config import AUTO_CREATE_TABLES, RESOURCE_LOCK_TIMEOUT_SECONDS
from core.constants import CORS_ORIGINS
from core.database import create_tables
from core.exceptions import SchedulingError
from services.resource_lock import ResourceLockManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Scheduling API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Scheduling API")

    if AUTO_CREATE_TABLES:
        create_tables()
        logger.info("✅ Database tables created")

    # One lock manager per process; every booking request shares it
    app.state.lock_manager = ResourceLockManager(timeout_seconds=RESOURCE_LOCK_TIMEOUT_SECONDS)
    logger.info("✅ Resource lock manager ready")

    yield

    app.state.lock_manager = None
    logger.info("🛑 Shutting down Clinic Scheduling API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Scheduling",
    description="Appointment scheduling and resource-conflict engine for clinics",
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
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    appointments.router,
    prefix="/api",
    tags=["appointments"],
    responses={
        400: {"description": "Validation error"},
        404: {"description": "Appointment not found"},
        409: {"description": "Conflict or invalid state"},
        503: {"description": "Storage or scheduling lock unavailable"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    availability.router,
    prefix="/api",
    tags=["availability"],
    responses={
        400: {"description": "Validation error"},
        503: {"description": "Storage unavailable"},
        500: {"description": "Internal server error"},
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
        "message": "Clinic Scheduling API",
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
@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError):
    """Map scheduling errors to their HTTP status with a structured body."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


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
