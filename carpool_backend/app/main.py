"""
FastAPI Application Entry Point.

This is the main application file for the Carpool Proof Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends
from fastapi.exceptions import RequestValidationError
from carpool_backend.app.core.config import settings
from carpool_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from carpool_backend.app.core.redis_client import get_redis, ping_redis, close_redis
from carpool_backend.app.api.v1.router import router as api_v1_router
from carpool_backend.app.db.session import engine, Base
from carpool_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from carpool_backend.app.models.user import User
from carpool_backend.app.models.address import Address
from carpool_backend.app.models.ride_agreement import Criteria, RideRequest, RideAgreement
from carpool_backend.app.models.waypoint import Waypoint
from carpool_backend.app.models.direction import Direction
from carpool_backend.app.models.proof import Proof
from carpool_backend.app.models.audit_log import AuditLog


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    Configures logging and creates database tables on startup, releases
    the Redis pool and database connections on shutdown.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_redis()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Certification of shared rides and submission to the carpool registry",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(redis=Depends(get_redis)):
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis(redis) else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
