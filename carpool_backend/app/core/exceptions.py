"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("carpool.errors")


class AppException(Exception):
    """Base application exception."""
    
    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""
    
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class OrderingViolationError(AppException):
    """Raised when an actor certifies a dropoff before the counterpart's pickup."""
    
    def __init__(self, actor: str, counterpart: str):
        super().__init__(
            message=f"The {counterpart} has not sent its pickup certification yet",
            error_code="ERR_PROOF_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"actor": actor, "counterpart": counterpart}
        )


class AlreadyCertifiedError(AppException):
    """Raised when an actor certifies the same leg twice."""
    
    def __init__(self, actor: str, leg: str):
        super().__init__(
            message=f"The {actor} has already sent its {leg} certification",
            error_code="ERR_PROOF_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"actor": actor, "leg": leg}
        )


class ToleranceExceededError(AppException):
    """Raised when a certification is too far from the counterpart's matching fix."""
    
    def __init__(self, actor: str, leg: str, distance_meters: float, tolerance_meters: float):
        self.leg = leg
        self.distance_meters = distance_meters
        self.tolerance_meters = tolerance_meters
        super().__init__(
            message=(
                f"{actor.capitalize()} {leg} certification failed: "
                f"the counterpart certified address is too far"
            ),
            error_code="ERR_PROOF_003",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={
                "actor": actor,
                "leg": leg,
                "distance_meters": round(distance_meters, 2),
                "tolerance_meters": tolerance_meters,
            }
        )


class ProofValidationError(AppException):
    """Raised when a ride agreement cannot produce a proof (missing waypoints, bad schedule)."""
    
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PROOF_004",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class CertificationInProgressError(AppException):
    """Raised when the same actor is already certifying the same proof."""
    
    def __init__(self, proof_id: int, actor: str):
        super().__init__(
            message=f"A {actor} certification is already in progress for proof {proof_id}",
            error_code="ERR_PROOF_005",
            status_code=status.HTTP_409_CONFLICT,
            details={"proof_id": proof_id, "actor": actor}
        )


class DuplicateProofError(AppException):
    """Raised when a proof already exists for the ride agreement and day."""
    
    def __init__(self, ride_agreement_id: int, day):
        super().__init__(
            message=f"A proof already exists for ride agreement {ride_agreement_id} on {day}",
            error_code="ERR_PROOF_006",
            status_code=status.HTTP_409_CONFLICT,
            details={"ride_agreement_id": ride_agreement_id, "date": str(day)}
        )


class GeoResolutionError(AppException):
    """Raised when coordinates cannot be resolved to an address."""
    
    def __init__(self, latitude: float, longitude: float, reason: str = "unresolvable coordinates"):
        super().__init__(
            message=f"Could not resolve address for ({latitude}, {longitude}): {reason}",
            error_code="ERR_GEO_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"latitude": latitude, "longitude": longitude}
        )


class RegistrySubmissionError(AppException):
    """Raised when the registry rejects or cannot receive a proof."""
    
    def __init__(self, proof_id: int, reason: str):
        super().__init__(
            message=f"Registry submission failed for proof {proof_id}: {reason}",
            error_code="ERR_REGISTRY_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"proof_id": proof_id}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }
    
    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")
    
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
