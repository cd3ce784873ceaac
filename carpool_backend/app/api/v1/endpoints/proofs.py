"""
Carpool Proof API Endpoints.

Live certification by drivers and passengers, and operator actions on the
registry dispatch.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Body, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.core.config import settings
from carpool_backend.app.core.dependencies import get_proof_service, get_proof_dispatcher
from carpool_backend.app.core.exceptions import AppException, ResourceNotFoundError
from carpool_backend.app.db.session import get_db
from carpool_backend.app.domain.proofs.proof_dispatcher import ProofDispatcher
from carpool_backend.app.domain.proofs.proof_service import ProofService, resolve_actor
from carpool_backend.app.repositories.ride_agreement_repository import RideAgreementRepository
from carpool_backend.app.schemas.proof import (
    ProofCreate, ProofUpdate, ProofResponse, DispatchRequest, DispatchResponse
)
from carpool_backend.app.schemas.audit import AuditTrailResponse, AuditLogResponse
from carpool_backend.app.services.audit import get_audit_trail, get_proof_audit_trail

router = APIRouter(prefix="/proofs", tags=["Carpool Proofs"])
admin_router = APIRouter(prefix="/admin/proofs", tags=["Admin - Carpool Proofs"])


@router.post("", response_model=ProofResponse, status_code=status.HTTP_201_CREATED)
async def create_proof(
    payload: ProofCreate = Body(...),
    service: ProofService = Depends(get_proof_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Start the certification of a ride.
    
    The author's role is derived from the ride agreement: the passenger if
    the author is its passenger, otherwise the driver.
    """
    ride_agreement = await RideAgreementRepository(db).find_by_id(payload.ride_agreement_id)
    if not ride_agreement:
        raise ResourceNotFoundError("Ride agreement", payload.ride_agreement_id)
    
    if payload.author_id not in (ride_agreement.driver_id, ride_agreement.passenger_id):
        raise AppException(
            message="The author is not part of this ride agreement",
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"author_id": payload.author_id}
        )
    
    proof = await service.create_proof(
        ride_agreement=ride_agreement,
        longitude=payload.longitude,
        latitude=payload.latitude,
        proof_type=payload.type,
        actor=resolve_actor(payload.author_id, ride_agreement.passenger_id),
        driver=ride_agreement.driver,
        passenger=ride_agreement.passenger,
    )
    return ProofResponse.from_proof(proof)


@router.put("/{proof_id}", response_model=ProofResponse)
async def update_proof(
    proof_id: int = Path(..., description="Proof ID"),
    payload: ProofUpdate = Body(...),
    service: ProofService = Depends(get_proof_service)
):
    """
    Certify the next leg (pickup or dropoff) of the author.
    """
    proof = await service.get_proof(proof_id)
    if payload.author_id not in (proof.driver_id, proof.passenger_id):
        raise AppException(
            message="The author is not part of this proof",
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"author_id": payload.author_id}
        )
    
    proof = await service.update_proof(
        proof_id=proof_id,
        longitude=payload.longitude,
        latitude=payload.latitude,
        actor=resolve_actor(payload.author_id, proof.passenger_id),
        tolerance_meters=payload.tolerance_meters or settings.proof_tolerance_meters,
    )
    return ProofResponse.from_proof(proof)


@router.get("/{proof_id}", response_model=ProofResponse)
async def get_proof(
    proof_id: int = Path(..., description="Proof ID"),
    service: ProofService = Depends(get_proof_service)
):
    return ProofResponse.from_proof(await service.get_proof(proof_id))


@admin_router.post("/dispatch", response_model=DispatchResponse)
async def dispatch_proofs(
    payload: Optional[DispatchRequest] = Body(None),
    dispatcher: ProofDispatcher = Depends(get_proof_dispatcher)
):
    """
    Generate the missing proofs of the period and send pending proofs to the registry.
    """
    payload = payload or DispatchRequest()
    report = await dispatcher.dispatch(payload.from_date, payload.to_date)
    return DispatchResponse(
        from_date=report.from_date,
        to_date=report.to_date,
        sent=report.sent,
        errors=report.errors,
        total=report.total,
    )


@admin_router.post("/{proof_id}/reset", response_model=ProofResponse)
async def reset_proof(
    proof_id: int = Path(..., description="Proof ID"),
    service: ProofService = Depends(get_proof_service)
):
    """
    Put a proof rejected by the registry back in the dispatch queue.
    """
    return ProofResponse.from_proof(await service.reset_proof(proof_id))


@admin_router.get("/audit", response_model=AuditTrailResponse)
async def list_audit_trail(
    action: Optional[str] = Query(None, description="Filter by action, e.g. PROOF_ERROR"),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """
    Recent proof lifecycle events, most recent first.
    """
    logs = await get_audit_trail(db=db, action=action, limit=limit)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )


@admin_router.get("/{proof_id}/audit", response_model=AuditTrailResponse)
async def get_proof_audit_history(
    proof_id: int = Path(..., description="Proof ID"),
    limit: int = Query(100, ge=1, le=500),
    service: ProofService = Depends(get_proof_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Complete history of a proof, oldest first.
    """
    await service.get_proof(proof_id)
    logs = await get_proof_audit_trail(db=db, proof_id=proof_id, limit=limit)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
