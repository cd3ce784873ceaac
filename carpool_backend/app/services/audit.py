"""
Audit logging service for tracking proof lifecycle events.

Provides centralized logging for registry compliance. Entries are added to
the caller's session; the caller's commit makes them durable together with
the proof change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from carpool_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    PROOF_CREATED = "PROOF_CREATED"
    PROOF_CERTIFIED = "PROOF_CERTIFIED"
    PROOFS_GENERATED = "PROOFS_GENERATED"
    PROOF_SENT = "PROOF_SENT"
    PROOF_ERROR = "PROOF_ERROR"
    PROOF_RESET = "PROOF_RESET"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    proof_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Add an event to the audit log.
    
    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action (None for jobs)
        proof_id: ID of the proof concerned
        metadata: Additional context as JSON
        
    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        proof_id=proof_id,
        meta_data=metadata
    )
    
    db.add(audit_log)
    await db.flush()
    
    return audit_log


async def get_proof_audit_trail(
    db: AsyncSession,
    proof_id: int,
    limit: int = 100
) -> list[AuditLog]:
    """
    Get the audit history of a proof, oldest first.
    """
    query = select(AuditLog).where(
        AuditLog.proof_id == proof_id
    ).order_by(AuditLog.timestamp, AuditLog.id).limit(limit)
    
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_audit_trail(
    db: AsyncSession,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    
    if action:
        query = query.where(AuditLog.action == action)
    
    query = query.limit(limit)
    
    result = await db.execute(query)
    return list(result.scalars().all())
