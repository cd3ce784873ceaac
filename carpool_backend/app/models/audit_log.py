"""
Audit Log Database Model.

Immutable trail of proof lifecycle events, kept for registry compliance.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from carpool_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking proof lifecycle events.
    
    Events logged:
    - PROOF_CREATED / PROOF_CERTIFIED
    - PROOFS_GENERATED
    - PROOF_SENT / PROOF_ERROR
    - PROOF_RESET
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for scheduled jobs)
    actor_id = Column(Integer, index=True, nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Proof concerned by the action, if any
    proof_id = Column(Integer, index=True, nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, proof={self.proof_id})>"
