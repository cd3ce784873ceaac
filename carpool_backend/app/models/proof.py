"""
Carpool Proof database model.

A proof evidences that a driver and a passenger shared a ride on a given
day. It holds four certification slots (pickup/dropoff for each actor),
each a timestamp plus the address resolved from the certifying GPS fix.
At most one proof exists per ride agreement and calendar day.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from carpool_backend.app.db.session import Base
from carpool_backend.app.models.proof_enums import ProofStatus, Actor, Leg


class Proof(Base):
    __tablename__ = "carpool_proofs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Relations
    ride_agreement_id = Column(Integer, ForeignKey('ride_agreements.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    passenger_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    type = Column(String(20), nullable=False)
    # Unset until both actors have certified their dropoff (or set by batch generation)
    status = Column(Enum(ProofStatus), nullable=True, index=True)
    
    # Calendar day of the ride, deduplication key with the ride agreement
    proof_date = Column(Date, nullable=False)
    
    # Driver path, copied at creation
    origin_driver_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    destination_driver_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    start_driver_date = Column(DateTime, nullable=True)
    end_driver_date = Column(DateTime, nullable=True)
    
    # Certification slots
    pickup_driver_date = Column(DateTime, nullable=True)
    pickup_driver_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    dropoff_driver_date = Column(DateTime, nullable=True)
    dropoff_driver_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    pickup_passenger_date = Column(DateTime, nullable=True)
    pickup_passenger_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    dropoff_passenger_date = Column(DateTime, nullable=True)
    dropoff_passenger_address_id = Column(Integer, ForeignKey('addresses.id'), nullable=True)
    
    direction_id = Column(Integer, ForeignKey('directions.id'), nullable=True)

    # Bumped on every update; a write based on a stale read fails
    version_id = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    ride_agreement = relationship("RideAgreement", lazy="selectin")
    direction = relationship("Direction", lazy="selectin")
    origin_driver_address = relationship("Address", foreign_keys=[origin_driver_address_id], lazy="selectin")
    destination_driver_address = relationship("Address", foreign_keys=[destination_driver_address_id], lazy="selectin")
    pickup_driver_address = relationship("Address", foreign_keys=[pickup_driver_address_id], lazy="selectin")
    dropoff_driver_address = relationship("Address", foreign_keys=[dropoff_driver_address_id], lazy="selectin")
    pickup_passenger_address = relationship("Address", foreign_keys=[pickup_passenger_address_id], lazy="selectin")
    dropoff_passenger_address = relationship("Address", foreign_keys=[dropoff_passenger_address_id], lazy="selectin")
    
    __table_args__ = (
        UniqueConstraint('ride_agreement_id', 'proof_date', name='uq_carpool_proofs_ride_date'),
    )
    __mapper_args__ = {"version_id_col": version_id}
    
    def slot_address(self, actor: Actor, leg: Leg):
        return getattr(self, f"{leg.value}_{actor.value}_address")
    
    def slot_date(self, actor: Actor, leg: Leg):
        return getattr(self, f"{leg.value}_{actor.value}_date")
    
    def is_certified(self, actor: Actor, leg: Leg) -> bool:
        return self.slot_address(actor, leg) is not None
    
    def certify(self, actor: Actor, leg: Leg, when, address) -> None:
        """Fill one slot and append its point to the direction trace."""
        setattr(self, f"{leg.value}_{actor.value}_date", when)
        setattr(self, f"{leg.value}_{actor.value}_address", address)
        if self.direction is not None:
            self.direction.add_point(address.to_point())
    
    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<Proof(id={self.id}, ride_agreement_id={self.ride_agreement_id}, date={self.proof_date}, status='{status}')>"
