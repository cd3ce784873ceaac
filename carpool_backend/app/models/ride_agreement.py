"""
Ride agreement database models.

A ride agreement ("ask") is an accepted pairing between a driver and a
passenger for a given criteria. Matching and negotiation happen upstream;
the proof core only reads these rows.
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Date, Time, Enum, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from carpool_backend.app.db.session import Base
from carpool_backend.app.models.proof_enums import Frequency, RideAgreementStatus


class Criteria(Base):
    """
    Scheduling contract of a ride.
    
    Punctual rides use from_date + from_time. Regular rides use the weekly
    grid (one enable flag and one departure time per weekday) between
    from_date and to_date.
    """
    __tablename__ = "criteria"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    frequency = Column(Enum(Frequency), nullable=False)
    
    from_date = Column(Date, nullable=False)
    from_time = Column(Time, nullable=True)
    to_date = Column(Date, nullable=True)
    
    mon_check = Column(Boolean, default=False, nullable=False)
    mon_time = Column(Time, nullable=True)
    tue_check = Column(Boolean, default=False, nullable=False)
    tue_time = Column(Time, nullable=True)
    wed_check = Column(Boolean, default=False, nullable=False)
    wed_time = Column(Time, nullable=True)
    thu_check = Column(Boolean, default=False, nullable=False)
    thu_time = Column(Time, nullable=True)
    fri_check = Column(Boolean, default=False, nullable=False)
    fri_time = Column(Time, nullable=True)
    sat_check = Column(Boolean, default=False, nullable=False)
    sat_time = Column(Time, nullable=True)
    sun_check = Column(Boolean, default=False, nullable=False)
    sun_time = Column(Time, nullable=True)
    
    def __repr__(self):
        return f"<Criteria(id={self.id}, frequency='{self.frequency.value}', from_date={self.from_date})>"


class RideRequest(Base):
    """Passenger's originating request. Dynamic requests are live rides."""
    __tablename__ = "ride_requests"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    dynamic = Column(Boolean, default=False, nullable=False)
    finished = Column(Boolean, default=False, nullable=False)
    
    def __repr__(self):
        return f"<RideRequest(id={self.id}, dynamic={self.dynamic}, finished={self.finished})>"


class RideAgreement(Base):
    __tablename__ = "ride_agreements"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    passenger_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    criteria_id = Column(Integer, ForeignKey('criteria.id'), nullable=False)
    ride_request_id = Column(Integer, ForeignKey('ride_requests.id'), nullable=True)
    
    status = Column(Enum(RideAgreementStatus), default=RideAgreementStatus.PENDING, nullable=False, index=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    criteria = relationship("Criteria", lazy="selectin")
    ride_request = relationship("RideRequest", lazy="selectin")
    driver = relationship("User", foreign_keys=[driver_id], lazy="selectin")
    passenger = relationship("User", foreign_keys=[passenger_id], lazy="selectin")
    
    def __repr__(self):
        return f"<RideAgreement(id={self.id}, driver={self.driver_id}, passenger={self.passenger_id}, status='{self.status.value}')>"
