"""
Carpool proof schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List


class ProofCreate(BaseModel):
    """First fix of a live ride, sent by the driver or the passenger."""
    ride_agreement_id: int
    author_id: int
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    type: str = "realtime"


class ProofUpdate(BaseModel):
    """Next certification fix."""
    author_id: int
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    tolerance_meters: Optional[float] = Field(None, gt=0)


class AddressResponse(BaseModel):
    latitude: float
    longitude: float
    street: Optional[str] = None
    postal_code: Optional[str] = None
    locality: Optional[str] = None
    country: Optional[str] = None
    
    class Config:
        from_attributes = True


def _address(address) -> Optional[AddressResponse]:
    if address is None:
        return None
    return AddressResponse.model_validate(address)


class ProofResponse(BaseModel):
    id: int
    ride_agreement_id: int
    driver_id: int
    passenger_id: int
    type: str
    status: Optional[str]
    proof_date: date
    start_driver_date: Optional[datetime]
    end_driver_date: Optional[datetime]
    origin_driver_address: Optional[AddressResponse]
    destination_driver_address: Optional[AddressResponse]
    pickup_driver_date: Optional[datetime]
    pickup_driver_address: Optional[AddressResponse]
    dropoff_driver_date: Optional[datetime]
    dropoff_driver_address: Optional[AddressResponse]
    pickup_passenger_date: Optional[datetime]
    pickup_passenger_address: Optional[AddressResponse]
    dropoff_passenger_date: Optional[datetime]
    dropoff_passenger_address: Optional[AddressResponse]
    
    @classmethod
    def from_proof(cls, proof) -> "ProofResponse":
        return cls(
            id=proof.id,
            ride_agreement_id=proof.ride_agreement_id,
            driver_id=proof.driver_id,
            passenger_id=proof.passenger_id,
            type=proof.type,
            status=proof.status.value if proof.status else None,
            proof_date=proof.proof_date,
            start_driver_date=proof.start_driver_date,
            end_driver_date=proof.end_driver_date,
            origin_driver_address=_address(proof.origin_driver_address),
            destination_driver_address=_address(proof.destination_driver_address),
            pickup_driver_date=proof.pickup_driver_date,
            pickup_driver_address=_address(proof.pickup_driver_address),
            dropoff_driver_date=proof.dropoff_driver_date,
            dropoff_driver_address=_address(proof.dropoff_driver_address),
            pickup_passenger_date=proof.pickup_passenger_date,
            pickup_passenger_address=_address(proof.pickup_passenger_address),
            dropoff_passenger_date=proof.dropoff_passenger_date,
            dropoff_passenger_address=_address(proof.dropoff_passenger_address),
        )


class DispatchRequest(BaseModel):
    """Optional period; both bounds default to yesterday."""
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None


class DispatchResponse(BaseModel):
    from_date: datetime
    to_date: datetime
    sent: List[int]
    errors: List[int]
    total: int
