"""
Address database model.

Addresses are owned by exactly one row (a waypoint or a proof slot) and are
never shared: proofs always store their own copy.
"""

from sqlalchemy import Column, Integer, String, Float
from carpool_backend.app.db.session import Base


class Address(Base):
    __tablename__ = "addresses"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    house_number = Column(String(20), nullable=True)
    street = Column(String(255), nullable=True)
    postal_code = Column(String(20), nullable=True)
    locality = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)
    
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    
    def clone(self) -> "Address":
        """Return an unsaved value copy of this address."""
        return Address(
            house_number=self.house_number,
            street=self.street,
            postal_code=self.postal_code,
            locality=self.locality,
            country=self.country,
            latitude=self.latitude,
            longitude=self.longitude,
        )
    
    def to_point(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "locality": self.locality,
        }
    
    def __repr__(self):
        return f"<Address(id={self.id}, lat={self.latitude}, lng={self.longitude}, locality='{self.locality}')>"
