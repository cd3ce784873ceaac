"""
Waypoint database model.

Ordered stops of a ride agreement, one path per role. The lowest position
is the origin of the path, the highest its destination.
"""

from sqlalchemy import Column, Integer, ForeignKey, Enum
from sqlalchemy.orm import relationship
from carpool_backend.app.db.session import Base
from carpool_backend.app.models.proof_enums import WaypointRole


class Waypoint(Base):
    __tablename__ = "waypoints"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    ride_agreement_id = Column(Integer, ForeignKey('ride_agreements.id'), nullable=False, index=True)
    role = Column(Enum(WaypointRole), nullable=False)
    position = Column(Integer, nullable=False)
    address_id = Column(Integer, ForeignKey('addresses.id'), nullable=False)
    duration = Column(Integer, default=0, nullable=False)  # Seconds from the path start
    
    address = relationship("Address", lazy="selectin")
    
    def __repr__(self):
        return f"<Waypoint(id={self.id}, role='{self.role.value}', position={self.position}, duration={self.duration})>"
