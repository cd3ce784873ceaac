"""
Direction database model.

Trace of a certified ride. Distance and duration stay at zero until the
driver's live ride is finalized; points accumulate as slots are certified.
"""

from sqlalchemy import Column, Integer, String, JSON
from carpool_backend.app.db.session import Base


class Direction(Base):
    __tablename__ = "directions"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    distance = Column(Integer, default=0, nullable=False)  # meters
    duration = Column(Integer, default=0, nullable=False)  # seconds
    format = Column(String(50), default="Dynamic", nullable=False)
    points = Column(JSON, default=list, nullable=False)
    
    def add_point(self, point: dict) -> None:
        # Reassign so the JSON column is flagged dirty
        self.points = list(self.points or []) + [point]
    
    def __repr__(self):
        return f"<Direction(id={self.id}, points={len(self.points or [])})>"
