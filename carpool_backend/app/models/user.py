"""
User database model.

Carpool participants. Authentication lives outside this service, only
identity is stored here.
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from carpool_backend.app.db.session import Base


class User(Base):
    """Driver or passenger of a ride agreement."""
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    given_name = Column(String(100), nullable=True)
    family_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"
