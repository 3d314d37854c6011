# Models/member.py
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base

class Member(Base):
    __tablename__ = 'members'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=True, index=True)

    # Name shown on bookings and in conflict messages
    display_name = Column(String, nullable=False)

    # Account status
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservations = relationship("Reservation", back_populates="owner")

    def __repr__(self):
        return f"<Member {self.display_name} ({self.id})>"
