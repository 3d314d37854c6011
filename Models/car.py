# Models/car.py
from sqlalchemy import Column, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base

class Car(Base):
    __tablename__ = 'cars'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)

    # Handover details shown next to the car in the calendar
    key_location = Column(String, nullable=True)
    comment = Column(Text, nullable=True)
    has_alert = Column(Boolean, default=False)

    # Status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    reservations = relationship(
        "Reservation",
        back_populates="car",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Car {self.name} ({self.id})>"
