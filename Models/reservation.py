# Models/reservation.py
from sqlalchemy import Column, String, Boolean, DateTime, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base

class Reservation(Base):
    __tablename__ = 'reservations'
    __table_args__ = (
        CheckConstraint('end_time > start_time', name='ck_reservations_interval'),
    )

    # Primary identifiers
    id = Column(String, primary_key=True, index=True)
    car_id = Column(String, ForeignKey('cars.id', ondelete='CASCADE'), nullable=False, index=True)
    owner_id = Column(String, ForeignKey('members.id'), nullable=False, index=True)

    # Interval, naive local wall-clock time
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False, index=True)
    is_whole_day = Column(Boolean, default=False, nullable=False)

    destination = Column(String, nullable=True)

    # Series membership. The rule is only stored on the earliest member.
    series_id = Column(String, nullable=True, index=True)
    recurrence_rule = Column(JSON, nullable=True)
    is_exception = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    car = relationship("Car", back_populates="reservations")
    owner = relationship("Member", back_populates="reservations")

    @property
    def owner_name(self):
        return self.owner.display_name if self.owner is not None else self.owner_id

    def __repr__(self):
        return f"<Reservation {self.car_id} {self.start_time} - {self.end_time}>"
