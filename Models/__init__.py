# Models/__init__.py
from .base import Base
from .car import Car
from .member import Member
from .reservation import Reservation

# List all models for easy access and database initialization
__all__ = [
    'Base',
    'Car',
    'Member',
    'Reservation'
]
