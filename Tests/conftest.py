import os

# Keep the application engine off the on-disk database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from Models import Base, Car, Member, Reservation
from Services.booking_engine import BookingEngine
from Services.reservation_store import ReservationStore


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return ReservationStore(db)


@pytest.fixture
def engine(store):
    return BookingEngine(store)


@pytest.fixture
def alice(db):
    member = Member(id="alice", display_name="Alice")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def bob(db):
    member = Member(id="bob", display_name="Bob")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def car(db):
    car = Car(id="car-1", name="Volvo V70", key_location="Hook by the door")
    db.add(car)
    db.commit()
    return car


@pytest.fixture
def other_car(db):
    car = Car(id="car-2", name="Toyota Yaris")
    db.add(car)
    db.commit()
    return car


def book(db, car_id, owner_id, start, end, **fields):
    """Insert a reservation directly, bypassing the engine's checks."""
    reservation = Reservation(
        id=fields.pop("id", f"r-{car_id}-{start:%Y%m%d%H%M}"),
        car_id=car_id,
        owner_id=owner_id,
        start_time=start,
        end_time=end,
        **fields,
    )
    db.add(reservation)
    db.commit()
    return reservation


def at(day, hour, minute=0):
    """Shorthand for a datetime on an ISO date string."""
    return datetime.fromisoformat(day).replace(hour=hour, minute=minute)
