# Services/reservation_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr
from typing import List, Optional, Dict, Any
from datetime import date, datetime
import os
from Services.booking_engine import BookingEngine, EditScope
from Services.errors import (
    BookingError,
    Conflict,
    InvalidInterval,
    InvalidRecurrenceRule,
    NotFound,
    StorageFailure,
    WholeDayBlocked,
)
from Services.recurrence import DEFAULT_HARD_CAP
from Services.reservation_store import ReservationStore
from database import get_db

router = APIRouter(
    responses={404: {"description": "Reservation not found"}}
)

ERROR_STATUS = {
    InvalidInterval: status.HTTP_400_BAD_REQUEST,
    InvalidRecurrenceRule: status.HTTP_400_BAD_REQUEST,
    Conflict: status.HTTP_409_CONFLICT,
    WholeDayBlocked: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}

class ReservationBase(BaseModel):
    """
    Fields shared by create and update requests.

    Attributes:
        start_time: Start of the reservation (naive local time)
        end_time: End of the reservation, must be after start_time
        is_whole_day: Stretch the reservation over the full day(s) it touches
        destination: Optional note on where the car is going
    """
    start_time: datetime
    end_time: datetime
    is_whole_day: bool = False
    destination: Optional[constr(max_length=200)] = None

class ReservationCreate(ReservationBase):
    """
    Schema for booking a car.

    When recurrence is given, the request books a whole series, for example
    {"frequency": "weekly", "daysOfWeek": [1, 3], "endType": "after_count", "count": 4}.
    """
    car_id: str
    owner_id: str
    recurrence: Optional[Dict[str, Any]] = None

class ReservationUpdate(ReservationBase):
    """Schema for editing a reservation. Omit car_id to keep the current car."""
    car_id: Optional[str] = None

class ReservationResponse(BaseModel):
    id: str
    car_id: str
    owner_id: str
    owner_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    is_whole_day: bool
    destination: Optional[str] = None
    series_id: Optional[str] = None
    recurrence_rule: Optional[Dict[str, Any]] = None
    is_exception: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class DayBlockResponse(BaseModel):
    blocked: bool
    owner_name: Optional[str] = None
    reservation_id: Optional[str] = None

def get_engine(db: Session = Depends(get_db)) -> BookingEngine:
    hard_cap = int(os.getenv("RECURRENCE_HARD_CAP", DEFAULT_HARD_CAP))
    return BookingEngine(ReservationStore(db), hard_cap=hard_cap)

def to_http_exception(error: BookingError) -> HTTPException:
    """Translate an engine failure into the HTTP error returned to the calendar."""
    detail = {"type": type(error).__name__, "message": str(error)}
    if isinstance(error, Conflict):
        detail.update({
            "owner_name": error.owner_name,
            "start_time": error.start.isoformat(),
            "end_time": error.end.isoformat(),
            "reservation_id": error.reservation_id,
            "occurrence_date": error.occurrence_date.isoformat() if error.occurrence_date else None,
        })
    elif isinstance(error, WholeDayBlocked):
        detail.update({
            "owner_name": error.owner_name,
            "day": error.day.isoformat(),
            "reservation_id": error.reservation_id,
        })
    return HTTPException(
        status_code=ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST),
        detail=detail
    )

@router.post("",
    response_model=List[ReservationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Book a car",
    description="""
    Book a car for a single interval, or for every occurrence of a recurrence rule.

    A series is booked all-or-nothing: if any occurrence conflicts with an
    existing reservation nothing is created and the conflicting date is reported.
    """,
    responses={
        400: {"description": "Invalid interval or recurrence rule"},
        409: {"description": "The car is already booked"}
    }
)
async def create_reservation(
    reservation: ReservationCreate,
    engine: BookingEngine = Depends(get_engine)
):
    try:
        if reservation.recurrence:
            return engine.create_series(
                car_id=reservation.car_id,
                owner_id=reservation.owner_id,
                start=reservation.start_time,
                end=reservation.end_time,
                rule=reservation.recurrence,
                is_whole_day=reservation.is_whole_day,
                destination=reservation.destination,
            )
        return [engine.create_reservation(
            car_id=reservation.car_id,
            owner_id=reservation.owner_id,
            start=reservation.start_time,
            end=reservation.end_time,
            is_whole_day=reservation.is_whole_day,
            destination=reservation.destination,
        )]
    except BookingError as e:
        raise to_http_exception(e)

@router.get("",
    response_model=List[ReservationResponse],
    summary="List reservations in a window",
    description="Reservations that intersect [start, end], optionally for a single car."
)
async def list_reservations(
    start: datetime = Query(..., description="Window start"),
    end: datetime = Query(..., description="Window end"),
    car_id: Optional[str] = Query(default=None, description="Only reservations for this car"),
    engine: BookingEngine = Depends(get_engine)
):
    try:
        return engine.list_reservations(start, end, car_id)
    except BookingError as e:
        raise to_http_exception(e)

@router.get("/whole-day-block",
    response_model=DayBlockResponse,
    summary="Check whether a car is booked for the whole day"
)
async def get_whole_day_block(
    car_id: str = Query(...),
    day: date = Query(...),
    engine: BookingEngine = Depends(get_engine)
):
    try:
        block = engine.whole_day_block(car_id, day)
    except BookingError as e:
        raise to_http_exception(e)
    if block is None:
        return DayBlockResponse(blocked=False)
    return DayBlockResponse(blocked=True, owner_name=block.owner_name, reservation_id=block.id)

@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    engine: BookingEngine = Depends(get_engine)
):
    try:
        return engine.get_reservation(reservation_id)
    except BookingError as e:
        raise to_http_exception(e)

@router.put("/{reservation_id}",
    response_model=List[ReservationResponse],
    summary="Edit a reservation",
    description="""
    Edit a reservation. For a member of a series, scope selects whether only
    this occurrence changes or this and every later occurrence. Later
    occurrences keep their own date and take the new time of day and duration.
    """,
    responses={
        400: {"description": "Invalid interval"},
        409: {"description": "The new time conflicts with another reservation"}
    }
)
async def update_reservation(
    reservation_id: str,
    reservation: ReservationUpdate,
    scope: EditScope = Query(default=EditScope.THIS_OCCURRENCE),
    engine: BookingEngine = Depends(get_engine)
):
    try:
        return engine.edit_reservation(
            reservation_id,
            start=reservation.start_time,
            end=reservation.end_time,
            is_whole_day=reservation.is_whole_day,
            destination=reservation.destination,
            car_id=reservation.car_id,
            scope=scope,
        )
    except BookingError as e:
        raise to_http_exception(e)

@router.delete("/{reservation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a reservation",
    description="Delete one occurrence, or this and every later occurrence of its series."
)
async def delete_reservation(
    reservation_id: str,
    scope: EditScope = Query(default=EditScope.THIS_OCCURRENCE),
    engine: BookingEngine = Depends(get_engine)
):
    try:
        engine.delete_reservation(reservation_id, scope=scope)
    except BookingError as e:
        raise to_http_exception(e)
    return None
