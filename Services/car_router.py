# Services/car_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import exc
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr
from typing import List, Optional
from datetime import datetime
import uuid
from Models import Car
from database import get_db

router = APIRouter(
    responses={404: {"description": "Car not found"}}
)

class CarBase(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    key_location: Optional[constr(strip_whitespace=True, max_length=200)] = None
    comment: Optional[constr(max_length=1000)] = None
    has_alert: bool = False

class CarCreate(CarBase):
    pass

class CarUpdate(BaseModel):
    name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    key_location: Optional[constr(strip_whitespace=True, max_length=200)] = None
    comment: Optional[constr(max_length=1000)] = None
    has_alert: Optional[bool] = None
    is_active: Optional[bool] = None

class CarResponse(CarBase):
    id: str
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(
    car: CarCreate,
    db: Session = Depends(get_db)
):
    db_car = Car(
        id=str(uuid.uuid4()),
        **car.model_dump(),
        created_at=datetime.utcnow()
    )
    db.add(db_car)
    try:
        db.commit()
        db.refresh(db_car)
        return db_car
    except exc.IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Car with this name already exists"
        )

@router.get("/list", response_model=List[CarResponse])
async def list_cars(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    active_only: bool = Query(default=True),
    db: Session = Depends(get_db)
):
    query = db.query(Car)
    if active_only:
        query = query.filter(Car.is_active == True)
    return query.order_by(Car.name).offset(skip).limit(limit).all()

@router.get("/{car_id}", response_model=CarResponse)
async def get_car(
    car_id: str,
    db: Session = Depends(get_db)
):
    car = db.query(Car).filter(Car.id == car_id).first()
    if not car:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Car not found"
        )
    return car

@router.put("/{car_id}", response_model=CarResponse)
async def update_car(
    car_id: str,
    car: CarUpdate,
    db: Session = Depends(get_db)
):
    db_car = db.query(Car).filter(Car.id == car_id).first()
    if not db_car:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Car not found"
        )

    update_data = car.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_car, field, value)

    db_car.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_car)
        return db_car
    except exc.IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Car update failed due to constraint violation"
        )

@router.delete("/{car_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_car(
    car_id: str,
    db: Session = Depends(get_db)
):
    """Delete a car together with all of its reservations."""
    car = db.query(Car).filter(Car.id == car_id).first()
    if not car:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Car not found"
        )
    db.delete(car)
    db.commit()
    return None
