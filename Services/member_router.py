# Services/member_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import exc
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, EmailStr, constr
from typing import List, Optional
from datetime import datetime
import uuid
from Models import Member
from database import get_db

router = APIRouter()

# Pydantic models with strict validation
class MemberBase(BaseModel):
    display_name: constr(strip_whitespace=True, min_length=1, max_length=100)
    email: Optional[EmailStr] = None

class MemberCreate(MemberBase):
    is_admin: bool = False

class MemberUpdate(BaseModel):
    display_name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    email: Optional[EmailStr] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None

class MemberResponse(MemberBase):
    id: str
    is_admin: bool
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

# API Endpoints
@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    member: MemberCreate,
    db: Session = Depends(get_db)
):
    try:
        db_member = Member(
            id=str(uuid.uuid4()),
            **member.model_dump(),
            created_at=datetime.utcnow()
        )
        db.add(db_member)
        db.commit()
        db.refresh(db_member)
        return db_member
    except exc.IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

@router.get("/list", response_model=List[MemberResponse])
async def list_members(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    active_only: bool = Query(default=True),
    db: Session = Depends(get_db)
):
    query = db.query(Member)
    if active_only:
        query = query.filter(Member.is_active == True)
    return query.order_by(Member.display_name).offset(skip).limit(limit).all()

@router.get("/{member_id}", response_model=MemberResponse)
async def get_member(
    member_id: str,
    db: Session = Depends(get_db)
):
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found"
        )
    return member

@router.put("/{member_id}", response_model=MemberResponse)
async def update_member(
    member_id: str,
    member: MemberUpdate,
    db: Session = Depends(get_db)
):
    db_member = db.query(Member).filter(Member.id == member_id).first()
    if not db_member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found"
        )

    update_data = member.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_member, field, value)

    db_member.updated_at = datetime.utcnow()

    try:
        db.commit()
        db.refresh(db_member)
        return db_member
    except exc.IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already exists"
        )
