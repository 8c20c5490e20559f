from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.prayer_calculator import Gender
from services.profile_service import (
    apply_profile_changes,
    build_progress,
    completed_totals,
    create_profile as create_profile_record,
    delete_profile as delete_profile_record,
    get_profile as get_profile_record,
    get_remaining,
    profile_to_dict,
    recalculate_remaining,
    remaining_to_dict,
)

router = APIRouter(prefix="/profile", tags=["profile"])

_NON_NULLABLE_FIELDS = (
    "gender",
    "puberty_date",
    "fajr_miss_percent",
    "dhuhr_miss_percent",
    "asr_miss_percent",
    "maghrib_miss_percent",
    "isha_miss_percent",
)


class ProfileCreateRequest(BaseModel):
    gender: Gender
    puberty_date: date
    regular_prayer_start_date: Optional[date] = None
    period_days_average: Optional[float] = Field(default=None, ge=0, le=31)
    fajr_miss_percent: float = Field(default=0.0, ge=0, le=100)
    dhuhr_miss_percent: float = Field(default=0.0, ge=0, le=100)
    asr_miss_percent: float = Field(default=0.0, ge=0, le=100)
    maghrib_miss_percent: float = Field(default=0.0, ge=0, le=100)
    isha_miss_percent: float = Field(default=0.0, ge=0, le=100)
    witr_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    jomaa_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)


class ProfileUpdateRequest(BaseModel):
    gender: Optional[Gender] = None
    puberty_date: Optional[date] = None
    regular_prayer_start_date: Optional[date] = None
    period_days_average: Optional[float] = Field(default=None, ge=0, le=31)
    fajr_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    dhuhr_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    asr_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    maghrib_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    isha_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    witr_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)
    jomaa_miss_percent: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator(*_NON_NULLABLE_FIELDS, mode="before")
    @classmethod
    def _reject_explicit_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


def _require_profile(db: Session, user: User):
    profile = get_profile_record(db, user.id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found. Create a profile first.")
    return profile


@router.post("", status_code=status.HTTP_201_CREATED)
def create_profile(
    req: ProfileCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if get_profile_record(db, user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Profile already exists. Use update endpoint instead.",
        )
    profile = create_profile_record(db, user.id, req.model_dump())
    db.commit()
    db.refresh(profile)
    remaining = get_remaining(db, user.id)
    return {
        "message": "Profile created successfully",
        "profile": profile_to_dict(profile),
        "remaining_prayers": remaining_to_dict(remaining) if remaining else None,
    }


@router.get("")
def get_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = _require_profile(db, user)
    remaining = get_remaining(db, user.id)
    return {
        "profile": {
            **profile_to_dict(profile),
            "user": {
                "id": user.id,
                "email": user.email,
                "name": user.name,
                "created_at": user.created_at.isoformat() if user.created_at else None,
                "updated_at": user.updated_at.isoformat() if user.updated_at else None,
            },
        },
        "remaining_prayers": remaining_to_dict(remaining) if remaining else None,
    }


@router.put("")
def update_profile(
    req: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = _require_profile(db, user)
    recalculated = apply_profile_changes(db, profile, req.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(profile)
    remaining = get_remaining(db, user.id)
    return {
        "message": "Profile updated successfully",
        "profile": profile_to_dict(profile),
        "recalculated": recalculated,
        "remaining_prayers": remaining_to_dict(remaining) if remaining else None,
    }


@router.delete("")
def delete_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = _require_profile(db, user)
    delete_profile_record(db, profile)
    db.commit()
    return {"message": "Profile deleted successfully"}


@router.get("/remaining")
def get_remaining_prayers(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    remaining = get_remaining(db, user.id)
    if not remaining:
        profile = _require_profile(db, user)
        remaining = recalculate_remaining(db, profile)
        db.commit()
    return {"remaining_prayers": remaining_to_dict(remaining)}


@router.get("/progress")
def get_progress(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    remaining = get_remaining(db, user.id)
    if not remaining:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Remaining prayers not found. Please create a profile first.",
        )
    totals, days_logged = completed_totals(db, user.id)
    return build_progress(remaining, totals, days_logged)
