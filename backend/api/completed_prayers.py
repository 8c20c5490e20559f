import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.completed_prayers_service import (
    get_record,
    increment_day,
    list_records,
    mark_day_from_goal,
    record_to_dict,
)
from services.goal_service import get_active_goal, goal_to_dict
from services.prayer_calculator import PRAYER_TYPES
from utils.datetime_utils import date_or_today

router = APIRouter(prefix="/completed-prayers", tags=["completed-prayers"])
logger = logging.getLogger(__name__)

_ALREADY_MARKED = "This date has already been marked as completed. Use update endpoint to modify."


class CompletedIncrementRequest(BaseModel):
    fajr_completed: int = Field(default=0, ge=0)
    dhuhr_completed: int = Field(default=0, ge=0)
    asr_completed: int = Field(default=0, ge=0)
    maghrib_completed: int = Field(default=0, ge=0)
    isha_completed: int = Field(default=0, ge=0)
    witr_completed: int = Field(default=0, ge=0)


@router.post("", status_code=status.HTTP_201_CREATED)
def mark_completed(
    target_date: Optional[date] = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    day = date_or_today(target_date)
    goal = get_active_goal(db, user.id)
    if not goal:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active goal found. Please create an active goal first.",
        )
    if get_record(db, user.id, day):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_ALREADY_MARKED)
    goal_payload = goal_to_dict(goal)
    try:
        record = mark_day_from_goal(db, user.id, day, goal)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Day already marked by a concurrent request", extra={"user_id": user.id, "date": day.isoformat()})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_ALREADY_MARKED)
    db.refresh(record)
    return {
        "message": "Date marked as completed successfully",
        "completed_prayers": record_to_dict(record),
        "date": day.isoformat(),
        "goal": goal_payload,
    }


@router.get("")
def list_completed(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=422, detail="end_date must be on or after start_date")
    records = list_records(db, user.id, start_date=start_date, end_date=end_date)
    return {"completed_prayers": [record_to_dict(r) for r in records], "count": len(records)}


@router.get("/date")
def get_completed_for_date(
    target_date: Optional[date] = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    day = date_or_today(target_date)
    record = get_record(db, user.id, day)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No completed prayers found for {day.isoformat()}",
        )
    return {"completed_prayers": record_to_dict(record)}


@router.put("")
def increment_completed(
    req: CompletedIncrementRequest,
    target_date: Optional[date] = Query(default=None, alias="date"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    day = date_or_today(target_date)
    increments = {prayer: getattr(req, f"{prayer}_completed") for prayer in PRAYER_TYPES}
    record = increment_day(db, user.id, day, increments)
    db.commit()
    db.refresh(record)
    return {
        "message": "Completed prayers incremented successfully",
        "completed_prayers": record_to_dict(record),
        "date": day.isoformat(),
    }
