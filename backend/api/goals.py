from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from auth.utils import get_current_user
from db.database import get_db
from db.models import User
from services.goal_service import (
    apply_goal_changes,
    calculate_goal_days,
    create_goal as create_goal_record,
    get_goal as get_goal_record,
    goal_to_dict,
    list_goals as list_goal_records,
)
from services.prayer_calculator import PRAYER_TYPES
from services.profile_service import completed_totals, get_remaining, outstanding_counts, remaining_counts
from utils.datetime_utils import today_utc

router = APIRouter(prefix="/goals", tags=["goals"])


class GoalCounts(BaseModel):
    fajr_goal: int = Field(default=0, ge=0)
    dhuhr_goal: int = Field(default=0, ge=0)
    asr_goal: int = Field(default=0, ge=0)
    maghrib_goal: int = Field(default=0, ge=0)
    isha_goal: int = Field(default=0, ge=0)
    witr_goal: int = Field(default=0, ge=0)

    def counts(self) -> dict[str, int]:
        return {prayer: getattr(self, f"{prayer}_goal") for prayer in PRAYER_TYPES}


class GoalCreateRequest(GoalCounts):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_goal(self):
        if not any(count > 0 for count in self.counts().values()):
            raise ValueError("At least one prayer goal must be set")
        if self.end_date is not None and self.end_date < (self.start_date or today_utc()):
            raise ValueError("end_date must be after start_date")
        return self


class GoalUpdateRequest(BaseModel):
    fajr_goal: Optional[int] = Field(default=None, ge=0)
    dhuhr_goal: Optional[int] = Field(default=None, ge=0)
    asr_goal: Optional[int] = Field(default=None, ge=0)
    maghrib_goal: Optional[int] = Field(default=None, ge=0)
    isha_goal: Optional[int] = Field(default=None, ge=0)
    witr_goal: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    req: GoalCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = req.model_dump()
    data["start_date"] = req.start_date or today_utc()
    goal = create_goal_record(db, user.id, data)
    db.commit()
    db.refresh(goal)
    return {"message": "Goal created successfully", "goal": goal_to_dict(goal)}


@router.get("")
def list_goals(
    active: Optional[bool] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    goals = list_goal_records(db, user.id, active=active)
    return {"goals": [goal_to_dict(g) for g in goals]}


@router.post("/calculate-days")
def calculate_days(
    req: GoalCounts,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    remaining = get_remaining(db, user.id)
    if not remaining:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Remaining prayers not found. Please create a profile first.",
        )
    totals, _days_logged = completed_totals(db, user.id)
    outstanding = outstanding_counts(remaining_counts(remaining), totals)
    result = calculate_goal_days(outstanding, req.counts())
    return {
        "remaining_prayers": {f"{prayer}_remaining": count for prayer, count in outstanding.items()},
        "goal": req.model_dump(),
        **result,
    }


@router.get("/{goal_id}")
def get_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    goal = get_goal_record(db, user.id, goal_id)
    if not goal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return {"goal": goal_to_dict(goal)}


@router.put("/{goal_id}")
def update_goal(
    goal_id: int,
    req: GoalUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    goal = get_goal_record(db, user.id, goal_id)
    if not goal:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")

    changes = req.model_dump(exclude_unset=True)
    start = changes.get("start_date") or goal.start_date
    end = changes["end_date"] if "end_date" in changes else goal.end_date
    if start is not None and end is not None and end < start:
        raise HTTPException(status_code=422, detail="end_date must be after start_date")

    apply_goal_changes(db, goal, changes)
    db.commit()
    db.refresh(goal)
    return {"message": "Goal updated successfully", "goal": goal_to_dict(goal)}
