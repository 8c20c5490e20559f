from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from sqlalchemy.orm import Session

from db.models import Goal
from services.prayer_calculator import PRAYER_TYPES

logger = logging.getLogger(__name__)


def goal_counts(goal: Goal) -> dict[str, int]:
    return {prayer: int(getattr(goal, f"{prayer}_goal") or 0) for prayer in PRAYER_TYPES}


def get_goal(db: Session, user_id: int, goal_id: int) -> Goal | None:
    return db.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user_id).first()


def get_active_goal(db: Session, user_id: int) -> Goal | None:
    return (
        db.query(Goal)
        .filter(Goal.user_id == user_id, Goal.is_active.is_(True))
        .order_by(Goal.created_at.desc(), Goal.id.desc())
        .first()
    )


def list_goals(db: Session, user_id: int, active: bool | None = None) -> list[Goal]:
    query = db.query(Goal).filter(Goal.user_id == user_id)
    if active is not None:
        query = query.filter(Goal.is_active.is_(active))
    return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def deactivate_other_goals(db: Session, user_id: int, keep_goal_id: int | None = None) -> int:
    query = db.query(Goal).filter(Goal.user_id == user_id, Goal.is_active.is_(True))
    if keep_goal_id is not None:
        query = query.filter(Goal.id != keep_goal_id)
    deactivated = query.update({Goal.is_active: False}, synchronize_session="fetch")
    if deactivated:
        logger.info("Deactivated previous goals", extra={"user_id": user_id, "count": deactivated})
    return deactivated


def create_goal(db: Session, user_id: int, data: Mapping[str, Any]) -> Goal:
    is_active = bool(data.get("is_active", True))
    if is_active:
        deactivate_other_goals(db, user_id)
    goal = Goal(
        user_id=user_id,
        start_date=data["start_date"],
        end_date=data.get("end_date"),
        is_active=is_active,
        **{f"{prayer}_goal": int(data.get(f"{prayer}_goal") or 0) for prayer in PRAYER_TYPES},
    )
    db.add(goal)
    db.flush()
    logger.info("Goal created", extra={"user_id": user_id, "goal_id": goal.id, "is_active": is_active})
    return goal


def apply_goal_changes(db: Session, goal: Goal, changes: Mapping[str, Any]) -> Goal:
    for prayer in PRAYER_TYPES:
        field = f"{prayer}_goal"
        if field in changes and changes[field] is not None:
            setattr(goal, field, int(changes[field]))
    if changes.get("start_date") is not None:
        goal.start_date = changes["start_date"]
    if "end_date" in changes:
        goal.end_date = changes["end_date"]
    if changes.get("is_active") is not None:
        if changes["is_active"]:
            deactivate_other_goals(db, goal.user_id, keep_goal_id=goal.id)
        goal.is_active = bool(changes["is_active"])
    db.flush()
    logger.info("Goal updated", extra={"user_id": goal.user_id, "goal_id": goal.id})
    return goal


def days_to_finish(remaining: int, daily_goal: int) -> int | None:
    if daily_goal <= 0:
        return None
    return math.ceil(remaining / daily_goal)


def calculate_goal_days(remaining: Mapping[str, int], goals: Mapping[str, int]) -> dict:
    """Days needed per prayer type at the given daily pace; the slowest type bounds the whole plan."""
    breakdown = {
        prayer: days_to_finish(int(remaining.get(prayer, 0)), int(goals.get(prayer, 0))) for prayer in PRAYER_TYPES
    }
    defined = [days for days in breakdown.values() if days is not None]
    max_days = max(defined) if defined else None
    if max_days is None:
        message = "Please set at least one prayer goal greater than 0."
    else:
        message = f"It will take {max_days} days to complete all remaining prayers with the given goal."
    return {"days_breakdown": breakdown, "max_days": max_days, "message": message}


def goal_to_dict(goal: Goal) -> dict:
    return {
        "id": goal.id,
        **{f"{prayer}_goal": count for prayer, count in goal_counts(goal).items()},
        "start_date": goal.start_date.isoformat() if goal.start_date else None,
        "end_date": goal.end_date.isoformat() if goal.end_date else None,
        "is_active": bool(goal.is_active),
        "created_at": goal.created_at.isoformat() if goal.created_at else None,
        "updated_at": goal.updated_at.isoformat() if goal.updated_at else None,
    }
