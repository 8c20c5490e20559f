from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Mapping

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.models import CompletedPrayers, Goal
from services.goal_service import goal_counts
from services.prayer_calculator import PRAYER_TYPES

logger = logging.getLogger(__name__)


def get_record(db: Session, user_id: int, day: date) -> CompletedPrayers | None:
    return (
        db.query(CompletedPrayers)
        .filter(CompletedPrayers.user_id == user_id, CompletedPrayers.date == day)
        .first()
    )


def mark_day_from_goal(db: Session, user_id: int, day: date, goal: Goal) -> CompletedPrayers:
    """Record a day as done with exactly the counts the goal asks for."""
    record = CompletedPrayers(
        user_id=user_id,
        date=day,
        **{f"{prayer}_completed": count for prayer, count in goal_counts(goal).items()},
    )
    db.add(record)
    db.flush()
    logger.info("Day marked as completed", extra={"user_id": user_id, "date": day.isoformat(), "goal_id": goal.id})
    return record


def _dialect_insert(db: Session):
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


def increment_day(db: Session, user_id: int, day: date, increments: Mapping[str, int]) -> CompletedPrayers:
    """Add `increments` to the day's counts with a single upsert, creating the row if needed."""
    db.flush()
    values = {f"{p}_completed": int(increments.get(p, 0) or 0) for p in PRAYER_TYPES}
    stmt = _dialect_insert(db)(CompletedPrayers).values(user_id=user_id, date=day, **values)
    set_ = {
        field: getattr(CompletedPrayers, field) + getattr(stmt.excluded, field)
        for field in values
    }
    set_["updated_at"] = datetime.utcnow()
    stmt = stmt.on_conflict_do_update(
        index_elements=[CompletedPrayers.user_id, CompletedPrayers.date],
        set_=set_,
    )
    db.execute(stmt)
    record = (
        db.query(CompletedPrayers)
        .populate_existing()
        .filter(CompletedPrayers.user_id == user_id, CompletedPrayers.date == day)
        .one()
    )
    logger.info("Completed prayers incremented", extra={"user_id": user_id, "date": day.isoformat()})
    return record


def list_records(
    db: Session,
    user_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[CompletedPrayers]:
    query = db.query(CompletedPrayers).filter(CompletedPrayers.user_id == user_id)
    if start_date is not None:
        query = query.filter(CompletedPrayers.date >= start_date)
    if end_date is not None:
        query = query.filter(CompletedPrayers.date <= end_date)
    return query.order_by(CompletedPrayers.date.desc()).all()


def record_to_dict(record: CompletedPrayers) -> dict:
    return {
        "id": record.id,
        "date": record.date.isoformat() if record.date else None,
        **{f"{p}_completed": int(getattr(record, f"{p}_completed") or 0) for p in PRAYER_TYPES},
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }
