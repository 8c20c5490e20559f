from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models import CompletedPrayers, Profile, RemainingPrayers
from services.prayer_calculator import PRAYER_TYPES, Gender, ProfileSnapshot, RemainingCounts, estimate
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Every persisted profile field feeds the estimate.
CALCULATION_FIELDS = frozenset(
    {
        "gender",
        "puberty_date",
        "regular_prayer_start_date",
        "period_days_average",
        "fajr_miss_percent",
        "dhuhr_miss_percent",
        "asr_miss_percent",
        "maghrib_miss_percent",
        "isha_miss_percent",
        "witr_miss_percent",
        "jomaa_miss_percent",
    }
)


def snapshot_from_profile(profile: Profile) -> ProfileSnapshot:
    return ProfileSnapshot(
        gender=Gender(profile.gender),
        puberty_date=profile.puberty_date,
        regular_prayer_start_date=profile.regular_prayer_start_date,
        period_days_average=profile.period_days_average,
        fajr_miss_percent=profile.fajr_miss_percent or 0.0,
        dhuhr_miss_percent=profile.dhuhr_miss_percent or 0.0,
        asr_miss_percent=profile.asr_miss_percent or 0.0,
        maghrib_miss_percent=profile.maghrib_miss_percent or 0.0,
        isha_miss_percent=profile.isha_miss_percent or 0.0,
        witr_miss_percent=profile.witr_miss_percent,
        jomaa_miss_percent=profile.jomaa_miss_percent,
    )


def get_profile(db: Session, user_id: int) -> Profile | None:
    return db.query(Profile).filter(Profile.user_id == user_id).first()


def get_remaining(db: Session, user_id: int) -> RemainingPrayers | None:
    return db.query(RemainingPrayers).filter(RemainingPrayers.user_id == user_id).first()


def recalculate_remaining(
    db: Session,
    profile: Profile,
    reference_date: date | datetime | None = None,
) -> RemainingPrayers:
    """Recompute the estimate for `profile` and overwrite the user's remaining-prayers row."""
    counts = estimate(snapshot_from_profile(profile), reference_date)
    row = get_remaining(db, profile.user_id)
    if row is None:
        row = RemainingPrayers(user_id=profile.user_id)
        db.add(row)
    for prayer in PRAYER_TYPES:
        setattr(row, f"{prayer}_remaining", getattr(counts, prayer))
    row.calculated_at = utcnow()
    db.flush()
    logger.info("Remaining prayers recalculated", extra={"user_id": profile.user_id, **counts.as_dict()})
    return row


def _normalize_profile_value(field: str, value: Any) -> Any:
    if field == "gender" and value is not None:
        return Gender(value).value
    return value


def create_profile(db: Session, user_id: int, data: dict[str, Any]) -> Profile:
    values = {k: _normalize_profile_value(k, v) for k, v in data.items() if k in CALCULATION_FIELDS}
    profile = Profile(user_id=user_id, **values)
    db.add(profile)
    db.flush()
    recalculate_remaining(db, profile)
    logger.info("Profile created", extra={"user_id": user_id, "profile_id": profile.id})
    return profile


def apply_profile_changes(db: Session, profile: Profile, changes: dict[str, Any]) -> bool:
    """Apply a partial update. Returns True when the estimate had to be recomputed."""
    changed: set[str] = set()
    for field, value in changes.items():
        if field not in CALCULATION_FIELDS:
            continue
        value = _normalize_profile_value(field, value)
        if getattr(profile, field) != value:
            setattr(profile, field, value)
            changed.add(field)
    db.flush()
    if not changed:
        return False
    recalculate_remaining(db, profile)
    logger.info("Profile updated", extra={"user_id": profile.user_id, "fields": sorted(changed)})
    return True


def delete_profile(db: Session, profile: Profile) -> None:
    user_id = profile.user_id
    db.query(RemainingPrayers).filter(RemainingPrayers.user_id == user_id).delete(synchronize_session=False)
    db.delete(profile)
    db.flush()
    logger.info("Profile deleted", extra={"user_id": user_id})


def remaining_counts(row: RemainingPrayers) -> RemainingCounts:
    return RemainingCounts(**{prayer: int(getattr(row, f"{prayer}_remaining") or 0) for prayer in PRAYER_TYPES})


def completed_totals(db: Session, user_id: int) -> tuple[dict[str, int], int]:
    """Sum of completed prayers per type across all logged days, and the number of days logged."""
    columns = [func.coalesce(func.sum(getattr(CompletedPrayers, f"{p}_completed")), 0) for p in PRAYER_TYPES]
    row = db.query(*columns, func.count(CompletedPrayers.id)).filter(CompletedPrayers.user_id == user_id).one()
    totals = {prayer: int(row[idx] or 0) for idx, prayer in enumerate(PRAYER_TYPES)}
    return totals, int(row[-1] or 0)


def outstanding_counts(baseline: RemainingCounts, completed: dict[str, int]) -> dict[str, int]:
    return {prayer: max(0, getattr(baseline, prayer) - int(completed.get(prayer, 0))) for prayer in PRAYER_TYPES}


def _percent_complete(baseline: int, completed: int) -> float:
    if baseline <= 0:
        return 100.0
    return round(max(0.0, min(100.0, (completed / baseline) * 100.0)), 1)


def build_progress(row: RemainingPrayers, completed: dict[str, int], days_logged: int) -> dict:
    baseline = remaining_counts(row)
    outstanding = outstanding_counts(baseline, completed)
    prayers = {}
    for prayer in PRAYER_TYPES:
        prayers[prayer] = {
            "baseline": getattr(baseline, prayer),
            "completed": int(completed.get(prayer, 0)),
            "remaining": outstanding[prayer],
            "percent_complete": _percent_complete(getattr(baseline, prayer), int(completed.get(prayer, 0))),
        }
    total_baseline = sum(baseline.as_dict().values())
    total_completed = sum(int(completed.get(p, 0)) for p in PRAYER_TYPES)
    return {
        "prayers": prayers,
        "totals": {
            "baseline": total_baseline,
            "completed": total_completed,
            "remaining": sum(outstanding.values()),
            "percent_complete": _percent_complete(total_baseline, total_completed),
        },
        "days_logged": days_logged,
        "calculated_at": row.calculated_at.isoformat() if row.calculated_at else None,
    }


def remaining_to_dict(row: RemainingPrayers) -> dict:
    payload: dict[str, Any] = {f"{prayer}_remaining": int(getattr(row, f"{prayer}_remaining") or 0) for prayer in PRAYER_TYPES}
    payload["calculated_at"] = row.calculated_at.isoformat() if row.calculated_at else None
    return payload


def profile_to_dict(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "user_id": profile.user_id,
        "gender": profile.gender,
        "puberty_date": profile.puberty_date.isoformat() if profile.puberty_date else None,
        "regular_prayer_start_date": (
            profile.regular_prayer_start_date.isoformat() if profile.regular_prayer_start_date else None
        ),
        "period_days_average": profile.period_days_average,
        "fajr_miss_percent": profile.fajr_miss_percent,
        "dhuhr_miss_percent": profile.dhuhr_miss_percent,
        "asr_miss_percent": profile.asr_miss_percent,
        "maghrib_miss_percent": profile.maghrib_miss_percent,
        "isha_miss_percent": profile.isha_miss_percent,
        "witr_miss_percent": profile.witr_miss_percent,
        "jomaa_miss_percent": profile.jomaa_miss_percent,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }
