"""Estimate the backlog of missed obligatory prayers from a profile snapshot.

The obligation window runs from puberty until the person started praying
regularly (or until the reference date when they have not yet). Each prayer
type's miss percentage is applied to the days in that window. Men get Dhuhr
credit for every Friday congregational prayer they attended; women get the
estimated menstruation days removed from the window first.

Elapsed days are rounded up and missed instances are rounded down.
"""
from __future__ import annotations

import enum
import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta

from utils.datetime_utils import as_utc_datetime, utcnow

PRAYER_TYPES = ("fajr", "dhuhr", "asr", "maghrib", "isha", "witr")

AVERAGE_MONTH_DAYS = 30.44
FRIDAY = 4  # datetime.weekday()
_SECONDS_PER_DAY = 24 * 60 * 60


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


@dataclass(frozen=True)
class ProfileSnapshot:
    gender: Gender
    puberty_date: date | datetime
    fajr_miss_percent: float
    dhuhr_miss_percent: float
    asr_miss_percent: float
    maghrib_miss_percent: float
    isha_miss_percent: float
    regular_prayer_start_date: date | datetime | None = None
    period_days_average: float | None = None
    witr_miss_percent: float | None = None
    jomaa_miss_percent: float | None = None


@dataclass(frozen=True)
class RemainingCounts:
    fajr: int = 0
    dhuhr: int = 0
    asr: int = 0
    maghrib: int = 0
    isha: int = 0
    witr: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class _MissRates:
    """Per-prayer miss percentages with optional ones already defaulted."""

    fajr: float
    dhuhr: float
    asr: float
    maghrib: float
    isha: float
    witr: float
    jomaa: float
    period_days_average: float

    @classmethod
    def from_snapshot(cls, profile: ProfileSnapshot) -> "_MissRates":
        return cls(
            fajr=float(profile.fajr_miss_percent),
            dhuhr=float(profile.dhuhr_miss_percent),
            asr=float(profile.asr_miss_percent),
            maghrib=float(profile.maghrib_miss_percent),
            isha=float(profile.isha_miss_percent),
            witr=float(profile.witr_miss_percent or 0),
            jomaa=float(profile.jomaa_miss_percent or 0),
            period_days_average=float(profile.period_days_average or 0),
        )


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Whole days between two points in time, order-insensitive, partial days rounded up."""
    delta = as_utc_datetime(end) - as_utc_datetime(start)
    return math.ceil(abs(delta.total_seconds()) / _SECONDS_PER_DAY)


def total_period_days(total_days: int, period_days_average: float) -> int:
    if not period_days_average:
        return 0
    months = total_days / AVERAGE_MONTH_DAYS
    return math.floor(months * period_days_average)


def count_fridays(start: date | datetime, end: date | datetime) -> int:
    """Fridays from `start` through `end`, both inclusive. Zero when `end` precedes `start`."""
    start_dt = as_utc_datetime(start)
    end_dt = as_utc_datetime(end)
    first_friday = start_dt + timedelta(days=(FRIDAY - start_dt.weekday()) % 7)
    if first_friday > end_dt:
        return 0
    return (end_dt - first_friday) // timedelta(days=7) + 1


def missed_count(days: int, miss_percent: float) -> int:
    return math.floor(days * miss_percent / 100)


def _estimate_male(rates: _MissRates, total_days: int, jomaa_count: int) -> RemainingCounts:
    jomaa_missed = missed_count(jomaa_count, rates.jomaa)
    jomaa_prayed = jomaa_count - jomaa_missed
    # Jomaa replaces that Friday's Dhuhr, so attended Fridays pay down Dhuhr debt.
    dhuhr = max(0, missed_count(total_days, rates.dhuhr) - jomaa_prayed)
    return RemainingCounts(
        fajr=missed_count(total_days, rates.fajr),
        dhuhr=dhuhr,
        asr=missed_count(total_days, rates.asr),
        maghrib=missed_count(total_days, rates.maghrib),
        isha=missed_count(total_days, rates.isha),
        witr=missed_count(total_days, rates.witr),
    )


def _estimate_female(rates: _MissRates, total_days: int) -> RemainingCounts:
    prayer_days = total_days - total_period_days(total_days, rates.period_days_average)
    return RemainingCounts(
        fajr=missed_count(prayer_days, rates.fajr),
        dhuhr=missed_count(prayer_days, rates.dhuhr),
        asr=missed_count(prayer_days, rates.asr),
        maghrib=missed_count(prayer_days, rates.maghrib),
        isha=missed_count(prayer_days, rates.isha),
        witr=missed_count(prayer_days, rates.witr),
    )


def estimate(profile: ProfileSnapshot, reference_date: date | datetime | None = None) -> RemainingCounts:
    """Estimate the remaining (missed, not yet made up) prayers per prayer type.

    Inputs are trusted: range validation happens at the API boundary.
    """
    rates = _MissRates.from_snapshot(profile)
    window_end = profile.regular_prayer_start_date or reference_date or utcnow()
    total_days = days_between(profile.puberty_date, window_end)

    if Gender(profile.gender) is Gender.MALE:
        return _estimate_male(rates, total_days, count_fridays(profile.puberty_date, window_end))
    return _estimate_female(rates, total_days)
