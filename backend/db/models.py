from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Float, Boolean, ForeignKey, Index,
    Date, DateTime, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from db.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    name = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    remaining_prayers = relationship(
        "RemainingPrayers", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    completed_prayers = relationship("CompletedPrayers", back_populates="user", cascade="all, delete-orphan")


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    gender = Column(Text, nullable=False)  # MALE | FEMALE
    puberty_date = Column(Date, nullable=False)
    regular_prayer_start_date = Column(Date, nullable=True)
    period_days_average = Column(Float, nullable=True)
    fajr_miss_percent = Column(Float, nullable=False, default=0.0)
    dhuhr_miss_percent = Column(Float, nullable=False, default=0.0)
    asr_miss_percent = Column(Float, nullable=False, default=0.0)
    maghrib_miss_percent = Column(Float, nullable=False, default=0.0)
    isha_miss_percent = Column(Float, nullable=False, default=0.0)
    witr_miss_percent = Column(Float, nullable=True)
    jomaa_miss_percent = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="profile")


class RemainingPrayers(Base):
    __tablename__ = "remaining_prayers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    fajr_remaining = Column(Integer, nullable=False, default=0)
    dhuhr_remaining = Column(Integer, nullable=False, default=0)
    asr_remaining = Column(Integer, nullable=False, default=0)
    maghrib_remaining = Column(Integer, nullable=False, default=0)
    isha_remaining = Column(Integer, nullable=False, default=0)
    witr_remaining = Column(Integer, nullable=False, default=0)
    calculated_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="remaining_prayers")


class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    fajr_goal = Column(Integer, nullable=False, default=0)
    dhuhr_goal = Column(Integer, nullable=False, default=0)
    asr_goal = Column(Integer, nullable=False, default=0)
    maghrib_goal = Column(Integer, nullable=False, default=0)
    isha_goal = Column(Integer, nullable=False, default=0)
    witr_goal = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="goals")

    __table_args__ = (
        Index("idx_goals_user_active", "user_id", "is_active"),
    )


class CompletedPrayers(Base):
    __tablename__ = "completed_prayers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    fajr_completed = Column(Integer, nullable=False, default=0)
    dhuhr_completed = Column(Integer, nullable=False, default=0)
    asr_completed = Column(Integer, nullable=False, default=0)
    maghrib_completed = Column(Integer, nullable=False, default=0)
    isha_completed = Column(Integer, nullable=False, default=0)
    witr_completed = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="completed_prayers")

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_completed_prayers_user_date"),
    )
