"""SQLAlchemy ORM models for the plan service.

Users carry their profile and subscription inline; diet and workout plans
store their nested meals/days as JSON documents. Models stay behavior-free;
rules live in the stores and services.
"""

from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, ForeignKey, Text, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class User(Base):
    """ORM model representing an application user and their profile."""

    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default="user")  # user | admin

    age = Column(Integer, nullable=True)
    weight = Column(Float, nullable=True)  # kg
    height = Column(Float, nullable=True)  # cm
    gender = Column(String, nullable=True)
    activity_level = Column(String, nullable=True)
    goals = Column(JSON, nullable=False, default=list)
    preferences = Column(JSON, nullable=False, default=list)
    restrictions = Column(JSON, nullable=False, default=list)
    timezone = Column(String, nullable=False, default="UTC")

    subscription_plan = Column(String, nullable=True)
    subscription_status = Column(String, nullable=False, default="active")  # active | inactive | trial | expired
    subscription_end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class ProgressLog(Base):
    """ORM model for a user's daily log of eaten meals and workout progress.

    `meals` is a list of `{"meal_name", "logged_at", "calories", "macros"}`.
    """

    __tablename__ = "progress_logs"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    meals = Column(JSON, nullable=False, default=list)
    workout = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_progress_logs_user_date", "user_id", "date"),
    )


class DietPlan(Base):
    """ORM model for one user's diet plan on one calendar date."""

    __tablename__ = "diet_plans"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    name = Column(String, nullable=False, default="Daily Diet Plan")
    date = Column(Date, nullable=False, index=True)

    daily_calories = Column(Float, nullable=False)
    protein = Column(Float, nullable=False)
    carbs = Column(Float, nullable=False)
    fats = Column(Float, nullable=False)

    target_calories = Column(Float, nullable=True)
    target_protein = Column(Float, nullable=True)
    target_carbs = Column(Float, nullable=True)
    target_fats = Column(Float, nullable=True)

    meals = Column(JSON, nullable=False, default=list)
    generated_from = Column(String, nullable=False, default="manual")  # manual | ai | auto-daily
    previous_day_progress_id = Column(Integer, ForeignKey('progress_logs.id'), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_diet_plans_user_date"),
    )


class WorkoutPlan(Base):
    """ORM model for a multi-week workout cycle."""

    __tablename__ = "workout_plans"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    name = Column(String, nullable=False, default="Workout Cycle")
    duration_weeks = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="active", index=True)  # active | completed | cancelled
    days = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_workout_plans_user_status", "user_id", "status"),
    )
