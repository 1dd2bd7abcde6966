"""Stores used by the generation pipelines and the plan scheduler.

Each store wraps a SQLAlchemy session. The diet plan (user, date)
uniqueness and the active workout cycle overlap rule are enforced here so
that every caller, API or scheduler, gets the same conflict behavior.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError
from core.logger import get_logger
from core.repository import BaseRepository
from database import models
from schemas.user_schema import UserProfile

logger = get_logger("database.stores")


class UserStore(BaseRepository[models.User]):
    def __init__(self, session: Session):
        super().__init__(models.User, session)

    def find_profile(self, user_id: int) -> UserProfile:
        """Load a user's profile.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return UserProfile.model_validate(user)

    def bulk_update_expired_subscriptions(self, now: datetime) -> int:
        """Mark every active/trial subscription ending before `now` as expired."""
        count = (
            self.session.query(models.User)
            .filter(
                models.User.subscription_status.in_(("active", "trial")),
                models.User.subscription_end_date < now,
            )
            .update({models.User.subscription_status: "expired"}, synchronize_session=False)
        )
        self.session.commit()
        return count

    def list_eligible_for_daily_generation(self) -> List[UserProfile]:
        """Non-admin users whose age, weight and height are recorded."""
        users = (
            self.session.query(models.User)
            .filter(
                models.User.role != "admin",
                models.User.age.isnot(None),
                models.User.weight.isnot(None),
                models.User.height.isnot(None),
            )
            .order_by(models.User.id)
            .all()
        )
        return [UserProfile.model_validate(u) for u in users]


class ProgressLogStore(BaseRepository[models.ProgressLog]):
    def __init__(self, session: Session):
        super().__init__(models.ProgressLog, session)

    def get(self, log_id: int) -> Optional[models.ProgressLog]:
        return self.get_by_id(log_id)

    def find_for_user(self, user_id: int, log_id: int) -> Optional[models.ProgressLog]:
        """The log with `log_id` if it belongs to `user_id`."""
        return (
            self.session.query(models.ProgressLog)
            .filter(models.ProgressLog.id == log_id, models.ProgressLog.user_id == user_id)
            .first()
        )

    def find_latest_before(
        self, user_id: int, before: datetime, since: Optional[datetime] = None
    ) -> Optional[models.ProgressLog]:
        """Most recent log dated before `before` (and at or after `since`)."""
        query = self.session.query(models.ProgressLog).filter(
            models.ProgressLog.user_id == user_id,
            models.ProgressLog.date < before,
        )
        if since is not None:
            query = query.filter(models.ProgressLog.date >= since)
        return query.order_by(models.ProgressLog.date.desc()).first()


class DietPlanStore(BaseRepository[models.DietPlan]):
    conflict_message = "Diet plan already exists for this date"

    def __init__(self, session: Session):
        super().__init__(models.DietPlan, session)

    def find_plan(self, user_id: int, plan_date: date) -> Optional[models.DietPlan]:
        return (
            self.session.query(models.DietPlan)
            .filter(models.DietPlan.user_id == user_id, models.DietPlan.date == plan_date)
            .first()
        )

    def insert_plan(self, plan: models.DietPlan) -> models.DietPlan:
        """Persist a plan; a second plan for the same (user, date) is a conflict.

        The check is the `uq_diet_plans_user_date` constraint itself, so two
        racing inserts yield one row and one `ConflictError`.
        """
        try:
            return self.create(plan)
        except ConflictError:
            existing = self.find_plan(plan.user_id, plan.date)
            logger.info("Rejected duplicate diet plan for user=%s date=%s", plan.user_id, plan.date)
            raise ConflictError(self.conflict_message, existing_id=existing.id if existing else None)

    def list_for_user(
        self,
        user_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 30,
    ) -> List[models.DietPlan]:
        query = self.session.query(models.DietPlan).filter(models.DietPlan.user_id == user_id)
        if start:
            query = query.filter(models.DietPlan.date >= start)
        if end:
            query = query.filter(models.DietPlan.date <= end)
        return query.order_by(models.DietPlan.date.desc()).limit(limit).all()

    def get_for_user(self, user_id: int, plan_id: int) -> models.DietPlan:
        plan = self.get_by_id(plan_id)
        if plan is None or plan.user_id != user_id:
            raise NotFoundError("DietPlan", plan_id)
        return plan

    def delete_for_user(self, user_id: int, plan_id: int) -> None:
        self.delete(self.get_for_user(user_id, plan_id))


class WorkoutPlanStore(BaseRepository[models.WorkoutPlan]):
    conflict_message = "Workout plan overlaps existing cycle"

    def __init__(self, session: Session):
        super().__init__(models.WorkoutPlan, session)

    def find_overlapping(
        self, user_id: int, start: date, end: date, status: str = "active"
    ) -> Optional[models.WorkoutPlan]:
        """First plan of `status` whose [start_date, end_date] intersects [start, end]."""
        return (
            self.session.query(models.WorkoutPlan)
            .filter(
                models.WorkoutPlan.user_id == user_id,
                models.WorkoutPlan.status == status,
                models.WorkoutPlan.start_date <= end,
                models.WorkoutPlan.end_date >= start,
            )
            .first()
        )

    def lock_user(self, user_id: int) -> None:
        (
            self.session.query(models.User)
            .filter(models.User.id == user_id)
            .update({models.User.id: models.User.id}, synchronize_session=False)
        )

    def insert_plan(self, plan: models.WorkoutPlan) -> models.WorkoutPlan:
        """Check for an overlapping active cycle and insert in one transaction.

        A no-op write to the owning user row opens the transaction first. It
        holds a row lock on PostgreSQL and the database write lock on SQLite
        until commit, so concurrent inserts for the same user are serialized
        between the check and the insert.
        """
        self.lock_user(plan.user_id)
        if plan.status == "active":
            overlap = self.find_overlapping(plan.user_id, plan.start_date, plan.end_date)
            if overlap is not None:
                self.session.rollback()
                raise ConflictError(self.conflict_message, existing_id=overlap.id)
        return self.create(plan)

    def list_expired_active(self, today: date) -> List[models.WorkoutPlan]:
        return (
            self.session.query(models.WorkoutPlan)
            .filter(models.WorkoutPlan.status == "active", models.WorkoutPlan.end_date < today)
            .order_by(models.WorkoutPlan.id)
            .all()
        )

    def mark_completed(self, plan: models.WorkoutPlan) -> models.WorkoutPlan:
        plan.status = "completed"
        return self.update(plan)

    def list_for_user(
        self,
        user_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = 20,
    ) -> List[models.WorkoutPlan]:
        query = self.session.query(models.WorkoutPlan).filter(models.WorkoutPlan.user_id == user_id)
        if start:
            query = query.filter(models.WorkoutPlan.start_date >= start)
        if end:
            query = query.filter(models.WorkoutPlan.start_date <= end)
        return query.order_by(models.WorkoutPlan.start_date.desc()).limit(limit).all()

    def get_for_user(self, user_id: int, plan_id: int) -> models.WorkoutPlan:
        plan = self.get_by_id(plan_id)
        if plan is None or plan.user_id != user_id:
            raise NotFoundError("WorkoutPlan", plan_id)
        return plan

    def delete_for_user(self, user_id: int, plan_id: int) -> None:
        self.delete(self.get_for_user(user_id, plan_id))
