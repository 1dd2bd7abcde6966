"""Background scheduler for automatic plan maintenance.

Three daily jobs run on their own timer threads:

- subscription update (01:00): expire lapsed active/trial subscriptions
- daily diet (02:00): generate today's diet plan for every eligible user
- workout expiry (03:00): complete expired cycles and start a new one

Each job can also be triggered manually. Sweeps are best-effort batches: a
failure for one user or plan is logged and counted, and the sweep moves on.
Execution state lives in memory only and resets with the process.
"""

import threading
from datetime import datetime, time, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from core import config
from core.exceptions import ConflictError
from core.logger import get_logger
from database.stores import DietPlanStore, ProgressLogStore, UserStore, WorkoutPlanStore
from schemas.scheduler_schema import JobStatus, SchedulerStatus
from services.diet_generation import DietGenerationService
from services.workout_generation import WorkoutGenerationService, end_date_for

logger = get_logger("services.plan_scheduler")

SUBSCRIPTION_UPDATE = "subscription_update"
DAILY_DIET = "daily_diet"
WORKOUT_EXPIRY = "workout_expiry"

DEFAULT_SCHEDULE_TIMES = {
    SUBSCRIPTION_UPDATE: config.SUBSCRIPTION_UPDATE_TIME,
    DAILY_DIET: config.DAILY_DIET_TIME,
    WORKOUT_EXPIRY: config.WORKOUT_EXPIRY_TIME,
}


def _parse_hhmm(value: str):
    hour, minute = value.strip().split(":")
    hour, minute = int(hour), int(minute)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time of day: {value}")
    return hour, minute


class DailyJob:
    """Runs `action` every day at a fixed local wall-clock time.

    A `threading.Timer` is armed for the next occurrence and re-armed after
    each run. `stop()` cancels the pending timer; a run already in progress
    is allowed to finish.
    """

    def __init__(
        self,
        name: str,
        at: str,
        action: Callable[[], object],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.name = name
        self.hour, self.minute = _parse_hhmm(at)
        self._action = action
        self._clock = clock
        self._timer: Optional[threading.Timer] = None
        self._scheduled_for: Optional[datetime] = None
        self._last_slot: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def cron(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    @property
    def description(self) -> str:
        suffix = "AM" if self.hour < 12 else "PM"
        hour12 = self.hour % 12 or 12
        return f"Daily at {hour12}:{self.minute:02d} {suffix}"

    @property
    def is_active(self) -> bool:
        return self._timer is not None

    def next_run_after(self, now: datetime) -> datetime:
        """Next HH:MM after `now`, and never a slot that has already run.

        A timer that fires a little early by the wall clock would otherwise
        see today's slot still ahead and run the job twice.
        """
        next_run = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        if self._last_slot is not None and next_run <= self._last_slot:
            next_run = self._last_slot + timedelta(days=1)
        return next_run

    def seconds_until_next_run(self) -> float:
        now = self._clock()
        return max(0.0, (self.next_run_after(now) - now).total_seconds())

    def start(self) -> None:
        with self._lock:
            if self._timer is None:
                self._arm()

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _arm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        now = self._clock()
        next_run = self.next_run_after(now)
        self._scheduled_for = next_run
        timer = threading.Timer(max(0.0, (next_run - now).total_seconds()), self._fire)
        timer.name = f"scheduler-{self.name}"
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _fire(self) -> None:
        logger.info("Scheduled job %s triggered", self.name)
        self._last_slot = self._scheduled_for
        try:
            self._action()
        except Exception:
            logger.exception("Scheduled job %s failed", self.name)
        finally:
            with self._lock:
                if self._timer is not None:
                    self._arm()


class PlanScheduler:
    """Owns the three maintenance jobs and their execution state.

    Args:
        session_factory: Callable returning a new SQLAlchemy session.
        diet_service: Diet generation pipeline.
        workout_service: Workout generation pipeline.
        clock: Returns the current local time; injectable for tests.
        utc_clock: Returns the current naive UTC time, the frame subscription
            end dates are stored in.
        schedule_times: Optional overrides of the HH:MM trigger per job.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        diet_service: DietGenerationService,
        workout_service: WorkoutGenerationService,
        clock: Callable[[], datetime] = datetime.now,
        schedule_times: Optional[Dict[str, str]] = None,
        utc_clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.diet_service = diet_service
        self.workout_service = workout_service
        self._clock = clock
        self._utc_clock = utc_clock

        times = dict(DEFAULT_SCHEDULE_TIMES)
        times.update(schedule_times or {})
        self._jobs = {
            SUBSCRIPTION_UPDATE: DailyJob(SUBSCRIPTION_UPDATE, times[SUBSCRIPTION_UPDATE],
                                          self.trigger_subscription_update, clock),
            DAILY_DIET: DailyJob(DAILY_DIET, times[DAILY_DIET],
                                 self.trigger_daily_diet_generation, clock),
            WORKOUT_EXPIRY: DailyJob(WORKOUT_EXPIRY, times[WORKOUT_EXPIRY],
                                     self.trigger_workout_expiry_check, clock),
        }
        self._state_lock = threading.Lock()
        self._last_execution: Dict[str, Optional[datetime]] = {name: None for name in self._jobs}
        self._execution_counts: Dict[str, int] = {name: 0 for name in self._jobs}

    @property
    def is_running(self) -> bool:
        return any(job.is_active for job in self._jobs.values())

    def start(self) -> None:
        logger.info("Starting automatic plan generation scheduler")
        for job in self._jobs.values():
            job.start()
            logger.info("  - %s: %s", job.name, job.description)

    def stop(self) -> None:
        for job in self._jobs.values():
            job.stop()
        logger.info("Scheduled jobs stopped")

    def _record_execution(self, name: str) -> None:
        with self._state_lock:
            self._last_execution[name] = self._clock()
            self._execution_counts[name] += 1

    def trigger_subscription_update(self) -> Dict[str, int]:
        """Expire every active/trial subscription whose end date has passed."""
        self._record_execution(SUBSCRIPTION_UPDATE)
        logger.info("Checking for expired subscriptions")
        db = self.session_factory()
        try:
            count = UserStore(db).bulk_update_expired_subscriptions(self._utc_clock())
        finally:
            db.close()
        logger.info("Auto-expired %s subscriptions", count)
        return {"expired": count}

    def trigger_daily_diet_generation(self) -> Dict[str, int]:
        """Generate today's diet plan for each eligible user that lacks one.

        Yesterday's progress log, when present, is passed as context.
        """
        self._record_execution(DAILY_DIET)
        logger.info("Starting daily diet generation")
        today = self._clock().date()
        day_start = datetime.combine(today, time.min)
        yesterday_start = day_start - timedelta(days=1)

        db = self.session_factory()
        try:
            users = UserStore(db).list_eligible_for_daily_generation()
            logger.info("Found %s users for diet generation", len(users))
            generated = skipped = errors = 0

            for profile in users:
                try:
                    if DietPlanStore(db).find_plan(profile.user_id, today) is not None:
                        skipped += 1
                        continue
                    log = ProgressLogStore(db).find_latest_before(profile.user_id, day_start, since=yesterday_start)
                    log_id = log.id if log is not None else None
                    plan = self.diet_service.generate(db, profile.user_id, today, log_id)
                    self.diet_service.save_diet_plan(db, profile.user_id, today, plan, "auto-daily", log_id)
                    generated += 1
                    logger.info("Generated diet for %s", profile.email)
                except ConflictError:
                    skipped += 1
                    logger.info("Diet for %s was created concurrently, skipping", profile.email)
                except Exception as exc:
                    db.rollback()
                    errors += 1
                    logger.error("Diet generation failed for %s: %s", profile.email, exc)
        finally:
            db.close()

        summary = {"total": len(users), "generated": generated, "skipped": skipped, "errors": errors}
        logger.info("Daily diet generation complete: %s", summary)
        return summary

    def trigger_workout_expiry_check(self) -> Dict[str, int]:
        """Complete expired active cycles and renew them from today.

        The renewal keeps the expired cycle's duration. Users with an
        incomplete profile, or who already have an overlapping active cycle,
        are skipped.
        """
        self._record_execution(WORKOUT_EXPIRY)
        logger.info("Checking for expired workout plans")
        today = self._clock().date()

        db = self.session_factory()
        try:
            store = WorkoutPlanStore(db)
            expired_plans = store.list_expired_active(today)
            logger.info("Found %s expired workout plans", len(expired_plans))
            generated = skipped = errors = 0

            for expired in expired_plans:
                plan_id, user_id = expired.id, expired.user_id
                weeks = expired.duration_weeks or 4
                try:
                    store.mark_completed(expired)

                    profile = UserStore(db).find_profile(user_id)
                    if not profile.is_complete:
                        skipped += 1
                        logger.info("Skipping %s: incomplete profile", profile.email)
                        continue

                    if store.find_overlapping(user_id, today, end_date_for(today, weeks)) is not None:
                        skipped += 1
                        logger.info("Skipping %s: overlapping plan exists", profile.email)
                        continue

                    cycle = self.workout_service.generate(db, user_id, today, weeks)
                    self.workout_service.save_workout_plan(db, user_id, today, cycle)
                    generated += 1
                    logger.info("Generated new workout cycle for %s", profile.email)
                except ConflictError:
                    skipped += 1
                    logger.info("Workout cycle for user=%s was created concurrently, skipping", user_id)
                except Exception as exc:
                    db.rollback()
                    errors += 1
                    logger.error("Workout renewal failed for plan=%s user=%s: %s", plan_id, user_id, exc)
        finally:
            db.close()

        summary = {"expired": len(expired_plans), "generated": generated, "skipped": skipped, "errors": errors}
        logger.info("Workout expiry check complete: %s", summary)
        return summary

    def get_status(self) -> SchedulerStatus:
        now = self._clock()
        with self._state_lock:
            schedules = {
                name: JobStatus(
                    cron=job.cron,
                    description=job.description,
                    is_active=job.is_active,
                    last_execution=self._last_execution[name].isoformat() if self._last_execution[name] else None,
                    execution_count=self._execution_counts[name],
                )
                for name, job in self._jobs.items()
            }
        return SchedulerStatus(
            is_running=self.is_running,
            server_time=now.isoformat(),
            server_timezone=now.astimezone().tzname() or "UTC",
            schedules=schedules,
        )
