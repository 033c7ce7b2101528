"""
APScheduler Configuration for Maintenance Sweeps

Periodic jobs keep in-flight state from going stale:
- payment-method expiry sweep (persistent SQLAlchemy job store, survives restarts)
- step-up session purge (memory job store, bound to the live service instance)
- risk velocity purge (memory job store, only when a risk engine is given)
"""
import logging
from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from .risk_engine import RiskEngine
from .step_up import StepUpVerificationService

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_JOB_ID = "payment_method_expiry_sweep"
SESSION_PURGE_JOB_ID = "step_up_session_purge"
RISK_VELOCITY_PURGE_JOB_ID = "risk_velocity_purge"


async def run_expiry_sweep() -> int:
    """Job body: expire cards whose expiry month has passed."""
    from ..db.init_db import AsyncSessionLocal
    from .payment_method_service import expire_payment_methods

    async with AsyncSessionLocal() as db:
        expired = await expire_payment_methods(db)

    logger.debug(f"Expiry sweep finished, {expired} payment method(s) expired")
    return expired


class SweepScheduler:
    """
    Background scheduler for maintenance jobs.

    Configuration:
    - AsyncIOScheduler on the FastAPI event loop
    - "default" store: SQLAlchemyJobStore in a separate SQLite file
      (prevents locking conflicts with the app database)
    - "memory" store: jobs that reference live objects
    - Coalesce: True (skip missed runs on restart)
    """

    def __init__(self, persistent: bool = True):
        jobstores = {"memory": MemoryJobStore()}
        if persistent:
            scheduler_db_path = settings.database_path.replace(".db", "_scheduler.db")
            jobstores["default"] = SQLAlchemyJobStore(
                url=f"sqlite:///{scheduler_db_path}",
                tablename="apscheduler_jobs",
                engine_options={
                    "connect_args": {"timeout": 30, "check_same_thread": False},
                    "pool_pre_ping": True,
                }
            )
        else:
            jobstores["default"] = MemoryJobStore()

        self._scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
            timezone="UTC"
        )

        logger.info(f"APScheduler initialized (persistent={persistent})")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def schedule_sweeps(
        self,
        step_up: StepUpVerificationService,
        interval_minutes: Optional[int] = None,
        risk_engine: Optional[RiskEngine] = None
    ) -> None:
        """Register the maintenance jobs, replacing any existing ones."""
        interval_minutes = interval_minutes or settings.expiry_sweep_interval_minutes

        self._scheduler.add_job(
            run_expiry_sweep,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=EXPIRY_SWEEP_JOB_ID,
            name="Payment method expiry sweep",
            jobstore="default",
            replace_existing=True,
        )

        self._scheduler.add_job(
            step_up.purge_stale,
            trigger=IntervalTrigger(minutes=settings.verification_session_ttl_minutes),
            id=SESSION_PURGE_JOB_ID,
            name="Step-up session purge",
            jobstore="memory",
            replace_existing=True,
        )

        if risk_engine is not None:
            self._scheduler.add_job(
                risk_engine.purge_stale,
                trigger=IntervalTrigger(minutes=settings.risk_velocity_window_minutes),
                id=RISK_VELOCITY_PURGE_JOB_ID,
                name="Risk velocity purge",
                jobstore="memory",
                replace_existing=True,
            )

        logger.info(
            f"Scheduled sweeps: expiry every {interval_minutes}min, "
            f"session purge every {settings.verification_session_ttl_minutes}min"
        )

    def start(self) -> None:
        """Start the scheduler. Call from the FastAPI lifespan."""
        if not self._scheduler.running:
            self._scheduler.start()
            for job in self._scheduler.get_jobs():
                logger.info(f"  - Job {job.id}: next_run={job.next_run_time}")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info(f"Scheduler shutdown (wait={wait})")

    def get_job(self, job_id: str):
        return self._scheduler.get_job(job_id)

    def get_all_jobs(self):
        return self._scheduler.get_jobs()
