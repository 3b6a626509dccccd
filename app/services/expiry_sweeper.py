"""
Expiry sweep — the nightly job that marks past-due cards EXPIRED.

Lazy expiry (card_lifecycle.ensure_current_status and the listings) only
fixes the cards somebody reads. The sweep fixes the rest, so stored
statuses stay current for idle cards as well.

The job:
  - runs once a day at a fixed time (APScheduler cron trigger, UTC by default)
  - selects cards with expiry_date < today and status != EXPIRED
  - marks them EXPIRED and writes them back in one batch
  - is idempotent: a second run on the same day finds nothing to do

Failures:
  A storage failure is logged, the session is rolled back and the job simply
  waits for its next tick. It never raises into the scheduler, and it never
  takes the per-card transfer locks: the sweep only writes `status`, and
  transfers only write `balance_cents`, so neither can clobber the other.
"""

import logging
from datetime import date

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import StorageError
from app.services.card_lifecycle import expire_past_due_cards


logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "expire-cards"


async def sweep_expired_cards(db: AsyncSession, today: date | None = None) -> int:
    """
    Mark every past-due card EXPIRED in the given session (not committed).

    Returns:
        The number of cards that changed status.
    """
    return await expire_past_due_cards(db, today)


class ExpirySweeper:
    """
    Schedules sweep_expired_cards() once a day on an AsyncIOScheduler.

    Each run opens its own session from `session_factory`, independent of
    any request being served.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        hour: int = 0,
        minute: int = 0,
        timezone: str = "UTC",
    ):
        self._session_factory = session_factory
        self._hour = hour
        self._minute = minute
        self._scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60 * 60,
            },
            timezone=timezone,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def run_once(self, today: date | None = None) -> int:
        """
        Run one sweep and commit it.

        Returns the number of cards expired, or 0 if the run failed (the
        failure is logged and the next scheduled run retries).
        """
        async with self._session_factory() as db:
            try:
                expired = await sweep_expired_cards(db, today)
                await db.commit()
            except (StorageError, SQLAlchemyError):
                await db.rollback()
                logger.exception("Expiry sweep failed; will retry on the next run")
                return 0

        logger.info("Expiry sweep marked %d card(s) as EXPIRED", expired)
        return expired

    def start(self) -> None:
        """Register the daily job and start the scheduler (needs a running event loop)."""
        self._scheduler.add_job(
            self.run_once,
            "cron",
            id=SWEEP_JOB_ID,
            hour=self._hour,
            minute=self._minute,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Expiry sweep scheduled daily at %02d:%02d", self._hour, self._minute
        )

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Expiry sweep scheduler stopped")
