"""
Tests for the nightly expiry sweep.

These tests verify:
  - Past-due cards are marked EXPIRED, current ones are left alone
  - A card expiring today is still valid today
  - The sweep is idempotent: a second run finds nothing to do
  - run_once() commits through its own session
  - Storage failures are logged and the run reports 0 instead of raising
  - The scheduler registers a daily job and shuts down cleanly
"""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from app.exceptions import StorageError
from app.models.card import Card, CardStatus
from app.services import card_store
from app.services.card_lifecycle import utc_today
from app.services.expiry_sweeper import SWEEP_JOB_ID, ExpirySweeper, sweep_expired_cards


class TestSweepExpiredCards:
    """Tests for sweep_expired_cards()."""

    async def test_marks_past_due_cards(self, db_session, make_user, make_card):
        owner = await make_user()
        today = utc_today()
        overdue = await make_card(owner, expiry_date=today - timedelta(days=1))
        overdue_blocked = await make_card(
            owner, status=CardStatus.BLOCKED, expiry_date=today - timedelta(days=90)
        )
        last_day = await make_card(owner, expiry_date=today)
        future = await make_card(owner, expiry_date=today + timedelta(days=30))

        count = await sweep_expired_cards(db_session, today)

        assert count == 2
        assert overdue.status == CardStatus.EXPIRED
        assert overdue_blocked.status == CardStatus.EXPIRED
        assert last_day.status == CardStatus.ACTIVE
        assert future.status == CardStatus.ACTIVE

    async def test_second_run_is_a_noop(self, db_session, make_user, make_card):
        owner = await make_user()
        await make_card(owner, expiry_date=utc_today() - timedelta(days=1))

        assert await sweep_expired_cards(db_session) == 1
        assert await sweep_expired_cards(db_session) == 0

    async def test_balance_untouched(self, db_session, make_user, make_card):
        owner = await make_user()
        card = await make_card(owner, balance="99.99", expiry_date=utc_today() - timedelta(days=1))

        await sweep_expired_cards(db_session)
        assert card.balance_cents == 9999

    async def test_empty_database(self, db_session):
        assert await sweep_expired_cards(db_session) == 0


class TestExpirySweeper:
    """Tests for the scheduled ExpirySweeper wrapper."""

    async def test_run_once_commits(self, session_factory, db_session, make_user, make_card):
        owner = await make_user()
        card = await make_card(owner, expiry_date=utc_today() - timedelta(days=1))
        await db_session.commit()

        sweeper = ExpirySweeper(session_factory)
        assert await sweeper.run_once() == 1

        async with session_factory() as other:
            stored = await other.get(Card, card.id)
            assert stored.status == CardStatus.EXPIRED

    async def test_run_once_with_explicit_day(self, session_factory, db_session, make_user, make_card):
        owner = await make_user()
        await make_card(owner, expiry_date=utc_today() + timedelta(days=5))
        await db_session.commit()

        sweeper = ExpirySweeper(session_factory)
        assert await sweeper.run_once(today=utc_today() + timedelta(days=6)) == 1

    async def test_storage_failure_is_logged_not_raised(self, session_factory, caplog):
        sweeper = ExpirySweeper(session_factory)
        failing = AsyncMock(side_effect=StorageError("database is locked"))

        with patch.object(card_store, "list_expired_not_marked", new=failing):
            with caplog.at_level(logging.ERROR, logger="app.services.expiry_sweeper"):
                assert await sweeper.run_once() == 0

        assert "Expiry sweep failed" in caplog.text

    async def test_start_registers_daily_job(self, session_factory):
        sweeper = ExpirySweeper(session_factory, hour=3, minute=15)
        sweeper.start()
        try:
            assert sweeper.running
            job = sweeper._scheduler.get_job(SWEEP_JOB_ID)
            assert job is not None
            assert "hour='3'" in str(job.trigger)
            assert "minute='15'" in str(job.trigger)
        finally:
            sweeper.shutdown()
        assert not sweeper.running

    async def test_shutdown_before_start_is_safe(self, session_factory):
        sweeper = ExpirySweeper(session_factory)
        sweeper.shutdown()
        assert not sweeper.running
