from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from exceptions import NotFound
from models import ReminderRun
from services.reminders import generate_loan_notifications

logger = structlog.get_logger(__name__)


async def run_reminders(
    session: AsyncSession,
    now: Optional[datetime] = None,
    trigger: str = "manual",
    requested_by: Optional[str] = None,
) -> ReminderRun:
    """
    Run the reminder scan and persist a ReminderRun with its counts and per-loan failures.

    The scan runs in a savepoint under the run row: if it fails as a whole, its
    writes are rolled back but the run is kept, marked failed, in the caller's
    transaction. Per-loan failures never get this far.
    """
    now = now or datetime.now(timezone.utc)
    run = ReminderRun(
        id=f"rem-{uuid.uuid4().hex[:12]}",
        trigger=trigger,
        requested_by=requested_by,
        status="running",
        started_at=datetime.now(timezone.utc),
        results=None,
    )
    session.add(run)
    await session.flush()

    try:
        async with session.begin_nested():
            report = await generate_loan_notifications(
                session,
                now,
                tz=ZoneInfo(settings.reminder_timezone),
                currency=settings.currency_symbol,
            )
    except Exception as e:
        logger.exception("reminder_run_failed", run_id=run.id, trigger=trigger)
        run.status = "failed"
        run.error_message = str(e) or type(e).__name__
    else:
        run.status = "completed_with_errors" if report.failures else "completed"
        run.results = report.to_results()
    run.completed_at = datetime.now(timezone.utc)

    await session.flush()
    return run


async def get_run(session: AsyncSession, run_id: str, requested_by: Optional[str] = None) -> ReminderRun:
    """Runs are visible only to the user who started them; scheduled runs to nobody over the API."""
    result = await session.execute(
        select(ReminderRun).where(ReminderRun.id == run_id, ReminderRun.requested_by == requested_by)
    )
    run = result.scalar_one_or_none()
    if not run:
        raise NotFound("Run", run_id)
    return run


def scheduled_job(sessionmaker: async_sessionmaker[AsyncSession]):
    """Scheduler callback: one scan in its own transaction per tick."""

    async def _job(now: datetime) -> None:
        async with sessionmaker() as session:
            async with session.begin():
                run = await run_reminders(session, now, trigger="scheduled")
        logger.info("scheduled_reminders_done", run_id=run.id, status=run.status, results=run.results)

    return _job
