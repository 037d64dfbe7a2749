"""
Daily loan reminder scan.

For every loan that is not paid, the whole-day distance from today (in the
reminder timezone) to the due date selects at most one milestone:

    15 days  -> loan_reminder (reminder date = due - 15d)
     2 days  -> loan_reminder (reminder date = due - 2d)
     0 days  -> loan_due
    < 0      -> loan_overdue, and the loan moves pending -> overdue

Re-running on the same day creates nothing new: each notification is looked up
before insert, and the (loan, type, reminder key) unique constraint catches
the case where a concurrent run inserts first.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Loan, Notification
from models.notification import reminder_key
from schemas.reminder import ReminderFailure, ReminderReport
from services.loans import mark_overdue, open_loans

logger = structlog.get_logger(__name__)

REMINDER_OFFSETS = (15, 2)


def pick_milestone(loan: Loan, today: date) -> Optional[tuple[str, Optional[date], int]]:
    """(type, reminder_date, days_left) for the loan's milestone today, or None."""
    diff = (loan.due_date - today).days
    if diff in REMINDER_OFFSETS:
        return "loan_reminder", loan.due_date - timedelta(days=diff), diff
    if diff == 0:
        return "loan_due", None, diff
    if diff < 0 and loan.status == "pending":
        return "loan_overdue", None, diff
    return None


def _content(loan: Loan, milestone: str, days_left: int, currency: str) -> tuple[str, str]:
    amount = f"{currency}{loan.amount}"
    due = loan.due_date.strftime("%d %b %Y")
    if milestone == "loan_reminder":
        return "⏰ Loan Due Soon", f"Your loan of {amount} is due in {days_left} days ({due})."
    if milestone == "loan_due":
        return "📅 Loan Due Today", f"Your loan of {amount} is due today."
    return "⚠️ Loan Overdue", f"Your loan of {amount} was due on {due}. Please repay soon."


async def create_notification(
    session: AsyncSession,
    loan: Loan,
    milestone: str,
    reminder_date: Optional[date],
    title: str,
    message: str,
) -> bool:
    """Insert unless (loan, milestone, reminder date) already exists. Returns True if inserted."""
    key = reminder_key(reminder_date)
    existing = await session.execute(
        select(Notification.id).where(
            Notification.loan_id == loan.id,
            Notification.type == milestone,
            Notification.reminder_key == key,
        )
    )
    if existing.first() is not None:
        return False
    try:
        async with session.begin_nested():
            session.add(
                Notification(
                    id=f"ntf-{uuid.uuid4().hex[:12]}",
                    user_id=loan.user_id,
                    loan_id=loan.id,
                    type=milestone,
                    title=title,
                    message=message,
                    due_date=loan.due_date,
                    reminder_date=reminder_date,
                    reminder_key=key,
                )
            )
            await session.flush()
    except IntegrityError:
        # Lost the race to a concurrent run; its row satisfies the milestone.
        logger.info("notification_exists", loan_id=loan.id, type=milestone, reminder_key=key)
        return False
    return True


async def _process_loan(
    session: AsyncSession,
    loan: Loan,
    today: date,
    currency: str,
) -> tuple[bool, bool]:
    """Returns (notification created, loan marked overdue)."""
    picked = pick_milestone(loan, today)
    if picked is None:
        return False, False
    milestone, reminder_date, days_left = picked
    title, message = _content(loan, milestone, days_left, currency)
    created = await create_notification(session, loan, milestone, reminder_date, title, message)
    overdue = milestone == "loan_overdue" and await mark_overdue(session, loan.id)
    return created, overdue


async def generate_loan_notifications(
    session: AsyncSession,
    now: datetime,
    tz: Optional[tzinfo] = None,
    currency: str = "₹",
) -> ReminderReport:
    """
    Scan all open loans once. A failure on one loan rolls back that loan's
    savepoint, is recorded on the report, and the scan moves on.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    today = (now.astimezone(tz) if tz is not None else now).date()
    report = ReminderReport()
    loans = await open_loans(session)
    for loan in loans:
        report.scanned += 1
        # Read before the savepoint; a rollback expires the instance.
        loan_id = loan.id
        try:
            async with session.begin_nested():
                created, overdue = await _process_loan(session, loan, today, currency)
        except Exception as e:
            logger.error("reminder_failed", loan_id=loan_id, exc_info=True)
            report.failures.append(ReminderFailure(loan_id=loan_id, error=str(e) or type(e).__name__))
            continue
        report.created += int(created)
        report.marked_overdue += int(overdue)
    logger.info(
        "reminders_generated",
        today=today.isoformat(),
        scanned=report.scanned,
        created=report.created,
        marked_overdue=report.marked_overdue,
        failed=len(report.failures),
    )
    return report
