"""
Loan lifecycle: creation with computed payoff, payoff with ledger reversal,
system-driven overdue transition, and owner deletion.

States: pending -> paid, pending -> overdue, overdue -> paid. Nothing leaves paid.
Functions take the caller's session and never commit; the loan write and its
ledger mirror are committed (or rolled back) together by the caller.
"""
from __future__ import annotations

import math
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import AlreadyPaid, NotFound, StorageError, ValidationError
from models import Loan, Notification
from models.loan import LOAN_DIRECTIONS, LOAN_STATUSES
from schemas.loan import LoanCreate
from services.interest import MonthPolicy, compute, normalize_terms
from services.ledger_mirror import mirror_forward, mirror_reverse

logger = structlog.get_logger(__name__)


async def create_loan(
    session: AsyncSession,
    user_id: str,
    data: LoanCreate,
    policy: MonthPolicy = "calendar",
    currency: str = "₹",
) -> Loan:
    """
    Validate, compute interest, persist as pending, mirror into the ledger, then
    write the initial due-date notification. All validation happens before the first write.
    """
    if data.type not in LOAN_DIRECTIONS:
        raise ValidationError("Type must be 'lending' or 'borrowing'", {"type": data.type})
    amount, rate = normalize_terms(data.amount, data.interest_rate)
    breakdown = compute(amount, rate, data.start_date, data.due_date, policy)

    lending = data.type == "lending"
    loan = Loan(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        user_id=user_id,
        type=data.type,
        amount=amount,
        interest_rate=rate,
        start_date=data.start_date,
        due_date=data.due_date,
        status="pending",
        borrower_name=data.borrower_name if lending else None,
        borrower_address=data.borrower_address if lending else None,
        borrower_phone=data.borrower_phone if lending else None,
        lender_name=None if lending else data.lender_name,
        category=None if lending else (data.category or "Friends"),
        notes=data.notes,
    )
    loan.apply_terms(breakdown)

    try:
        session.add(loan)
        await session.flush()
    except SQLAlchemyError as e:
        logger.error("loan_write_failed", user_id=user_id, exc_info=True)
        raise StorageError("Failed to create loan") from e

    await mirror_forward(session, loan)
    logger.info(
        "loan_created",
        loan_id=loan.id,
        user_id=user_id,
        type=loan.type,
        months=breakdown.months,
        total_payable=str(loan.total_payable),
    )

    await _add_due_notification(session, loan, currency)
    return loan


async def _add_due_notification(session: AsyncSession, loan: Loan, currency: str) -> None:
    # Secondary write: the loan and its mirror stay even if this fails.
    try:
        async with session.begin_nested():
            session.add(
                Notification(
                    id=f"ntf-{uuid.uuid4().hex[:12]}",
                    user_id=loan.user_id,
                    loan_id=loan.id,
                    type="loan_reminder",
                    title=f"Loan Due: {currency}{loan.amount}",
                    message=f"Due on {loan.due_date.strftime('%d/%m/%Y')}",
                    due_date=loan.due_date,
                    reminder_date=loan.due_date,
                )
            )
            await session.flush()
    except SQLAlchemyError:
        logger.warning("initial_notification_failed", loan_id=loan.id, exc_info=True)


async def get_loan(session: AsyncSession, loan_id: str, user_id: str) -> Loan:
    result = await session.execute(select(Loan).where(Loan.id == loan_id, Loan.user_id == user_id))
    loan = result.scalar_one_or_none()
    if not loan:
        raise NotFound("Loan", loan_id)
    return loan


async def mark_paid(
    session: AsyncSession,
    loan_id: str,
    user_id: str,
    now: Optional[datetime] = None,
) -> Loan:
    """
    pending/overdue -> paid and write the reversing ledger entry.
    The status change is a conditional UPDATE, so of two racing payoffs only one
    matches a row; the other gets AlreadyPaid and writes nothing.
    """
    now = now or datetime.now(timezone.utc)
    loan = await get_loan(session, loan_id, user_id)
    if loan.status == "paid":
        raise AlreadyPaid(loan_id)

    result = await session.execute(
        update(Loan)
        .where(Loan.id == loan_id, Loan.status != "paid")
        .values(status="paid", paid_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyPaid(loan_id)
    await session.refresh(loan)

    await mirror_reverse(session, loan, now.date())
    logger.info("loan_paid", loan_id=loan.id, user_id=user_id, total_payable=str(loan.total_payable))
    return loan


async def mark_overdue(session: AsyncSession, loan_id: str) -> bool:
    """pending -> overdue. Returns False when the loan was not pending (already overdue, paid, or gone)."""
    result = await session.execute(
        update(Loan)
        .where(Loan.id == loan_id, Loan.status == "pending")
        .values(status="overdue", updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    changed = result.rowcount > 0
    if changed:
        logger.info("loan_overdue", loan_id=loan_id)
    return changed


async def update_status(
    session: AsyncSession,
    loan_id: str,
    user_id: str,
    status: str,
    now: Optional[datetime] = None,
) -> Loan:
    """Owner-requested status change; only 'pending' and 'paid' are accepted."""
    if status == "paid":
        return await mark_paid(session, loan_id, user_id, now)
    if status != "pending":
        raise ValidationError("Status must be 'pending' or 'paid'", {"status": status})
    loan = await get_loan(session, loan_id, user_id)
    if loan.status != "pending":
        raise ValidationError(
            f"Cannot move a {loan.status} loan back to pending",
            {"loan_id": loan_id, "status": loan.status},
        )
    return loan


async def delete_loan(session: AsyncSession, loan_id: str, user_id: str) -> None:
    """Remove the loan and its notifications. Ledger mirror entries are kept as history."""
    loan = await get_loan(session, loan_id, user_id)
    await session.execute(delete(Notification).where(Notification.loan_id == loan.id))
    await session.delete(loan)
    await session.flush()
    logger.info("loan_deleted", loan_id=loan_id, user_id=user_id)


def _filters(user_id: str, type: Optional[str], status: Optional[str]) -> list:
    if type and type not in LOAN_DIRECTIONS:
        raise ValidationError("Type must be 'lending' or 'borrowing'", {"type": type})
    if status and status not in LOAN_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(LOAN_STATUSES)}", {"status": status})
    conditions = [Loan.user_id == user_id]
    if type:
        conditions.append(Loan.type == type)
    if status:
        conditions.append(Loan.status == status)
    return conditions


async def list_loans(
    session: AsyncSession,
    user_id: str,
    type: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
) -> dict[str, Any]:
    """One page of the user's loans (soonest due first) plus totals over the whole filtered set."""
    conditions = _filters(user_id, type, status)
    result = await session.execute(
        select(Loan)
        .where(*conditions)
        .order_by(Loan.due_date.asc(), Loan.created_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    loans = result.scalars().all()

    agg = await session.execute(
        select(
            func.count(Loan.id),
            func.coalesce(func.sum(Loan.amount), 0),
            func.coalesce(func.sum(Loan.total_interest), 0),
            func.coalesce(func.sum(Loan.total_payable), 0),
        ).where(*conditions)
    )
    total, amount, interest, payable = agg.one()
    return {
        "loans": loans,
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit) if total else 0,
        "totals": {"amount": amount, "interest": interest, "payable": payable},
    }


async def loan_stats(session: AsyncSession, user_id: str) -> dict[str, Any]:
    """Counts and sums per status and per direction."""
    result = await session.execute(
        select(
            Loan.status,
            Loan.type,
            func.count(Loan.id),
            func.coalesce(func.sum(Loan.amount), 0),
            func.coalesce(func.sum(Loan.total_payable), 0),
        )
        .where(Loan.user_id == user_id)
        .group_by(Loan.status, Loan.type)
    )

    def _empty() -> dict[str, Any]:
        return {"count": 0, "amount": 0, "payable": 0}

    by_status = {s: _empty() for s in LOAN_STATUSES}
    by_type = {t: _empty() for t in LOAN_DIRECTIONS}
    for status, type_, count, amount, payable in result.all():
        for bucket in (by_status[status], by_type[type_]):
            bucket["count"] += count
            bucket["amount"] += amount
            bucket["payable"] += payable
    return {"by_status": by_status, "by_type": by_type}


async def open_loans(session: AsyncSession) -> list[Loan]:
    """Every loan not yet paid, across all users."""
    result = await session.execute(select(Loan).where(Loan.status != "paid").order_by(Loan.due_date.asc()))
    return list(result.scalars().all())
