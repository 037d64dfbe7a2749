"""
Mirrors loan cash flows into the general ledger (Income / Expense).
Each call adds exactly one entry to the caller's session and flushes it; committing
is left to the caller so the loan write and its mirror land in one transaction.
"""
from __future__ import annotations

import uuid
from datetime import date

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from exceptions import LedgerWriteFailed
from models import Expense, Income, Loan
from services.interest import round_money

logger = structlog.get_logger(__name__)


def _loan_tag(loan: Loan) -> str:
    return f"Loan ID: {loan.id} | Due: {loan.due_date.isoformat()}"


async def _write(session: AsyncSession, loan: Loan, entry: Income | Expense, kind: str) -> Income | Expense:
    try:
        session.add(entry)
        await session.flush()
    except SQLAlchemyError as e:
        logger.error("ledger_write_failed", loan_id=loan.id, entry=kind, exc_info=True)
        raise LedgerWriteFailed(loan.id, kind, str(e)) from e
    logger.info("ledger_entry_written", loan_id=loan.id, entry=kind, entry_id=entry.id, amount=str(entry.amount))
    return entry


async def mirror_forward(session: AsyncSession, loan: Loan) -> Income | Expense:
    """Money leaves (lending) or arrives (borrowing) on the start date."""
    if loan.type == "lending":
        entry = Expense(
            id=f"exp-{uuid.uuid4().hex[:12]}",
            user_id=loan.user_id,
            name=f"Lent to {loan.counterparty}",
            amount=loan.amount,
            category="Lending",
            date=loan.start_date,
            notes=_loan_tag(loan),
            description=f"Lent {loan.amount} to {loan.counterparty} on {loan.start_date.isoformat()}",
        )
        return await _write(session, loan, entry, "expense")
    entry = Income(
        id=f"inc-{uuid.uuid4().hex[:12]}",
        user_id=loan.user_id,
        source=f"Borrowed from {loan.counterparty}",
        amount=loan.amount,
        category="Loan",
        date=loan.start_date,
        notes=_loan_tag(loan),
    )
    return await _write(session, loan, entry, "income")


async def mirror_reverse(session: AsyncSession, loan: Loan, paid_on: date) -> Income | Expense:
    """Principal plus interest comes back (lending) or goes out (borrowing) on paid_on."""
    total = round_money(loan.amount + loan.total_interest)
    if loan.type == "lending":
        entry = Income(
            id=f"inc-{uuid.uuid4().hex[:12]}",
            user_id=loan.user_id,
            source=f"Repaid by {loan.counterparty}",
            amount=total,
            category="Repayment",
            date=paid_on,
            notes=_loan_tag(loan),
        )
        return await _write(session, loan, entry, "income")
    entry = Expense(
        id=f"exp-{uuid.uuid4().hex[:12]}",
        user_id=loan.user_id,
        name=f"Paid to {loan.counterparty}",
        amount=total,
        category="Repayment",
        date=paid_on,
        notes=_loan_tag(loan),
        description=f"Repaid loan to {loan.counterparty}",
    )
    return await _write(session, loan, entry, "expense")
