"""
Shared fixtures: a fresh in-memory SQLite database per test, and loan builders.
"""
import unittest
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from database import build_engine, build_sessionmaker, init_db
from models import Loan
from schemas.loan import LoanCreate
from services.interest import compute

USER = "user-1"
OTHER_USER = "user-2"


def loan_payload(**overrides) -> LoanCreate:
    data = {
        "type": "lending",
        "amount": Decimal("10000"),
        "interest_rate": Decimal("2"),
        "start_date": date(2024, 1, 15),
        "due_date": date(2024, 4, 15),
        "borrower_name": "Asha",
        "borrower_phone": "9800000000",
        "lender_name": "Ravi",
        "category": "Bank",
    }
    data.update(overrides)
    return LoanCreate(**data)


def make_loan(due_date: date, status: str = "pending", user_id: str = USER, **kwargs) -> Loan:
    """Loan row built directly, without ledger side effects."""
    start_date = kwargs.pop("start_date", date(2000, 1, 1))
    amount = kwargs.pop("amount", Decimal("5000"))
    loan = Loan(
        id=f"loan-{uuid.uuid4().hex[:12]}",
        user_id=user_id,
        type=kwargs.pop("type", "borrowing"),
        amount=amount,
        interest_rate=Decimal("1"),
        start_date=start_date,
        due_date=due_date,
        status=status,
        lender_name="Ravi",
        category="Friends",
        **kwargs,
    )
    loan.apply_terms(compute(amount, Decimal("1"), start_date, due_date))
    return loan


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine = build_engine("sqlite+aiosqlite:///:memory:")
        await init_db(self.engine)
        self.sessionmaker = build_sessionmaker(self.engine)

    async def asyncTearDown(self):
        await self.engine.dispose()

    async def count(self, model, *where) -> int:
        async with self.sessionmaker() as session:
            return await session.scalar(select(func.count()).select_from(model).where(*where))

    async def all(self, model, *where) -> list:
        async with self.sessionmaker() as session:
            result = await session.execute(select(model).where(*where))
            return list(result.scalars().all())
