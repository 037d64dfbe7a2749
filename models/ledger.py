from sqlalchemy import Column, Date, DateTime, Numeric, String, Text, func
from sqlalchemy.orm import validates

from database import Base
from exceptions import ValidationError

INCOME_CATEGORIES = ("Salary", "Freelance", "Investment", "Business", "Gift", "Loan", "Repayment", "Other")
EXPENSE_CATEGORIES = (
    "Food",
    "Travel",
    "Shopping",
    "Entertainment",
    "Bills",
    "Health",
    "Education",
    "Other",
    "Lending",
    "Repayment",
)


class Income(Base):
    __tablename__ = "incomes"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    source = Column(String(256), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String(32), nullable=False, default="Other")
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @validates("category")
    def _validate_category(self, key, value):
        if value not in INCOME_CATEGORIES:
            raise ValidationError("Invalid income category", {"category": value})
        return value


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(256), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String(32), nullable=False, default="Other")
    date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @validates("category")
    def _validate_category(self, key, value):
        if value not in EXPENSE_CATEGORIES:
            raise ValidationError("Invalid expense category", {"category": value})
        return value
