from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class LoanCreate(BaseModel):
    """
    Loan submission. Shape only: direction, amount, rate and date ordering are
    checked by services.loans so that non-HTTP callers get the same rules.
    """
    type: str
    amount: Decimal
    interest_rate: Decimal = Decimal("0")
    start_date: date
    due_date: date
    borrower_name: Optional[str] = None
    borrower_address: Optional[str] = None
    borrower_phone: Optional[str] = None
    lender_name: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class LoanStatusUpdate(BaseModel):
    status: Literal["pending", "paid"]


class InterestBreakdown(BaseModel):
    months: int = Field(..., ge=1)
    interest: Decimal
    total_payable: Decimal
