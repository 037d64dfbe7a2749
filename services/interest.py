"""
Flat-rate loan interest: rate is a percent per month, applied to the principal
for each elapsed month. Pure functions, no I/O.
"""
from __future__ import annotations

import math
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Literal

from exceptions import InvalidAmount, InvalidRange
from schemas.loan import InterestBreakdown

MonthPolicy = Literal["calendar", "thirty_day"]

_CENT = Decimal("0.01")
_RATE_STEP = Decimal("0.0001")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_terms(principal, rate) -> tuple[Decimal, Decimal]:
    """Principal to cents and rate to 4 places, the precision the loan is stored at."""
    principal = _to_decimal(principal, "amount")
    rate = _to_decimal(rate, "interestRate")
    return round_money(principal), rate.quantize(_RATE_STEP, rounding=ROUND_HALF_UP)


def _to_decimal(value, field: str) -> Decimal:
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise InvalidAmount(f"{field} must be a number", {field: value}) from e
    if not d.is_finite():
        raise InvalidAmount(f"{field} must be a finite number", {field: value})
    return d


def calendar_months(start: date, due: date) -> int:
    """Whole calendar months from start to due; a partial last month does not count. Minimum 1."""
    months = (due.year - start.year) * 12 + (due.month - start.month)
    if due.day < start.day:
        months -= 1
    return max(1, months)


def thirty_day_months(start: date, due: date) -> int:
    """Started 30-day buckets between start and due. Minimum 1."""
    return max(1, math.ceil((due - start).days / 30))


def elapsed_months(start: date, due: date, policy: MonthPolicy = "calendar") -> int:
    if policy == "calendar":
        return calendar_months(start, due)
    if policy == "thirty_day":
        return thirty_day_months(start, due)
    raise ValueError(f"Unknown month policy: {policy}")


def compute(
    principal,
    rate,
    start: date,
    due: date,
    policy: MonthPolicy = "calendar",
) -> InterestBreakdown:
    """
    Interest and payoff for a loan.
    Raises InvalidAmount for principal <= 0 or rate < 0, InvalidRange for due <= start.
    """
    principal = _to_decimal(principal, "amount")
    rate = _to_decimal(rate, "interestRate")
    if principal <= 0:
        raise InvalidAmount("Amount must be a positive number", {"amount": str(principal)})
    if rate < 0:
        raise InvalidAmount("Interest rate must be >= 0", {"interestRate": str(rate)})
    if due <= start:
        raise InvalidRange(start, due)

    months = elapsed_months(start, due, policy)
    interest = round_money(principal * rate * months / 100)
    return InterestBreakdown(
        months=months,
        interest=interest,
        total_payable=round_money(principal + interest),
    )
