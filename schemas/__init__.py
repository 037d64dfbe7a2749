from schemas.loan import InterestBreakdown, LoanCreate, LoanStatusUpdate
from schemas.reminder import ReminderFailure, ReminderReport

__all__ = [
    "InterestBreakdown",
    "LoanCreate",
    "LoanStatusUpdate",
    "ReminderFailure",
    "ReminderReport",
]
