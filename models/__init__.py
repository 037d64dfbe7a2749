from models.ledger import Expense, Income
from models.loan import Loan
from models.notification import Notification
from models.reminder_run import ReminderRun

__all__ = [
    "Expense",
    "Income",
    "Loan",
    "Notification",
    "ReminderRun",
]
