from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship, validates

from database import Base
from exceptions import ValidationError

NOTIFICATION_TYPES = ("loan_reminder", "loan_due", "loan_overdue")


def reminder_key(reminder_date) -> str:
    """Non-null stand-in for reminder_date in the uniqueness constraint."""
    return reminder_date.isoformat() if reminder_date else "-"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("loan_id", "type", "reminder_key", name="uq_notification_loan_type_reminder"),
    )

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    loan_id = Column(String(64), ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    title = Column(String(256), nullable=False)
    message = Column(Text, nullable=False)
    due_date = Column(Date, nullable=True)
    reminder_date = Column(Date, nullable=True)
    reminder_key = Column(String(16), nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    loan = relationship("Loan", back_populates="notifications")

    def __init__(self, **kwargs):
        kwargs.setdefault("reminder_key", reminder_key(kwargs.get("reminder_date")))
        super().__init__(**kwargs)

    @validates("type")
    def _validate_type(self, key, value):
        if value not in NOTIFICATION_TYPES:
            raise ValidationError("Invalid notification type", {"type": value})
        return value
