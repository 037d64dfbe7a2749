from sqlalchemy import Column, Date, DateTime, Numeric, String, Text, func
from sqlalchemy.orm import relationship, validates

from database import Base
from exceptions import ValidationError

LOAN_DIRECTIONS = ("lending", "borrowing")
LOAN_STATUSES = ("pending", "paid", "overdue")
LENDER_CATEGORIES = ("Bank", "Friends", "Third Party")


class Loan(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    type = Column(String(16), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    # Percent per month
    interest_rate = Column(Numeric(7, 4), nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    total_interest = Column(Numeric(14, 2), nullable=False, default=0)
    total_payable = Column(Numeric(14, 2), nullable=False)
    status = Column(String(16), nullable=False, default="pending", index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Lending counterparty
    borrower_name = Column(String(256), nullable=True)
    borrower_address = Column(Text, nullable=True)
    borrower_phone = Column(String(32), nullable=True)
    # Borrowing counterparty
    lender_name = Column(String(256), nullable=True)
    category = Column(String(32), nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    notifications = relationship(
        "Notification",
        back_populates="loan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("type")
    def _validate_type(self, key, value):
        if value not in LOAN_DIRECTIONS:
            raise ValidationError("Type must be 'lending' or 'borrowing'", {"type": value})
        return value

    @validates("status")
    def _validate_status(self, key, value):
        if value not in LOAN_STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(LOAN_STATUSES)}", {"status": value})
        return value

    @validates("category")
    def _validate_category(self, key, value):
        if value is not None and value not in LENDER_CATEGORIES:
            raise ValidationError(
                f"Category must be one of {', '.join(LENDER_CATEGORIES)}", {"category": value}
            )
        return value

    def apply_terms(self, breakdown) -> None:
        """Store the computed interest and payoff; the only writer of these two columns."""
        self.total_interest = breakdown.interest
        self.total_payable = breakdown.total_payable

    @property
    def counterparty(self) -> str:
        name = self.borrower_name if self.type == "lending" else self.lender_name
        return name or "Someone"
