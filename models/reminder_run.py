from sqlalchemy import JSON, Column, DateTime, String, Text, func

from database import Base


class ReminderRun(Base):
    __tablename__ = "reminder_runs"

    id = Column(String(64), primary_key=True, index=True)
    trigger = Column(String(16), nullable=False, default="manual")
    # User who started a manual run; NULL for scheduled runs
    requested_by = Column(String(64), nullable=True, index=True)
    status = Column(String(32), nullable=False, default="pending", index=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    # Counts and per-loan failures of the scan
    results = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
