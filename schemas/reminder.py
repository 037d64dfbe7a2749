from typing import Any

from pydantic import BaseModel, Field


class ReminderFailure(BaseModel):
    loan_id: str
    error: str


class ReminderReport(BaseModel):
    """Outcome of one scan over the open loans."""
    scanned: int = 0
    created: int = 0
    marked_overdue: int = 0
    failures: list[ReminderFailure] = Field(default_factory=list)

    def to_results(self) -> dict[str, Any]:
        """camelCase dict stored on ReminderRun.results."""
        return {
            "scanned": self.scanned,
            "created": self.created,
            "markedOverdue": self.marked_overdue,
            "failures": [{"loanId": f.loan_id, "error": f.error} for f in self.failures],
        }
