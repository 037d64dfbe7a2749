from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.common import envelope, get_current_user_id
from database import get_db
from models import ReminderRun
from services.reminder_runs import get_run, run_reminders

router = APIRouter(prefix="/api/reminders", tags=["reminders"])


def _summary(results: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    # A run spans every user's loans; only counts leave the server.
    if results is None:
        return None
    return {
        "scanned": results["scanned"],
        "created": results["created"],
        "markedOverdue": results["markedOverdue"],
        "failed": len(results["failures"]),
    }


def _run_to_response(run: ReminderRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "trigger": run.trigger,
        "status": run.status,
        "startedAt": run.started_at.isoformat() if run.started_at else None,
        "completedAt": run.completed_at.isoformat() if run.completed_at else None,
        "error": run.error_message,
        "results": _summary(run.results),
    }


@router.post("/run", status_code=201)
async def start_reminder_run(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    """Run the daily reminder scan now, outside the schedule."""
    run = await run_reminders(db, trigger="manual", requested_by=user_id)
    return envelope(_run_to_response(run), "Reminder run finished")


@router.get("/runs/{run_id}")
async def get_reminder_run(run_id: str, user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    run = await get_run(db, run_id, requested_by=user_id)
    return envelope(_run_to_response(run))
