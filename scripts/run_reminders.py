"""
Run the loan reminder scan once, outside the daily schedule.
Run: python -m scripts.run_reminders [--date YYYY-MM-DD]   (from the project root)

--date simulates the scan as of 12:00 on that day in the reminder timezone.
"""
import argparse
import asyncio
import os
import sys
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

# Add parent so we can import from the project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from config import settings
from database import AsyncSessionLocal, init_db
from logging_config import configure_logging
from services.reminder_runs import run_reminders

logger = structlog.get_logger("scripts.run_reminders")


async def main(on: date | None) -> int:
    await init_db()
    now = None
    if on is not None:
        now = datetime.combine(on, time(12, 0), tzinfo=ZoneInfo(settings.reminder_timezone))
    async with AsyncSessionLocal() as session:
        async with session.begin():
            run = await run_reminders(session, now, trigger="cli")
    logger.info("reminder_run_finished", run_id=run.id, status=run.status, results=run.results)
    return 0 if run.status == "completed" else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Simulated day (YYYY-MM-DD)")
    args = parser.parse_args()
    configure_logging(settings.log_level, settings.log_json)
    sys.exit(asyncio.run(main(args.date)))
