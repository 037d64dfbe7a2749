from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.common import envelope
from api.loans import router as loans_router
from api.notifications import router as notifications_router
from api.reminders import router as reminders_router
from config import settings
from database import AsyncSessionLocal, init_db
from exceptions import LoanTrackerError
from logging_config import configure_logging
from services.reminder_runs import scheduled_job
from services.scheduler import DailyScheduler

configure_logging(settings.log_level, settings.log_json)
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = DailyScheduler(
            scheduled_job(AsyncSessionLocal),
            hour=settings.reminder_hour,
            minute=settings.reminder_minute,
            tz=ZoneInfo(settings.reminder_timezone),
        )
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title=settings.app_name,
    description="Personal finance loan tracking and reminder API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoanTrackerError)
async def loan_tracker_error_handler(request: Request, exc: LoanTrackerError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=exc.status_code, content=envelope(message="Server error", success=False))
    return JSONResponse(status_code=exc.status_code, content=envelope(message=exc.message, success=False))


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content=envelope(message=message, success=False))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content=envelope(message=str(exc.detail), success=False))


app.include_router(loans_router)
app.include_router(notifications_router)
app.include_router(reminders_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
