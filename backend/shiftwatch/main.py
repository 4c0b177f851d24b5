import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shiftwatch.core.config import settings
from shiftwatch.core.db import SessionLocal
from shiftwatch.services.confirmations import ConfirmationRegistry
from shiftwatch.services.notify import BotServiceClient
from shiftwatch.services.scheduler import Scheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("shiftwatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = app.state.scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        log.info("scheduler disabled via settings (SCHEDULER_ENABLED=False)")
    yield
    await scheduler.stop()


app = FastAPI(title="Shiftwatch API", lifespan=lifespan)

app.state.sink = BotServiceClient()
app.state.confirmations = ConfirmationRegistry()
app.state.scheduler = Scheduler(SessionLocal, app.state.sink)

from shiftwatch.routers import admin, attendance, fines, shifts

app.include_router(shifts.router)
app.include_router(attendance.router)
app.include_router(fines.router)
app.include_router(admin.router)

@app.get("/health")
def health():
    return {"status": "ok"}
