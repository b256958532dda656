from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from timesheet.core.logging import configure_logging
from timesheet.models import assignment, project, task, time_entry, user  # noqa: F401
from timesheet.routers.assignments import router as assignments_router
from timesheet.routers.auth import router as auth_router
from timesheet.routers.time_entries import router as time_entries_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="Timesheet Allocation Engine",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception(
            "Unhandled exception",
            extra={"method": request.method, "path": request.url.path},
        )
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(assignments_router)
app.include_router(time_entries_router)


@app.get("/")
def root():
    return {"status": "Timesheet allocation engine running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
