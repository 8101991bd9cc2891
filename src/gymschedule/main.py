import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import gymschedule.models  # noqa: F401  (registers all models with Base.metadata)
from gymschedule.api.routes.availability import router as availability_router
from gymschedule.api.routes.registrations import router as registrations_router
from gymschedule.api.routes.schedule_slots import router as schedule_slots_router
from gymschedule.config import get_settings
from gymschedule.database import Base, engine
from gymschedule.scheduling.errors import SchedulingError
from gymschedule.schemas.system import StatusResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Create tables on startup (dev convenience)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code, "details": exc.details},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title="GymSchedule",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.add_exception_handler(SchedulingError, scheduling_error_handler)

    app.include_router(availability_router)
    app.include_router(schedule_slots_router)
    app.include_router(registrations_router)

    @app.get("/api/system/status", response_model=StatusResponse)
    async def system_status() -> StatusResponse:
        return StatusResponse(status="ok")

    return app


app = create_app()
