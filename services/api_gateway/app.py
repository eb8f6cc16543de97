"""API gateway entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from libs.core.application.errors import (
    DuplicateMissionError,
    MissionAlreadyCompletedError,
    MissionNotFoundError,
)
from services.api_gateway.config.settings import settings
from services.api_gateway.dependencies import get_mission_service, get_mongo_store
from services.api_gateway.presentation.http.routes import (
    error_response,
    mission_router,
    router,
)
from services.api_gateway.presentation.ws.routes import router as ws_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Starts storage and guarantees every telemetry timer is stopped on exit"""
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    mongo_store = get_mongo_store()
    if mongo_store is not None:
        mongo_store.ensure_indexes()
    logger.info(
        "Service ready (storage=%s, tick=%.2fs)",
        settings.storage_backend,
        settings.tick_interval_sec,
    )

    yield

    logger.info("Shutting down, stopping telemetry timers...")
    await get_mission_service().shutdown()
    if mongo_store is not None:
        mongo_store.close()


async def _mission_not_found(
    request: Request, error: MissionNotFoundError
) -> JSONResponse:
    return error_response(404, error.message)


async def _mission_completed(
    request: Request, error: MissionAlreadyCompletedError
) -> JSONResponse:
    return error_response(400, error.message)


async def _duplicate_mission(
    request: Request, error: DuplicateMissionError
) -> JSONResponse:
    return error_response(409, error.message)


async def _unexpected_error(request: Request, error: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MissionNotFoundError, _mission_not_found)
    app.add_exception_handler(MissionAlreadyCompletedError, _mission_completed)
    app.add_exception_handler(DuplicateMissionError, _duplicate_mission)
    app.add_exception_handler(Exception, _unexpected_error)

    app.include_router(router)
    app.include_router(mission_router, prefix=settings.api_prefix)
    app.include_router(ws_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.api_gateway.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
