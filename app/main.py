from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import devices_router, router
from logging_config import configure_logging
from services.cache import build_default_cache_service
from services.ingest import build_default_ingest_function


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        build_default_ingest_function.cache_clear()
        build_default_cache_service.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Data Cache",
        description="Daily sensor readings imported from blob storage, grouped by device, date and sensor.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(devices_router)
    return app

app = create_app()
