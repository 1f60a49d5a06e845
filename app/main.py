from __future__ import annotations
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.refresher import build_default_refresher


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    refresher = build_default_refresher()
    refresher.start()
    try:
        yield
    finally:
        refresher.stop()
        build_default_refresher.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Vehicle Emissions Dashboard",
        description="Polls emissions sensors and serves air-quality summaries.",
        version="0.1.0",
        lifespan=lifespan,
    )
    static_dir = Path(__file__).resolve().parent.parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
