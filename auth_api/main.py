from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth_api.api.deps import get_background_dispatcher
from auth_api.api.errors import register_error_handlers
from auth_api.api.routers.auth import router as auth_router
from auth_api.api.routers.health import router as health_router
from auth_api.api.routers.me import router as me_router
from auth_api.shared.config import get_settings


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("app: startup env=%s", settings.env)
    yield
    if get_background_dispatcher.cache_info().currsize:
        get_background_dispatcher().shutdown(wait=False)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    app = FastAPI(title="Mobile Auth API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(me_router)
    return app


app = create_app()
