from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config.settings import Settings, get_settings
from src.infrastructure.db.session import create_engine, create_session_factory
from src.interfaces.http.routers import memberships as memberships_router
from src.interfaces.middleware.error_handler import register_error_handlers

logger = logging.getLogger(__name__)

PRODUCTION_ENVIRONMENTS = {"prod", "production"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        yield
    finally:
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    # Avoid adding duplicate handlers on reload
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    # Align common libraries
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


def create_app(*, settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.log_level)
    # Interactive docs are not served in production
    docs_enabled = settings.environment.lower() not in PRODUCTION_ENVIRONMENTS
    app = FastAPI(
        title="Tenant Membership Service",
        version="0.1.0",
        description="Tenant membership management with OWNER/ADMIN invariants",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.engine = create_engine(
        settings.database_url,
        lock_timeout_seconds=settings.db_lock_timeout_seconds,
        echo=settings.db_echo,
    )
    app.state.session_factory = create_session_factory(app.state.engine)
    register_error_handlers(app)

    api = APIRouter(prefix="/api/v1")
    api.include_router(memberships_router.router)

    @api.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("Application configured for %s environment", settings.environment)
    return app


app = create_app()
