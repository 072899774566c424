from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from authz.api.errors import register_exception_handlers
from authz.api.routers import health, rbac
from authz.db.init_db import init_db
from authz.db.session import build_engine, build_session_factory
from authz.engine import AuthorizationService
from authz.logging_config import configure_app_logging
from authz.settings import Settings, get_settings
from authz.storage.sql import SqlEmployeeDirectory, sql_uow_factory

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        cfg = settings or get_settings()
        configure_app_logging(cfg.log_level)
        logger.info("App startup beginning")

        engine = build_engine(cfg.resolved_db_url())
        session_factory = build_session_factory(engine)
        service = AuthorizationService(
            uow_factory=sql_uow_factory(session_factory),
            directory=SqlEmployeeDirectory(session_factory),
        )

        bootstrap_path = cfg.resolved_bootstrap_path() if cfg.bootstrap_on_startup else None
        init_db(engine, service, bootstrap_path)
        logger.info("Database initialized (tables ensured, bootstrap=%s)", bootstrap_path)

        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.authz_service = service

        yield

        # Shutdown
        engine.dispose()

    app = FastAPI(title="authz", lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(rbac.router)

    return app


app = create_app()
