# rentflow/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import init_db
from .errors import setup_exception_handlers
from .logging_config import configure_logging
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.admin_move_in import router as admin_move_in_router
from .routers.audit import router as audit_router
from .routers.health import router as health_router
from .routers.move_in_issues import router as move_in_issues_router
from .routers.move_in_verification import router as move_in_verification_router
from .routers.notifications import router as notifications_router
from .services.verification_scheduler import VerificationScheduler

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    scheduler = None
    if settings.move_in_scheduler_mode == "inprocess":
        scheduler = VerificationScheduler()
        scheduler.start()
    else:
        log.info("in-process move-in scheduler disabled (mode=%s)", settings.move_in_scheduler_mode)
    app.state.verification_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        app.state.verification_scheduler = None


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Rentflow Move-in Service",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(move_in_issues_router, prefix=API_PREFIX)
    app.include_router(move_in_verification_router, prefix=API_PREFIX)
    app.include_router(admin_move_in_router, prefix=API_PREFIX)
    app.include_router(notifications_router, prefix=API_PREFIX)
    app.include_router(audit_router, prefix=API_PREFIX)
    return app


app = create_app()
