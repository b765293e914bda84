# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nexus_audit import __version__
from nexus_audit.api.routes import health, logs, notifications
from nexus_audit.audit.middleware import AuditMiddleware
from nexus_audit.core.exceptions import (
    InvalidFilterError,
    InvalidRetentionWindowError,
    StorageError,
)

logger = logging.getLogger("nexus_audit.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    from nexus_audit.audit.logger import AuditLogger, set_audit_logger
    from nexus_audit.audit.retention import RetentionScheduler, RetentionSweeper
    from nexus_audit.audit.store import AuditStore
    from nexus_audit.core.config import get_settings
    from nexus_audit.core.logging import setup_logging
    from nexus_audit.notifications.hub import get_notification_hub
    from nexus_audit.storage.database import close_db, get_db, init_db

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    await init_db(settings.db_path, auto_migrate=settings.auto_migrate)

    audit_logger = AuditLogger(log_dir=settings.audit_log_dir)
    set_audit_logger(audit_logger)

    scheduler = None
    if app.state.enable_retention and settings.retention_interval_hours > 0:

        async def _sweeper() -> RetentionSweeper:
            return RetentionSweeper(AuditStore(await get_db()), audit_logger=audit_logger)

        scheduler = RetentionScheduler(
            _sweeper,
            days=settings.retention_days,
            interval_seconds=settings.retention_interval_hours * 3600,
        )
        await scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    await get_notification_hub().close_all()
    await close_db()


async def _invalid_parameters(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"status": "fail", "message": str(exc)})


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"status": "fail", "message": message})


async def _storage_failure(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"status": "error", "message": str(exc)})


def create_app(*, enable_retention: bool = True) -> FastAPI:
    from nexus_audit.core.config import get_settings

    settings = get_settings()
    app = FastAPI(
        title="nexus-audit",
        description="Audit trail and live notifications for the Nexus ERP",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.state.enable_retention = enable_retention

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(InvalidFilterError, _invalid_parameters)
    app.add_exception_handler(InvalidRetentionWindowError, _invalid_parameters)
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.add_exception_handler(StorageError, _storage_failure)

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(logs.router, prefix="/api/v1", tags=["logs"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["notifications"])
    app.include_router(notifications.ws_router)
    app.add_middleware(AuditMiddleware)

    return app


def _create_app_from_env() -> FastAPI:
    """Factory wrapper that reads the NEXUS_NO_RETENTION env var."""
    import os

    enable_retention = os.environ.get("NEXUS_NO_RETENTION", "") != "1"
    return create_app(enable_retention=enable_retention)
