"""
FastAPI application entry point for the forum backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from classforum.config import Settings, get_settings
from classforum.db import ROLE_ADMIN
from classforum.dependencies import get_auth_client, get_db_client
from classforum.errors import ForumError
from classforum.routes import router
from classforum.routes.admin import create_account

logger = logging.getLogger(__name__)


def bootstrap_admin(settings: Settings) -> None:
    """Create the configured admin account on first start."""
    if not (settings.admin_username and settings.admin_email and settings.admin_password):
        return
    db = get_db_client()
    existing = db.get_user_by_username(settings.admin_username)
    if existing:
        if not existing.is_admin:
            db.update_user(existing.id, role=ROLE_ADMIN)
            logger.info("Promoted %s to admin", settings.admin_username)
        return
    create_account(
        get_auth_client(),
        db,
        username=settings.admin_username,
        email=settings.admin_email,
        password=settings.admin_password,
        role=ROLE_ADMIN,
    )
    logger.info("Created admin account %s", settings.admin_username)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ForumError)
    async def forum_error_handler(request: Request, exc: ForumError):
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            bootstrap_admin(settings)
        except ForumError as exc:
            logger.error("Admin bootstrap failed: %s (%s)", exc.message, exc.details)
        yield

    app = FastAPI(title="Class Forum Backend", version="0.1.0", lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
