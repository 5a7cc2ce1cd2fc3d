"""FastAPI application for the Herald server."""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from herald.config import ConfigError
from herald.errors import HeraldError
from herald.server.routes import auth, cron, health, slack

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from herald.app import Components

logger = logging.getLogger(__name__)


async def _herald_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HeraldError)
    if exc.status_code >= 500:
        logger.warning(
            "request_failed",
            extra={
                "http.path": request.url.path,
                "error.code": exc.code,
                "error.message": exc.message,
            },
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _config_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("server_misconfigured", extra={"error.message": str(exc)})
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "not_configured", "message": str(exc)},
    )


async def _request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "validation_error", "message": detail},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_error", extra={"http.path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "internal_error",
            "message": "Something went wrong",
        },
    )


def create_app(components: "Components", start_scheduler: bool | None = None) -> FastAPI:
    """Create the FastAPI app around already-built components.

    Args:
        components: Wired components from ``build_components``.
        start_scheduler: Run the delivery timer for the app's lifetime.
            Defaults to ``config.scheduler.enabled``.
    """
    config = components.config
    if start_scheduler is None:
        start_scheduler = config.scheduler.enabled

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> "AsyncIterator[None]":
        logger.info("server_starting")
        await components.connect()
        if start_scheduler:
            await components.scheduler.start()

        yield

        logger.info("server_stopping")
        await components.aclose()

    app = FastAPI(
        title="Herald",
        description="Scheduled Slack message delivery",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.components = components

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HeraldError, _herald_error_handler)
    app.add_exception_handler(ConfigError, _config_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(slack.router, prefix="/api/slack", tags=["slack"])
    app.include_router(cron.router, prefix="/api/cron", tags=["cron"])

    return app
