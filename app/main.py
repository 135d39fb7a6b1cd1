"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.exceptions import DeliveryError, ErrorCode
from app.infra.logging_config import LoggingConfig
from app.routers import conversations, messages, webhooks

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str | None:
    ctx = getattr(request.state, "request_context", None)
    if ctx is not None:
        return ctx.correlation_id
    return request.headers.get("x-request-id")


async def delivery_error_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.to_dict(),
            "request_id": _request_id(request),
        },
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.info("Request validation failed on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": ErrorCode.VALIDATION_ERROR,
                "message": "Invalid request payload",
                "details": {"errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
                    for err in exc.errors()
                ]},
            },
            "request_id": _request_id(request),
        },
    )


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    if not testing:
        LoggingConfig.setup(settings.log_level)

    app = FastAPI(title=settings.app_name)
    app.add_exception_handler(DeliveryError, delivery_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(webhooks.router)
    app.include_router(messages.router)
    app.include_router(conversations.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
