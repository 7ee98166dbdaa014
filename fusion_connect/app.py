"""
FastAPI application entry point for the signaling service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from fusion_connect.config import get_settings
from fusion_connect.errors import FusionError, InternalError
from fusion_connect.routes import router

logger = logging.getLogger(__name__)


async def _fusion_error_handler(request: Request, exc: FusionError) -> JSONResponse:
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Malformed bodies are reported like missing fields, with a 400.
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Missing required fields"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Fusion Connect Signaling", version="0.1.0")
    app.add_exception_handler(FusionError, _fusion_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
