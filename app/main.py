"""
FastAPI application entrypoint for the guild onboarding service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import ConfigurationError, get_settings
from app.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def _configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Request to %s aborted by configuration error: %s", request.url.path, exc)
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"detail": f"Service misconfigured: {exc}"},
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Discord Guild Onboarding",
        version="0.1.0",
        description="OAuth2 authorization, credential refresh and guild provisioning.",
    )
    app.add_exception_handler(ConfigurationError, _configuration_error_handler)
    app.include_router(api_router, prefix="/api")
    logger.info(
        "Credential storage: backend=%s addressing=%s",
        settings.storage.backend.value,
        settings.storage.addressing.value,
    )
    return app


app = create_app()

__all__ = ["app", "create_app"]
