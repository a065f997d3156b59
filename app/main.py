"""
FastAPI application entrypoint for the marketplace account-linking service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.exceptions import AccountLinkError
from app.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def account_link_error_handler(request: Request, exc: AccountLinkError) -> JSONResponse:
    """Render typed linking failures as ``{"error": message}`` with their status."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=int(exc.status_code), content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "Request body must be a JSON object with code and state."},
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Marketplace Account Linking",
        version="0.1.0",
        description="OAuth linking of marketplace seller accounts to product users.",
    )
    app.add_exception_handler(AccountLinkError, account_link_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
