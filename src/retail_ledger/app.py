"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.router import api_router
from .config import get_settings
from .database import init_db
from .errors import ErrorKind, RetailLedgerError
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


async def handle_ledger_error(request: Request, exc: RetailLedgerError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    if exc.retryable:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    if settings.cors_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )
    application.add_exception_handler(RetailLedgerError, handle_ledger_error)
    application.include_router(api_router, prefix=settings.api_v1_prefix)
    return application


app = create_application()
