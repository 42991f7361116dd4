"""FastAPI application factory.

Assembles CORS, the store error handlers, and all API routers.
This module is the authoritative app object; app/main.py re-exports it.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes.health import router as health_router
from app.api.routes.identify import router as identify_router
from app.core.logging import setup_logging
from app.core.settings import get_settings

logger = logging.getLogger(__name__)

_SERVER_ERROR = {"detail": "Internal server error"}


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


async def _store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store error while handling %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_SERVER_ERROR)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while handling %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_SERVER_ERROR)


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS: restrict origins in production via ALLOWED_ORIGINS env var
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(SQLAlchemyError, _store_error_handler)
app.add_exception_handler(Exception, _unhandled_error_handler)

app.include_router(health_router)
app.include_router(identify_router)
