from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leasing_auth.api.route_table import build_router
from leasing_auth.api.session import NEW_ACCESS_TOKEN_HEADER
from leasing_auth.domain.exceptions import UnauthorizedError
from leasing_auth.infrastructure.db.engine import create_schema, get_engine
from leasing_auth.shared.config import get_settings
from leasing_auth.shared.logging import configure_logging


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.database_url:
        create_schema(get_engine(settings.database_url))
        logger.info("main: schema_ready")
    yield


async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": str(exc), "requiresLogin": True, "reason": exc.reason.value},
    )


def validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    message = first.get("msg", "Invalid value")
    return f"{loc[-1]}: {message}" if loc else message


async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = validation_message(exc)
    logger.info("main: request_rejected path=%s error=%s", request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Leasing Auth API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins) or ["*"],
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[NEW_ACCESS_TOKEN_HEADER],
    )
    app.add_exception_handler(UnauthorizedError, unauthorized_handler)
    app.add_exception_handler(RequestValidationError, validation_handler)
    app.include_router(build_router())
    return app


app = create_app()
