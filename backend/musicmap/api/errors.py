from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.errors import MusicMapError
from ..schemas.common import failure
from ..services.daymix import DayMixError

logger = logging.getLogger("api.errors")

INTERNAL_ERROR = "Internal server error."


def _first_validation_message(errors: List[Dict[str, Any]]) -> str:
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(location)
    message = first.get("msg") or "invalid value"
    return f"Invalid field '{field}': {message}" if field else f"Invalid request: {message}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MusicMapError)
    async def musicmap_error_handler(request: Request, exc: MusicMapError) -> JSONResponse:
        level = logging.WARNING if exc.status_code >= 500 else logging.INFO
        logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message))

    @app.exception_handler(DayMixError)
    async def daymix_error_handler(request: Request, exc: DayMixError) -> JSONResponse:
        logger.info("Day mix failed: %s", exc.message)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=failure(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _first_validation_message(list(exc.errors()))
        return JSONResponse(status_code=422, content=failure(message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=failure(INTERNAL_ERROR))
