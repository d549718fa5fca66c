"""Translate service exceptions into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from creditgate.logging import logger
from creditgate.services.exceptions import (
    InvalidCost,
    QuotaExceeded,
    ServiceError,
    UnknownTool,
    UserNotFound,
)


async def _user_not_found(request: Request, exc: UserNotFound) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def _unknown_tool(request: Request, exc: UnknownTool) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


async def _quota_exceeded(request: Request, exc: QuotaExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": exc.message, "window": exc.window},
    )


async def _invalid_cost(request: Request, exc: InvalidCost) -> JSONResponse:
    # A caller computed a bad cost; this is a bug, not a client error.
    logger.error("invalid_cost", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal error"},
    )


async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
    logger.warning("service_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(UserNotFound, _user_not_found)
    app.add_exception_handler(UnknownTool, _unknown_tool)
    app.add_exception_handler(QuotaExceeded, _quota_exceeded)
    app.add_exception_handler(InvalidCost, _invalid_cost)
    app.add_exception_handler(ServiceError, _service_error)


__all__ = ["register_exception_handlers"]
