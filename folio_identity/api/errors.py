"""Exception handlers rendering service errors as ``{"error", "status"}`` bodies."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..domain.errors import InternalError, ServiceError

logger = logging.getLogger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Convert a :class:`ServiceError` into the public error envelope."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "status": exc.status_code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)


@contextmanager
def internal_failure(message: str) -> Iterator[None]:
    """Replace the message of any :class:`InternalError` raised in the block."""
    try:
        yield
    except InternalError as exc:
        raise InternalError(message) from exc
