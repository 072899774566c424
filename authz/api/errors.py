from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from authz.engine import ConflictError, ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[Exception], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Translate engine errors into HTTP responses."""

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        status_code = _STATUS_BY_ERROR[type(exc)]
        logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    for error_type in _STATUS_BY_ERROR:
        app.add_exception_handler(error_type, handle)
