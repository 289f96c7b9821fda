from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import (
    ConflictError,
    DuplicateIdempotencyKeyError,
    ForbiddenError,
    InsufficientFundsError,
    LedgerValidationError,
    NotFoundError,
    UnexpectedError,
)


logger = logging.getLogger(__name__)


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerValidationError)
    async def validation_error_handler(
        request: Request, exc: LedgerValidationError
    ) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
        return _error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(DuplicateIdempotencyKeyError)
    async def duplicate_idempotency_handler(
        request: Request, exc: DuplicateIdempotencyKeyError
    ) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(UnexpectedError)
    async def unexpected_error_handler(request: Request, exc: UnexpectedError) -> JSONResponse:
        logger.error("request.unexpected_error", extra={"path": request.url.path})
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors()), "error": "ValidationError"},
        )
