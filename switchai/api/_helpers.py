"""Shared helpers for API routers."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from services.errors import (
    ChatError,
    CredentialRejected,
    CredentialUnavailable,
    InvalidRequest,
    NetworkError,
    NotFound,
    ProviderOverloaded,
    ProviderServerError,
    RateLimited,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins
ERROR_STATUS: list[tuple[type[ChatError], int]] = [
    (ValidationError, 400),
    (InvalidRequest, 400),
    (CredentialRejected, 401),
    (NotFound, 404),
    (CredentialUnavailable, 404),
    (RateLimited, 429),
    (ProviderServerError, 502),
    (ProviderOverloaded, 503),
    (NetworkError, 503),
]


def status_for(exc: ChatError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return 500


def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render a domain error as ``{"detail": ..., "code": ...}``."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})
