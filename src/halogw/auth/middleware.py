"""Authentication middleware for API endpoints."""

from __future__ import annotations

import logging
import os
from typing import Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from halogw.core.errors import GatewayError

logger = logging.getLogger(__name__)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce API key authentication on protected endpoints.

    Set HALOGW_API_KEY environment variable to enable authentication.
    If not set, authentication is disabled (open access).

    Public endpoints (no auth required):
    - GET /health
    - GET /docs (Swagger UI)
    - GET /openapi.json
    - GET /redoc
    """

    PUBLIC_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, api_key: str | None = None):
        super().__init__(app)
        self._api_key = api_key or os.environ.get("HALOGW_API_KEY")
        if self._api_key:
            logger.info("API key authentication enabled")
        else:
            logger.warning("API key authentication DISABLED - set HALOGW_API_KEY to enable")

    async def dispatch(self, request: Request, call_next: Callable):
        if not self._api_key or request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            return _reject(
                status.HTTP_401_UNAUTHORIZED,
                "UNAUTHORIZED",
                "Missing Authorization header",
                headers={"WWW-Authenticate": "Bearer"},
            )

        token = auth_header[7:] if auth_header.startswith("Bearer ") else auth_header
        if token != self._api_key:
            logger.warning("Invalid API key attempt from %s", request.client.host if request.client else "unknown")
            return _reject(status.HTTP_403_FORBIDDEN, "FORBIDDEN", "Invalid API key")

        return await call_next(request)


def _reject(status_code: int, error_code: str, message: str, headers: dict | None = None) -> JSONResponse:
    error = GatewayError(message, status_code=status_code, error_code=error_code)
    return JSONResponse(error.to_response(), status_code=status_code, headers=headers)
