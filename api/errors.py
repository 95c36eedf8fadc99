"""
Maps connection-flow errors to HTTP responses.

The flow raises bare error kinds; all user-facing wording lives here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from connections.errors import (
    ConnectionErrorKind,
    ConnectionFlowError,
    UnknownProvider,
)

logger = logging.getLogger(__name__)

INVALID_FORM_BODY = 50035
INVALID_OAUTH_STATE = 50023
GENERAL_ERROR = 0


def field_errors(field: str, code: str, message: str) -> Dict[str, Any]:
    return {
        "code": INVALID_FORM_BODY,
        "message": "Invalid Form Body",
        "errors": {field: {"_errors": [{"code": code, "message": message}]}},
    }


def format_error(exc: ConnectionFlowError) -> tuple[int, Dict[str, Any]]:
    """Return (status code, body) for a flow error."""
    kind = exc.kind
    if kind is ConnectionErrorKind.UNKNOWN_PROVIDER and isinstance(exc, UnknownProvider):
        return status.HTTP_400_BAD_REQUEST, field_errors(
            "provider_id",
            "BASE_TYPE_CHOICES",
            f"Value must be one of ({', '.join(exc.valid)}).",
        )
    if kind is ConnectionErrorKind.PROVIDER_DISABLED:
        return status.HTTP_400_BAD_REQUEST, field_errors(
            "provider_id",
            "CONNECTION_DISABLED",
            "This connection has been disabled server-side.",
        )
    if kind is ConnectionErrorKind.MISSING_CODE:
        return status.HTTP_400_BAD_REQUEST, field_errors(
            "code", "BASE_TYPE_REQUIRED", "This field is required"
        )
    if kind is ConnectionErrorKind.INVALID_STATE:
        return status.HTTP_400_BAD_REQUEST, {
            "code": INVALID_OAUTH_STATE,
            "message": "Invalid OAuth2 state",
        }
    return status.HTTP_502_BAD_GATEWAY, {"code": GENERAL_ERROR, "message": "General error"}


async def connection_error_handler(request: Request, exc: ConnectionFlowError) -> JSONResponse:
    status_code, body = format_error(exc)
    logger.info("%s %s → %s (%s)", request.method, request.url.path, status_code, exc.kind.value)
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConnectionFlowError, connection_error_handler)
