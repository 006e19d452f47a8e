"""
Ledgerline HTTP API - Error Mapping
===================================
Stable transport error mapping for command bus and handler failures.
"""

from __future__ import annotations

from typing import Any, Optional

from core.commands.errors import (
    CommandBusError,
    HandlerNotFound,
    NotUndoable,
    ScopeViolation,
    UndoTokenNotFound,
)
from core.crud.errors import CrudHttpError
from core.http_api.contracts import HttpApiErrorBody, HttpApiResponse

INVALID_REQUEST = "INVALID_REQUEST"
UNAUTHORIZED = "UNAUTHORIZED"
UNDO_NOT_AVAILABLE = "UNDO_NOT_AVAILABLE"
REDO_NOT_AVAILABLE = "REDO_NOT_AVAILABLE"
REDO_DATA_UNAVAILABLE = "REDO_DATA_UNAVAILABLE"
UNDO_FAILED = "UNDO_FAILED"
REDO_FAILED = "REDO_FAILED"

HTTP_STATUS_BY_CODE = {
    INVALID_REQUEST: 400,
    UNAUTHORIZED: 401,
    UNDO_NOT_AVAILABLE: 400,
    REDO_NOT_AVAILABLE: 400,
    REDO_DATA_UNAVAILABLE: 400,
    UNDO_FAILED: 400,
    REDO_FAILED: 400,
    "HANDLER_NOT_FOUND": 404,
    "UNDO_TOKEN_NOT_FOUND": 400,
    "NOT_UNDOABLE": 400,
    "SCOPE_VIOLATION": 403,
}

_COMMAND_ERROR_CODES = (
    (HandlerNotFound, "HANDLER_NOT_FOUND"),
    (UndoTokenNotFound, "UNDO_TOKEN_NOT_FOUND"),
    (NotUndoable, "NOT_UNDOABLE"),
    (ScopeViolation, "SCOPE_VIOLATION"),
)


def error_response(
    *,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return HttpApiResponse(
        ok=False,
        error=HttpApiErrorBody(
            code=code,
            message=message,
            details=details or {},
        ),
    ).to_dict()


def success_response(data: Any) -> dict[str, Any]:
    return HttpApiResponse(ok=True, data=data).to_dict()


def map_command_error(exc: Exception) -> HttpApiErrorBody:
    if isinstance(exc, CrudHttpError):
        return HttpApiErrorBody(
            code=f"HTTP_{exc.status}",
            message=exc.message,
            details={"status": exc.status},
        )
    for error_type, code in _COMMAND_ERROR_CODES:
        if isinstance(exc, error_type):
            return HttpApiErrorBody(code=code, message=str(exc))
    if isinstance(exc, CommandBusError):
        return HttpApiErrorBody(code="COMMAND_ERROR", message=str(exc))
    raise TypeError(f"Unmapped error type: {type(exc).__name__}")


def command_error_response(exc: Exception) -> dict[str, Any]:
    mapped = map_command_error(exc)
    return error_response(
        code=mapped.code,
        message=mapped.message,
        details=mapped.details,
    )


def http_status_for(payload: dict[str, Any]) -> int:
    """Transport status for a handler payload."""
    if payload.get("ok"):
        return 200
    error = payload.get("error") or {}
    status = (error.get("details") or {}).get("status")
    if isinstance(status, int):
        return status
    return HTTP_STATUS_BY_CODE.get(error.get("code"), 400)
