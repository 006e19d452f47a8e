"""
Ledgerline HTTP API - Public API
================================
"""

from core.http_api.contracts import (
    ActionLogListHttpRequest,
    ActorMetadata,
    HttpApiErrorBody,
    HttpApiResponse,
    RedoHttpRequest,
    UndoHttpRequest,
)
from core.http_api.dependencies import HttpApiDependencies
from core.http_api.errors import (
    command_error_response,
    error_response,
    http_status_for,
    map_command_error,
    success_response,
)
from core.http_api.handlers import (
    list_action_logs,
    post_redo,
    post_undo,
)

__all__ = [
    "ActionLogListHttpRequest",
    "ActorMetadata",
    "HttpApiDependencies",
    "HttpApiErrorBody",
    "HttpApiResponse",
    "RedoHttpRequest",
    "UndoHttpRequest",
    "command_error_response",
    "error_response",
    "http_status_for",
    "list_action_logs",
    "map_command_error",
    "post_redo",
    "post_undo",
    "success_response",
]
