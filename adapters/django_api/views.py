"""
Ledgerline Django Adapter Views
===============================
Async pass-through HTTP views over core/http_api handlers.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from django.http import HttpRequest, JsonResponse
from django.utils.dateparse import parse_datetime
from django.views.decorators.csrf import csrf_exempt

from adapters.django_api.wiring import build_dependencies
from core.http_api.auth import resolve_actor_metadata
from core.http_api.contracts import (
    ActionLogListHttpRequest,
    ActorMetadata,
    RedoHttpRequest,
    UndoHttpRequest,
)
from core.http_api.errors import (
    INVALID_REQUEST,
    UNAUTHORIZED,
    error_response,
    http_status_for,
)
from core.http_api.handlers import list_action_logs, post_redo, post_undo

_TRUE_TOKENS = {"1", "true", "yes", "on"}


def _headers_from_request(request: HttpRequest) -> dict[str, str]:
    return {str(key): str(value) for key, value in request.headers.items()}


def _json_error(code: str, message: str, status: int = 400) -> JsonResponse:
    return JsonResponse(
        error_response(code=code, message=message, details={}),
        status=status,
    )


def _json_payload(payload: dict[str, Any]) -> JsonResponse:
    return JsonResponse(payload, status=http_status_for(payload))


def _method_not_allowed() -> JsonResponse:
    return _json_error(
        "METHOD_NOT_ALLOWED",
        "Method not allowed for this endpoint.",
        status=405,
    )


def _parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        parsed = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError("Request body must be valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Request body must be a JSON object.")
    return parsed


def _parse_bool(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUE_TOKENS


def _parse_limit(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _resolve_actor(request: HttpRequest) -> ActorMetadata | None:
    return resolve_actor_metadata(_headers_from_request(request))


def _unauthorized() -> JsonResponse:
    return _json_error(UNAUTHORIZED, "Unauthorized", status=401)


async def action_logs_list_view(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    try:
        actor = _resolve_actor(request)
        if actor is None:
            return _unauthorized()
        params = request.GET
        contract = ActionLogListHttpRequest(
            actor=actor,
            organization_id=params.get("organizationId") or None,
            actor_user_id=params.get("actorUserId") or None,
            resource_kind=params.get("resourceKind") or None,
            resource_id=params.get("resourceId") or None,
            include_related=_parse_bool(params.get("includeRelated")),
            undoable_only=_parse_bool(params.get("undoableOnly")),
            limit=_parse_limit(params.get("limit")),
            before=_parse_date(params.get("before")),
            after=_parse_date(params.get("after")),
        )
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc), status=400)

    payload = await list_action_logs(contract, build_dependencies())
    return _json_payload(payload)


@csrf_exempt
async def action_logs_undo_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        actor = _resolve_actor(request)
        if actor is None:
            return _unauthorized()
        body = _parse_json_body(request)
        contract = UndoHttpRequest(actor=actor, undo_token=body.get("undoToken") or "")
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc), status=400)

    payload = await post_undo(contract, build_dependencies())
    return _json_payload(payload)


@csrf_exempt
async def action_logs_redo_view(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    try:
        actor = _resolve_actor(request)
        if actor is None:
            return _unauthorized()
        body = _parse_json_body(request)
        log_id = body.get("logId")
        contract = RedoHttpRequest(
            actor=actor,
            log_id=log_id if isinstance(log_id, str) else "",
        )
    except ValueError as exc:
        return _json_error(INVALID_REQUEST, str(exc), status=400)

    payload = await post_redo(contract, build_dependencies())
    return _json_payload(payload)
