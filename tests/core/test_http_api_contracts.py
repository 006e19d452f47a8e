from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.commands.errors import (
    CommandBusError,
    HandlerNotFound,
    NotUndoable,
    ScopeViolation,
    UndoTokenNotFound,
)
from core.crud.errors import CrudHttpError
from core.http_api.contracts import (
    ActionLogListHttpRequest,
    ActorMetadata,
    HttpApiErrorBody,
    HttpApiResponse,
    RedoHttpRequest,
    UndoHttpRequest,
)
from core.http_api.errors import (
    command_error_response,
    error_response,
    http_status_for,
    map_command_error,
    success_response,
)


ACTOR = ActorMetadata(actor_id="contracts-user", tenant_id="tenant-contracts")
FIXED_BEFORE = datetime(2026, 2, 1, 9, 30, tzinfo=timezone.utc)


def test_list_request_accepts_window_and_limit():
    request = ActionLogListHttpRequest(actor=ACTOR, limit=20, before=FIXED_BEFORE)
    assert request.limit == 20
    assert request.include_related is False


@pytest.mark.parametrize("limit", ["20", True, 1.5])
def test_list_request_rejects_non_int_limit(limit):
    with pytest.raises(ValueError):
        ActionLogListHttpRequest(actor=ACTOR, limit=limit)


def test_list_request_requires_actor_metadata():
    with pytest.raises(ValueError):
        ActionLogListHttpRequest(actor={"actor_id": "x"})


def test_undo_request_rejects_blank_token():
    with pytest.raises(ValueError, match="Invalid undo token"):
        UndoHttpRequest(actor=ACTOR, undo_token="  ")


def test_redo_request_rejects_blank_log_id():
    with pytest.raises(ValueError, match="Invalid log id"):
        RedoHttpRequest(actor=ACTOR, log_id="")


def test_actor_organization_ids_must_be_tuple():
    with pytest.raises(ValueError):
        ActorMetadata(actor_id="x", organization_ids=["org-1"])


def test_response_envelopes():
    assert success_response({"a": 1}) == {"ok": True, "data": {"a": 1}}
    assert error_response(code="X", message="boom") == {
        "ok": False,
        "error": {"code": "X", "message": "boom", "details": {}},
    }
    with pytest.raises(ValueError):
        HttpApiResponse(ok=False).to_dict()


@pytest.mark.parametrize("exc,code", [
    (HandlerNotFound("x.y.z"), "HANDLER_NOT_FOUND"),
    (UndoTokenNotFound("t"), "UNDO_TOKEN_NOT_FOUND"),
    (NotUndoable("x.y.z"), "NOT_UNDOABLE"),
    (ScopeViolation(), "SCOPE_VIOLATION"),
    (CommandBusError("generic"), "COMMAND_ERROR"),
])
def test_command_errors_map_to_stable_codes(exc, code):
    assert map_command_error(exc).code == code


def test_crud_error_keeps_status():
    body = map_command_error(CrudHttpError(404, {"error": "Todo not found"}))
    assert body == HttpApiErrorBody(
        code="HTTP_404",
        message="Todo not found",
        details={"status": 404},
    )
    assert http_status_for(command_error_response(CrudHttpError(404, {"error": "x"}))) == 404


def test_unmapped_error_type_raises():
    with pytest.raises(TypeError):
        map_command_error(RuntimeError("nope"))


def test_http_status_for_codes():
    assert http_status_for(success_response(None)) == 200
    assert http_status_for(command_error_response(ScopeViolation())) == 403
    assert http_status_for(command_error_response(HandlerNotFound("a.b.c"))) == 404
    assert http_status_for(error_response(code="UNKNOWN", message="?")) == 400
