"""
Ledgerline Django Adapter — View Tests
========================================
/v1/audit-logs/actions{,/undo,/redo} through Django's async test client.
"""

from __future__ import annotations

import pytest
from django.test import AsyncClient

from adapters.django_api.wiring import build_dependencies, reset_dependencies
from core.http_api.auth import build_runtime_context, resolve_actor_metadata
from modules.example.models import Todo

pytestmark = pytest.mark.django_db(transaction=True)

LIST_URL = "/v1/audit-logs/actions"
UNDO_URL = "/v1/audit-logs/actions/undo"
REDO_URL = "/v1/audit-logs/actions/redo"

HEADERS = {
    "X-Actor-Id": "user-views",
    "X-Tenant-Id": "tenant-views",
    "X-Organization-Id": "org-views",
}


@pytest.fixture(autouse=True)
def fresh_wiring():
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def client():
    return AsyncClient()


async def create_todo(title="From views"):
    dependencies = build_dependencies()
    actor = resolve_actor_metadata(HEADERS)
    ctx = build_runtime_context(actor, dependencies.container_factory())
    return await dependencies.command_bus.execute(
        "example.todos.create",
        input={"title": title},
        ctx=ctx,
    )


# ══════════════════════════════════════════════════════════════
# IDENTITY & VALIDATION
# ══════════════════════════════════════════════════════════════

async def test_missing_actor_is_unauthorized(client):
    response = await client.get(LIST_URL)
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


async def test_wrong_method_rejected(client):
    response = await client.get(UNDO_URL, headers=HEADERS)
    assert response.status_code == 405


async def test_malformed_json_body(client):
    response = await client.post(
        UNDO_URL,
        data="{not json",
        content_type="application/json",
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_REQUEST"


async def test_blank_undo_token(client):
    response = await client.post(
        UNDO_URL,
        data={"undoToken": "   "},
        content_type="application/json",
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid undo token"


async def test_redo_requires_string_log_id(client):
    response = await client.post(
        REDO_URL,
        data={"logId": 12},
        content_type="application/json",
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid log id"


# ══════════════════════════════════════════════════════════════
# ROUND TRIP
# ══════════════════════════════════════════════════════════════

async def test_list_undo_redo_over_http(client):
    executed = await create_todo()
    log_id = str(executed.log_entry.id)

    listed = await client.get(LIST_URL, {"undoableOnly": "true", "limit": "5"}, headers=HEADERS)
    assert listed.status_code == 200
    (item,) = listed.json()["data"]["items"]
    assert item["id"] == log_id

    undone = await client.post(
        UNDO_URL,
        data={"undoToken": item["undoToken"]},
        content_type="application/json",
        headers=HEADERS,
    )
    assert undone.status_code == 200
    assert undone.json() == {"ok": True, "data": {"logId": log_id}}
    assert (await Todo.objects.aget(id=executed.result.id)).deleted_at is not None

    redone = await client.post(
        REDO_URL,
        data={"logId": log_id},
        content_type="application/json",
        headers=HEADERS,
    )
    assert redone.status_code == 200
    assert redone.json()["data"]["undoToken"]


async def test_undo_unavailable_maps_to_400(client):
    response = await client.post(
        UNDO_URL,
        data={"undoToken": "missing-token"},
        content_type="application/json",
        headers=HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNDO_NOT_AVAILABLE"
