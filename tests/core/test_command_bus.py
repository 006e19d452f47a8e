"""
Ledgerline Command Bus — Tests
================================
Bus orchestration against hand-written stub services (no database).

Covers:
1. Unknown command → HandlerNotFound
2. Undo token minted only for undoable handlers, unique per run
3. Changes inferred from before/after snapshots
4. build_log metadata wins over caller metadata, field by field
5. Cache invalidation failure never fails the command
6. Stored payload carries the redo envelope
7. Undo: token lookup, scope checks, state check, non-undoable rejection
8. Hook errors propagate untouched
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import pytest

from core.caching import TTLCache
from core.caching.crud import (
    build_collection_tags,
    build_record_tag,
    derive_resource_from_command_id,
)
from core.commands import (
    REDO_INPUT_KEY,
    CommandBus,
    CommandHandler,
    HandlerNotFound,
    NotUndoable,
    ScopeViolation,
    UndoTokenNotFound,
)
from core.commands.registry import CommandRegistry
from core.container import (
    ACTION_LOG_SERVICE,
    CACHE,
    DATA_ENGINE,
    ServiceContainer,
)
from core.context.runtime import AuthContext, CommandRuntimeContext
from core.crud.errors import CrudHttpError

TENANT_ID = "tenant-bus"
OTHER_TENANT_ID = "tenant-other"
ORG_ID = "org-bus"
OTHER_ORG_ID = "org-other"
ACTOR_ID = "user-bus"
RESOURCE_KIND = "tests.widget"


# ══════════════════════════════════════════════════════════════
# STUB SERVICES
# ══════════════════════════════════════════════════════════════

class StubActionLogService:
    def __init__(self):
        self.entries: list[dict[str, Any]] = []
        self.undone: list[str] = []

    async def log(self, payload: dict[str, Any]) -> dict[str, Any]:
        entry = dict(payload)
        entry["id"] = str(uuid.uuid4())
        entry["execution_state"] = "done"
        entry["changes_json"] = payload.get("changes")
        entry["context_json"] = payload.get("context")
        self.entries.append(entry)
        return entry

    async def find_by_undo_token(self, undo_token: str) -> Optional[dict[str, Any]]:
        for entry in self.entries:
            if entry.get("undo_token") == undo_token:
                return entry
        return None

    async def mark_undone(self, log_id: str) -> None:
        self.undone.append(log_id)
        for entry in self.entries:
            if entry["id"] == log_id:
                entry["execution_state"] = "undone"


class StubDataEngine:
    def __init__(self):
        self.flushes = 0

    async def flush_entity_changes(self) -> list:
        self.flushes += 1
        return []


class FailingCache:
    def invalidate_by_tag(self, tag: str) -> int:
        raise RuntimeError("cache backend down")


# ══════════════════════════════════════════════════════════════
# STUB HANDLERS
# ══════════════════════════════════════════════════════════════

class WidgetUpdateCommand(CommandHandler):
    """Undoable; relies on snapshot inference for changes."""

    id = "tests.widgets.update"

    def __init__(self):
        self.undo_calls: list[Any] = []

    async def prepare(self, input, ctx):
        return {"before": {"id": input["id"], "name": "old", "size": 1}}

    async def execute(self, input, ctx):
        return {"id": input["id"], "name": input["name"], "size": 1}

    def capture_after(self, input, result, ctx):
        return dict(result)

    async def build_log(self, args):
        return {
            "action_label": "Update widget",
            "resource_kind": RESOURCE_KIND,
            "resource_id": args.result["id"],
            "payload": {"undo": {"previousName": "old"}},
        }

    async def undo(self, *, input, ctx, log_entry):
        self.undo_calls.append(log_entry)


class WidgetPingCommand(CommandHandler):
    """Not undoable and writes no log metadata."""

    id = "tests.widgets.ping"

    async def execute(self, input, ctx):
        return "pong"


class WidgetSnapshotOnlyCommand(CommandHandler):
    """Not undoable; only snapshot hooks, no build_log."""

    id = "tests.widgets.rename"

    def prepare(self, input, ctx):
        return {"before": {"id": "w-2", "name": "draft"}}

    async def execute(self, input, ctx):
        return {"id": "w-2", "name": input["name"]}

    def capture_after(self, input, result, ctx):
        return dict(result)


class WidgetAuditedPingCommand(CommandHandler):
    id = "tests.widgets.audited_ping"

    async def execute(self, input, ctx):
        return {"id": "w-ping"}

    def build_log(self, args):
        return {"resource_kind": RESOURCE_KIND, "resource_id": "w-ping"}


class WidgetFailingCommand(CommandHandler):
    id = "tests.widgets.fail"

    async def execute(self, input, ctx):
        raise CrudHttpError(422, {"error": "Widget rejected"})

    async def undo(self, *, input, ctx, log_entry):
        return None


class AuditViewCommand(CommandHandler):
    id = "audit_logs.actions.view"

    async def execute(self, input, ctx):
        return {"id": "view"}

    def build_log(self, args):
        return {"resource_kind": "audit_logs.action", "resource_id": "view"}

    async def undo(self, *, input, ctx, log_entry):
        return None


# ══════════════════════════════════════════════════════════════
# FIXTURES
# ══════════════════════════════════════════════════════════════

@pytest.fixture
def update_handler():
    return WidgetUpdateCommand()


@pytest.fixture
def bus(update_handler):
    registry = CommandRegistry()
    for handler in (
        update_handler,
        WidgetPingCommand(),
        WidgetSnapshotOnlyCommand(),
        WidgetAuditedPingCommand(),
        WidgetFailingCommand(),
        AuditViewCommand(),
    ):
        registry.register(handler)
    return CommandBus(registry=registry)


@pytest.fixture
def logs():
    return StubActionLogService()


@pytest.fixture
def data_engine():
    return StubDataEngine()


@pytest.fixture
def cache():
    return TTLCache(max_size=50, default_ttl_seconds=60)


@pytest.fixture
def container(logs, data_engine, cache):
    return (
        ServiceContainer()
        .register_instance(ACTION_LOG_SERVICE, logs)
        .register_instance(DATA_ENGINE, data_engine)
        .register_instance(CACHE, cache)
    )


def make_ctx(
    container,
    *,
    tenant_id: str = TENANT_ID,
    org_id: str = ORG_ID,
    organization_ids: Optional[tuple[str, ...]] = None,
) -> CommandRuntimeContext:
    return CommandRuntimeContext(
        container=container,
        auth=AuthContext(sub=ACTOR_ID, tenant_id=tenant_id, org_id=org_id),
        selected_organization_id=org_id,
        organization_ids=organization_ids,
    )


async def run_update(bus, container, name: str = "new", metadata=None):
    return await bus.execute(
        "tests.widgets.update",
        input={"id": "w-1", "name": name},
        ctx=make_ctx(container),
        metadata=metadata,
    )


# ══════════════════════════════════════════════════════════════
# EXECUTE
# ══════════════════════════════════════════════════════════════

class TestExecute:
    async def test_unknown_command_raises_handler_not_found(self, bus, container):
        with pytest.raises(HandlerNotFound):
            await bus.execute("tests.widgets.missing", input={}, ctx=make_ctx(container))

    async def test_non_undoable_without_metadata_writes_no_log(self, bus, container, logs, data_engine):
        executed = await bus.execute("tests.widgets.ping", input={}, ctx=make_ctx(container))
        assert executed.result == "pong"
        assert executed.log_entry is None
        assert logs.entries == []
        assert data_engine.flushes == 1

    async def test_snapshots_alone_produce_a_log(self, bus, container, logs):
        executed = await bus.execute(
            "tests.widgets.rename",
            input={"name": "final"},
            ctx=make_ctx(container),
        )
        entry = executed.log_entry
        assert len(logs.entries) == 1
        assert entry["undo_token"] is None
        assert entry["snapshot_before"] == {"id": "w-2", "name": "draft"}
        assert entry["snapshot_after"] == {"id": "w-2", "name": "final"}
        assert entry["changes"] == {"name": {"from": "draft", "to": "final"}}

    async def test_non_undoable_with_metadata_has_no_token(self, bus, container):
        executed = await bus.execute(
            "tests.widgets.audited_ping",
            input={},
            ctx=make_ctx(container),
        )
        assert executed.log_entry["undo_token"] is None
        assert executed.log_entry["resource_kind"] == RESOURCE_KIND

    async def test_undoable_command_gets_unique_tokens(self, bus, container):
        first = await run_update(bus, container, name="a")
        second = await run_update(bus, container, name="b")
        assert first.log_entry["undo_token"]
        assert second.log_entry["undo_token"]
        assert first.log_entry["undo_token"] != second.log_entry["undo_token"]

    async def test_scope_and_actor_default_from_context(self, bus, container):
        executed = await run_update(bus, container)
        entry = executed.log_entry
        assert entry["tenant_id"] == TENANT_ID
        assert entry["organization_id"] == ORG_ID
        assert entry["actor_user_id"] == ACTOR_ID

    async def test_changes_inferred_from_snapshots(self, bus, container):
        executed = await run_update(bus, container, name="new")
        entry = executed.log_entry
        assert entry["changes"] == {"name": {"from": "old", "to": "new"}}
        assert entry["snapshot_before"]["name"] == "old"
        assert entry["snapshot_after"]["name"] == "new"

    async def test_build_log_wins_over_caller_metadata(self, bus, container):
        executed = await run_update(
            bus,
            container,
            metadata={
                "action_label": "Caller label",
                "parent_resource_kind": "tests.board",
                "parent_resource_id": "b-1",
            },
        )
        entry = executed.log_entry
        assert entry["action_label"] == "Update widget"
        assert entry["parent_resource_kind"] == "tests.board"
        assert entry["parent_resource_id"] == "b-1"

    async def test_payload_carries_redo_envelope(self, bus, container):
        executed = await run_update(bus, container, name="redo-me")
        payload = executed.log_entry["command_payload"]
        assert payload[REDO_INPUT_KEY] == {"id": "w-1", "name": "redo-me"}
        assert payload["undo"] == {"previousName": "old"}

    async def test_record_and_collection_tags_invalidated(self, bus, container, cache):
        record_tag = build_record_tag(RESOURCE_KIND, TENANT_ID, "w-1")
        collection_tag = build_collection_tags(RESOURCE_KIND, TENANT_ID, [ORG_ID])[0]
        cache.put("widget:w-1", {"name": "old"}, tags=[record_tag])
        cache.put("widgets:list", [], tags=[collection_tag])

        await run_update(bus, container)

        assert cache.get("widget:w-1") is None
        assert cache.get("widgets:list") is None

    async def test_scope_falls_back_to_input_entity(self, bus, container, cache):
        resource = derive_resource_from_command_id("tests.widgets.rename")
        record_tag = build_record_tag(resource, "tenant-entity", "w-2")
        collection_tag = build_collection_tags(resource, "tenant-entity", ["org-entity"])[0]
        cache.put("widget:w-2", {"name": "draft"}, tags=[record_tag])
        cache.put("widgets:entity-org", [], tags=[collection_tag])

        await bus.execute(
            "tests.widgets.rename",
            input={
                "name": "final",
                "entity": {"organizationId": "org-entity", "tenantId": "tenant-entity"},
            },
            ctx=make_ctx(container),
        )

        assert cache.get("widget:w-2") is None
        assert cache.get("widgets:entity-org") is None

    async def test_cache_failure_does_not_fail_command(self, bus, logs, data_engine):
        container = (
            ServiceContainer()
            .register_instance(ACTION_LOG_SERVICE, logs)
            .register_instance(DATA_ENGINE, data_engine)
            .register_instance(CACHE, FailingCache())
        )
        executed = await run_update(bus, container)
        assert executed.result["name"] == "new"
        assert len(logs.entries) == 1
        assert data_engine.flushes == 1

    async def test_hook_error_propagates_untouched(self, bus, container, logs):
        with pytest.raises(CrudHttpError) as exc_info:
            await bus.execute("tests.widgets.fail", input={}, ctx=make_ctx(container))
        assert exc_info.value.status == 422
        assert logs.entries == []

    async def test_audit_resources_are_not_logged(self, bus, container, logs):
        executed = await bus.execute("audit_logs.actions.view", input={}, ctx=make_ctx(container))
        assert executed.log_entry is None
        assert logs.entries == []

    async def test_missing_action_log_service_skips_logging(self, bus, data_engine):
        container = ServiceContainer().register_instance(DATA_ENGINE, data_engine)
        executed = await run_update(bus, container)
        assert executed.log_entry is None
        assert executed.result["id"] == "w-1"


# ══════════════════════════════════════════════════════════════
# UNDO
# ══════════════════════════════════════════════════════════════

class TestUndo:
    async def test_undo_calls_handler_and_marks_entry(self, bus, container, logs, update_handler):
        executed = await run_update(bus, container)
        token = executed.log_entry["undo_token"]

        await bus.undo(token, make_ctx(container))

        assert update_handler.undo_calls == [executed.log_entry]
        assert logs.undone == [executed.log_entry["id"]]
        assert executed.log_entry["execution_state"] == "undone"

    async def test_unknown_token_rejected(self, bus, container):
        with pytest.raises(UndoTokenNotFound):
            await bus.undo("no-such-token", make_ctx(container))

    async def test_token_cannot_be_redeemed_twice(self, bus, container, update_handler):
        executed = await run_update(bus, container)
        token = executed.log_entry["undo_token"]
        await bus.undo(token, make_ctx(container))
        with pytest.raises(UndoTokenNotFound):
            await bus.undo(token, make_ctx(container))
        assert len(update_handler.undo_calls) == 1

    async def test_other_tenant_rejected(self, bus, container, update_handler):
        executed = await run_update(bus, container)
        with pytest.raises(ScopeViolation):
            await bus.undo(
                executed.log_entry["undo_token"],
                make_ctx(container, tenant_id=OTHER_TENANT_ID),
            )
        assert update_handler.undo_calls == []

    async def test_disallowed_organization_rejected(self, bus, container, update_handler):
        executed = await run_update(bus, container)
        with pytest.raises(ScopeViolation):
            await bus.undo(
                executed.log_entry["undo_token"],
                make_ctx(container, org_id=OTHER_ORG_ID, organization_ids=(OTHER_ORG_ID,)),
            )
        assert update_handler.undo_calls == []

    async def test_allowed_organization_accepted(self, bus, container, update_handler):
        executed = await run_update(bus, container)
        await bus.undo(
            executed.log_entry["undo_token"],
            make_ctx(container, org_id=OTHER_ORG_ID, organization_ids=(OTHER_ORG_ID, ORG_ID)),
        )
        assert len(update_handler.undo_calls) == 1

    async def test_non_undoable_handler_rejected(self, bus, container, logs):
        await logs.log({
            "command_id": "tests.widgets.ping",
            "tenant_id": TENANT_ID,
            "organization_id": ORG_ID,
            "undo_token": "forged-token",
        })
        with pytest.raises(NotUndoable):
            await bus.undo("forged-token", make_ctx(container))

    async def test_unregistered_command_rejected(self, bus, container, logs):
        await logs.log({
            "command_id": "tests.widgets.retired",
            "tenant_id": TENANT_ID,
            "undo_token": "orphan-token",
        })
        with pytest.raises(HandlerNotFound):
            await bus.undo("orphan-token", make_ctx(container))

    async def test_undo_invalidates_cache(self, bus, container, cache):
        executed = await run_update(bus, container)
        record_tag = build_record_tag(RESOURCE_KIND, TENANT_ID, "w-1")
        cache.put("widget:w-1", {"name": "new"}, tags=[record_tag])

        await bus.undo(executed.log_entry["undo_token"], make_ctx(container))

        assert cache.get("widget:w-1") is None
