"""
Ledgerline Command Registry — Tests
=====================================
"""

from __future__ import annotations

import pytest

from core.commands import CommandHandler
from core.commands.errors import CommandBusError, DuplicateCommandError
from core.commands.registry import CommandRegistry
from core.commands.types import is_undoable


class NoopCommand(CommandHandler):
    id = "tests.noop.run"

    async def execute(self, input, ctx):
        return None


class UndoableCommand(CommandHandler):
    id = "tests.undoable.run"

    async def execute(self, input, ctx):
        return None

    async def undo(self, *, input, ctx, log_entry):
        return None


class OptedOutCommand(UndoableCommand):
    id = "tests.opted_out.run"
    is_undoable = False


class NoExecute:
    id = "tests.broken.run"


@pytest.fixture
def registry():
    return CommandRegistry()


class TestRegistration:
    def test_register_and_get(self, registry):
        handler = NoopCommand()
        registry.register(handler)
        assert registry.get("tests.noop.run") is handler
        assert registry.has("tests.noop.run")

    def test_duplicate_id_raises(self, registry):
        registry.register(NoopCommand())
        with pytest.raises(DuplicateCommandError) as exc_info:
            registry.register(NoopCommand())
        assert exc_info.value.command_id == "tests.noop.run"

    def test_replace_overrides_existing(self, registry):
        first = NoopCommand()
        second = NoopCommand()
        registry.register(first)
        registry.register(second, replace=True)
        assert registry.get("tests.noop.run") is second

    def test_missing_id_rejected(self, registry):
        handler = NoopCommand()
        handler.id = ""
        with pytest.raises(CommandBusError):
            registry.register(handler)

    def test_missing_execute_rejected(self, registry):
        with pytest.raises(CommandBusError):
            registry.register(NoExecute())

    def test_unregister_and_clear(self, registry):
        registry.register(NoopCommand())
        registry.register(UndoableCommand())
        registry.unregister("tests.noop.run")
        assert registry.ids() == ("tests.undoable.run",)
        registry.clear()
        assert registry.ids() == ()

    def test_unknown_id_returns_none(self, registry):
        assert registry.get("tests.unknown.run") is None


class TestUndoability:
    def test_undo_hook_makes_handler_undoable(self):
        assert is_undoable(UndoableCommand())

    def test_no_undo_hook_is_not_undoable(self):
        assert not is_undoable(NoopCommand())

    def test_explicit_opt_out_wins_over_hook(self):
        assert not is_undoable(OptedOutCommand())


def test_module_commands_registered_at_startup():
    from core.commands import list_command_ids

    ids = list_command_ids()
    for command_id in (
        "example.todos.create",
        "example.todos.update",
        "example.todos.delete",
        "directory.organizations.create",
        "directory.organizations.update",
        "directory.organizations.delete",
        "feature_toggles.global.create",
        "feature_toggles.global.update",
        "feature_toggles.global.delete",
    ):
        assert command_id in ids
