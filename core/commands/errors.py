"""
Ledgerline Command Layer — Errors
===================================
Error taxonomy of the command bus and registry.

Hook failures (prepare / execute / undo) are NOT wrapped in these types.
They propagate unchanged; these errors cover the bus's own decisions.
"""


class CommandBusError(Exception):
    """Base error for command bus operations."""

    status_code = 400


class HandlerNotFound(CommandBusError):
    """No handler registered for the command id."""

    status_code = 404

    def __init__(self, command_id: str):
        self.command_id = command_id
        super().__init__(
            f"Command handler not registered for id '{command_id}'."
        )


class DuplicateCommandError(CommandBusError):
    """A handler with the same id is already registered."""

    status_code = 500

    def __init__(self, command_id: str):
        self.command_id = command_id
        super().__init__(
            f"Command handler '{command_id}' is already registered. "
            f"Pass replace=True to override."
        )


class UndoTokenNotFound(CommandBusError):
    """Undo token is unknown, expired or already redeemed."""

    def __init__(self, undo_token: str):
        self.undo_token = undo_token
        super().__init__("Undo token expired or not found.")


class NotUndoable(CommandBusError):
    """Handler has no undo hook or is explicitly marked non-undoable."""

    def __init__(self, command_id: str):
        self.command_id = command_id
        super().__init__(f"Command '{command_id}' is not undoable.")


class ScopeViolation(CommandBusError):
    """Undo attempted outside the tenant/organization the entry belongs to."""

    status_code = 403

    def __init__(self, message: str = "Undo scope does not match tenant."):
        super().__init__(message)
