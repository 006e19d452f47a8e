"""
Ledgerline Core Audit — Action Log Model
==========================================
Persisted audit record of one command execution.

Column families:
- identity        id, tenant_id, organization_id, actor_user_id
- classification  command_id, action_label, resource kind/id, parent kind/id
- lifecycle       execution_state, undo_token
- payload         command_payload, snapshot_before, snapshot_after,
                  changes_json, context_json
- timestamps      created_at, updated_at, deleted_at (soft delete)

Snapshots are written once at creation and never updated. The undo token
stays on the row after undo/redo: it permanently identifies the entry and
is unique across the table.
"""

from __future__ import annotations

import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class ExecutionState(models.TextChoices):
    DONE = "done", "Done"
    UNDONE = "undone", "Undone"
    FAILED = "failed", "Failed"
    REDONE = "redone", "Redone"


class ActionLog(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    # ── Identity ──────────────────────────────────────────────
    tenant_id = models.CharField(max_length=64, null=True, blank=True)
    organization_id = models.CharField(max_length=64, null=True, blank=True)
    actor_user_id = models.CharField(max_length=64, null=True, blank=True)

    # ── Classification ────────────────────────────────────────
    command_id = models.CharField(
        max_length=255,
        help_text="Registered command id, e.g. 'example.todos.create'.",
    )
    action_label = models.CharField(max_length=255, null=True, blank=True)
    resource_kind = models.CharField(max_length=128, null=True, blank=True)
    resource_id = models.CharField(max_length=64, null=True, blank=True)
    parent_resource_kind = models.CharField(max_length=128, null=True, blank=True)
    parent_resource_id = models.CharField(max_length=64, null=True, blank=True)

    # ── Lifecycle ─────────────────────────────────────────────
    execution_state = models.CharField(
        max_length=16,
        choices=ExecutionState.choices,
        default=ExecutionState.DONE,
    )
    undo_token = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        unique=True,
        help_text="Present only for undoable commands.",
    )

    # ── Payload ───────────────────────────────────────────────
    command_payload = models.JSONField(
        encoder=DjangoJSONEncoder,
        null=True,
        blank=True,
        help_text="Redo envelope: handler payload plus the original input.",
    )
    snapshot_before = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)
    snapshot_after = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)
    changes_json = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)
    context_json = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)

    # ── Timestamps ────────────────────────────────────────────
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "action_logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["tenant_id", "created_at"],
                name="idx_action_log_tenant",
            ),
            models.Index(
                fields=["actor_user_id", "created_at"],
                name="idx_action_log_actor",
            ),
            models.Index(
                fields=["tenant_id", "resource_kind", "resource_id", "created_at"],
                name="idx_action_log_resource",
            ),
            models.Index(
                fields=[
                    "tenant_id",
                    "parent_resource_kind",
                    "parent_resource_id",
                    "created_at",
                ],
                name="idx_action_log_parent",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.command_id} [{self.execution_state}] {self.id}"
