"""
Ledgerline Example Module — Todo Model
========================================
Soft-deletable: deleted rows keep their id so undo can restore them.
"""

from __future__ import annotations

import uuid

from django.db import models


class Todo(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    title = models.CharField(max_length=255)
    is_done = models.BooleanField(default=False)
    tenant_id = models.CharField(max_length=64, db_index=True)
    organization_id = models.CharField(max_length=64, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Soft-delete marker; NULL means live.",
    )

    class Meta:
        db_table = "example_todos"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["tenant_id", "organization_id"],
                name="idx_todo_scope",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.id})"
