"""
Ledgerline Data Layer — Custom Field Values
=============================================
One row per (entity, record, field key). Values are free-form JSON.

A value written as None is deleted rather than stored, so "absent" and
"reset" read the same way in snapshots.
"""

from __future__ import annotations

import uuid

from django.db import models


class CustomFieldValue(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    entity_id = models.CharField(
        max_length=128,
        help_text="Logical entity type, e.g. 'example:todo'.",
    )
    record_id = models.CharField(max_length=64)
    tenant_id = models.CharField(max_length=64, null=True, blank=True)
    organization_id = models.CharField(max_length=64, null=True, blank=True)
    field_key = models.CharField(max_length=128)
    value = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "custom_field_values"
        ordering = ["entity_id", "record_id", "field_key"]
        constraints = [
            models.UniqueConstraint(
                fields=["entity_id", "record_id", "field_key"],
                name="uq_custom_field_value_record_key",
            ),
        ]
        indexes = [
            models.Index(
                fields=["entity_id", "record_id"],
                name="idx_cf_value_record",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.entity_id}:{self.record_id}:{self.field_key}"
