"""
Ledgerline Directory Module — Organization Model
==================================================
parent_id is the only hierarchy field written by commands. The
ancestor/child/descendant lists and depth are derived bookkeeping,
recomputed per tenant by rebuild_hierarchy_for_tenant().
"""

from __future__ import annotations

import uuid

from django.db import models


class Organization(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    tenant_id = models.CharField(max_length=64, db_index=True)
    name = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    parent_id = models.CharField(max_length=64, null=True, blank=True)
    ancestor_ids = models.JSONField(default=list, blank=True)
    child_ids = models.JSONField(default=list, blank=True)
    descendant_ids = models.JSONField(default=list, blank=True)
    depth = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "directory_organizations"
        ordering = ["name"]
        indexes = [
            models.Index(
                fields=["tenant_id", "parent_id"],
                name="idx_org_tenant_parent",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"
