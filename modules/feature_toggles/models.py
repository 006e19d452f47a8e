"""
Ledgerline Feature Toggles Module — Models
============================================
A FeatureToggle is global. A FeatureToggleOverride replaces its default
value for one tenant.
"""

from __future__ import annotations

import uuid

from django.db import models


class ToggleType(models.TextChoices):
    BOOLEAN = "boolean", "Boolean"
    STRING = "string", "String"
    NUMBER = "number", "Number"
    JSON = "json", "JSON"


class FeatureToggle(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    identifier = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(null=True, blank=True)
    category = models.CharField(max_length=128, null=True, blank=True)
    type = models.CharField(
        max_length=16,
        choices=ToggleType.choices,
        default=ToggleType.BOOLEAN,
    )
    default_value = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "feature_toggles"
        ordering = ["identifier"]

    def __str__(self) -> str:
        return self.identifier


class FeatureToggleOverride(models.Model):
    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    toggle = models.ForeignKey(
        FeatureToggle,
        on_delete=models.CASCADE,
        related_name="overrides",
    )
    tenant_id = models.CharField(max_length=64)
    value = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "feature_toggle_overrides"
        constraints = [
            models.UniqueConstraint(
                fields=["toggle", "tenant_id"],
                name="uq_toggle_override_tenant",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.toggle_id}@{self.tenant_id}"
