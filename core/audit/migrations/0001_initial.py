import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ActionLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("tenant_id", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "organization_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                (
                    "actor_user_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                (
                    "command_id",
                    models.CharField(
                        help_text="Registered command id, e.g. 'example.todos.create'.",
                        max_length=255,
                    ),
                ),
                (
                    "action_label",
                    models.CharField(blank=True, max_length=255, null=True),
                ),
                (
                    "resource_kind",
                    models.CharField(blank=True, max_length=128, null=True),
                ),
                (
                    "resource_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                (
                    "parent_resource_kind",
                    models.CharField(blank=True, max_length=128, null=True),
                ),
                (
                    "parent_resource_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                (
                    "execution_state",
                    models.CharField(
                        choices=[
                            ("done", "Done"),
                            ("undone", "Undone"),
                            ("failed", "Failed"),
                            ("redone", "Redone"),
                        ],
                        default="done",
                        max_length=16,
                    ),
                ),
                (
                    "undo_token",
                    models.CharField(
                        blank=True,
                        help_text="Present only for undoable commands.",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "command_payload",
                    models.JSONField(
                        blank=True,
                        encoder=DjangoJSONEncoder,
                        help_text="Redo envelope: handler payload plus the original input.",
                        null=True,
                    ),
                ),
                ("snapshot_before", models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ("snapshot_after", models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ("changes_json", models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ("context_json", models.JSONField(blank=True, encoder=DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "action_logs",
                "ordering": ["-created_at"],
                "indexes": [
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
                ],
            },
        ),
    ]
