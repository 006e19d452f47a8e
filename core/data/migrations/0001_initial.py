import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CustomFieldValue",
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
                (
                    "entity_id",
                    models.CharField(
                        help_text="Logical entity type, e.g. 'example:todo'.",
                        max_length=128,
                    ),
                ),
                ("record_id", models.CharField(max_length=64)),
                ("tenant_id", models.CharField(blank=True, max_length=64, null=True)),
                (
                    "organization_id",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                ("field_key", models.CharField(max_length=128)),
                ("value", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "custom_field_values",
                "ordering": ["entity_id", "record_id", "field_key"],
                "indexes": [
                    models.Index(
                        fields=["entity_id", "record_id"],
                        name="idx_cf_value_record",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity_id", "record_id", "field_key"),
                        name="uq_custom_field_value_record_key",
                    ),
                ],
            },
        ),
    ]
