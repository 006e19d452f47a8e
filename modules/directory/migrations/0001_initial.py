import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
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
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("parent_id", models.CharField(blank=True, max_length=64, null=True)),
                ("ancestor_ids", models.JSONField(blank=True, default=list)),
                ("child_ids", models.JSONField(blank=True, default=list)),
                ("descendant_ids", models.JSONField(blank=True, default=list)),
                ("depth", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "directory_organizations",
                "ordering": ["name"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "parent_id"],
                        name="idx_org_tenant_parent",
                    ),
                ],
            },
        ),
    ]
