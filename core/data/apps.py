"""
Ledgerline Core — Data Layer App Configuration
================================================
Persistence boundary used by command handlers: entity create/update/
delete, custom-field values and queued CRUD side effects.
"""

from django.apps import AppConfig


class CoreDataConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.data"
    label = "core_data"
    verbose_name = "Ledgerline Data Layer"
