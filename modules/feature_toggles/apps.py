"""
Ledgerline Feature Toggles Module — App Configuration
=======================================================
"""

from django.apps import AppConfig


class FeatureTogglesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.feature_toggles"
    label = "feature_toggles"
    verbose_name = "Ledgerline Feature Toggles"

    def ready(self):
        from modules.feature_toggles.commands import register_commands

        register_commands()
