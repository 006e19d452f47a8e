"""
Ledgerline Directory Module — App Configuration
=================================================
"""

from django.apps import AppConfig


class DirectoryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.directory"
    label = "directory"
    verbose_name = "Ledgerline Directory"

    def ready(self):
        from modules.directory.commands import register_commands

        register_commands()
