"""
Ledgerline Example Module — App Configuration
===============================================
"""

from django.apps import AppConfig


class ExampleConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.example"
    label = "example"
    verbose_name = "Ledgerline Example Todos"

    def ready(self):
        from modules.example.commands import register_commands

        register_commands()
