import importlib

from django.apps import AppConfig


class AuditConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "taskhub.audit"

    def ready(self) -> None:  # pragma: no cover
        importlib.import_module("taskhub.audit.signals")
        return super().ready()
