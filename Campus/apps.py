from django.apps import AppConfig


class CampusConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "Campus"

    def ready(self):
        from . import signals  # noqa: F401
