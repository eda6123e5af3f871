from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Switchboard"

    def ready(self):
        # Import signal handlers
        from . import signals  # noqa: F401
