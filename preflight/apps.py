from django.apps import AppConfig


class PreflightAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "preflight"
    verbose_name = "Asset preflight"
