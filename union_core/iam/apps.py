from django.apps import AppConfig


class IamConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "union_core.iam"

    def ready(self) -> None:
        from union_core.iam import openapi  # noqa: F401
