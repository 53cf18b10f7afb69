from django.apps import AppConfig


class DocumentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "documents"
    verbose_name = "Documents"

    def ready(self):
        from django.core.signals import setting_changed  # noqa: PLC0415

        from .dependencies import reset_dependencies  # noqa: PLC0415

        def _on_setting_changed(**kwargs):
            reset_dependencies()

        setting_changed.connect(_on_setting_changed, dispatch_uid="documents.reset_dependencies", weak=False)
