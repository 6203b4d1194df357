from django.apps import AppConfig


class FinanceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.finance'
    verbose_name = 'Financeiro'

    def ready(self):
        from . import signals  # noqa: F401
        from .event_handlers import subscribe_to_events

        subscribe_to_events()
