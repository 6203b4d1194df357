from django.apps import AppConfig


class BudgetingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.budgeting'
    verbose_name = 'Centros de Custo & Orçamento'

    def ready(self):
        from .event_handlers import subscribe_to_events

        subscribe_to_events()
