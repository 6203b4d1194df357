import logging

from celery import shared_task
from django.utils import timezone

from .services.recurrence_service import RecurrenceService

logger = logging.getLogger(__name__)


@shared_task(name="apps.finance.process_recurring_templates")
def process_recurring_templates():
    """Daily beat job: generate every recurring occurrence that is due."""
    today = timezone.localdate()
    logger.info("Finance: processing recurring templates due on %s", today)
    result = RecurrenceService.process_due_templates(today=today)
    return result.as_dict()
