from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event

from ..models import RecurrenceFrequency, RecurringTransactionTemplate, Transaction
from .transaction_service import EDITABLE_FIELDS, TransactionError, TransactionService

logger = logging.getLogger(__name__)

OCCURRENCE_SUFFIX = " (Recorrência)"

# Fields of base_transaction_data copied into each occurrence. Amount, type,
# description and due date always come from the template itself.
INHERITED_FIELDS = tuple(
    name for name in EDITABLE_FIELDS
    if name not in {"transaction_type", "description", "amount", "due_date", "payment_date"}
) + ("cost_center", "entity")

_STEPS = {
    RecurrenceFrequency.DAILY: lambda n: relativedelta(days=n),
    RecurrenceFrequency.WEEKLY: lambda n: relativedelta(weeks=n),
    RecurrenceFrequency.MONTHLY: lambda n: relativedelta(months=n),
    RecurrenceFrequency.YEARLY: lambda n: relativedelta(years=n),
}


def add_interval(start: date, frequency: str, interval: int = 1) -> date:
    """
    Advance ``start`` by ``interval`` units of ``frequency``.

    Month and year steps clamp to the last day of the target month
    (Jan 31 + 1 month = Feb 28/29).
    """
    if interval < 1:
        raise ValueError("Interval must be at least 1")
    try:
        step = _STEPS[frequency]
    except KeyError as exc:
        raise ValueError(f"Unknown frequency: {frequency}") from exc
    return start + step(interval)


@dataclass
class RecurrenceRunResult:
    generated: int = 0
    deactivated: int = 0
    skipped: int = 0
    failed: int = 0
    transaction_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "deactivated": self.deactivated,
            "skipped": self.skipped,
            "failed": self.failed,
            "transaction_ids": self.transaction_ids,
        }


class RecurrenceService:
    """Recurring templates and generation of their due occurrences."""

    @staticmethod
    def occurrence_data(template: RecurringTransactionTemplate) -> Dict[str, Any]:
        base = template.base_transaction_data or {}
        data = {name: base[name] for name in INHERITED_FIELDS if name in base}
        if template.cost_center_id and "cost_center" not in data:
            data["cost_center"] = template.cost_center_id
        if template.entity_id and "entity" not in data:
            data["entity"] = template.entity_id
        data.update(
            description=f"{template.description}{OCCURRENCE_SUFFIX}",
            amount=template.amount,
            transaction_type=template.transaction_type,
            due_date=template.next_due_date,
        )
        return data

    @staticmethod
    def occurrence_allocations(template: RecurringTransactionTemplate):
        """Cost-center split stored with the template, or ``None`` for a single cost center."""
        allocations = (template.base_transaction_data or {}).get("allocations")
        return list(allocations) if allocations else None

    @classmethod
    def _process_template(cls, template_id: int, today: date, result: RecurrenceRunResult) -> None:
        with transaction.atomic():
            template = (
                RecurringTransactionTemplate.objects.select_for_update()
                .select_related("company")
                .filter(pk=template_id, active=True)
                .first()
            )
            # Another worker may have advanced or disabled it meanwhile.
            if template is None or template.next_due_date > today:
                result.skipped += 1
                return

            if template.end_date and template.end_date < today:
                template.active = False
                template.save(update_fields=["active", "updated_at"])
                result.deactivated += 1
                logger.info("Recurring template %s expired on %s; deactivated", template.pk, template.end_date)
                return

            due_date = template.next_due_date
            already_generated = Transaction.objects.filter(recurring_template=template, due_date=due_date).exists()
            if not already_generated:
                try:
                    with transaction.atomic():
                        txn = TransactionService.create(
                            template.company,
                            cls.occurrence_data(template),
                            user=template.created_by,
                            allocations=cls.occurrence_allocations(template),
                            recurring_template=template,
                        )
                except IntegrityError:
                    already_generated = True
                except TransactionError as exc:
                    result.failed += 1
                    logger.error("Recurring template %s could not generate %s: %s", template.pk, due_date, exc)
                    return
                else:
                    result.generated += 1
                    result.transaction_ids.append(txn.pk)
            if already_generated:
                result.skipped += 1
                logger.warning("Occurrence of template %s for %s already exists", template.pk, due_date)

            template.next_due_date = add_interval(due_date, template.frequency, template.interval)
            template.last_generated_at = timezone.now()
            template.save(update_fields=["next_due_date", "last_generated_at", "updated_at"])

    @classmethod
    def process_due_templates(cls, company=None, today: Optional[date] = None) -> RecurrenceRunResult:
        """
        Generate one occurrence for every active template due on or before ``today``.

        Each template is handled in its own transaction with the row locked,
        so running this twice on the same day creates nothing new.
        """
        today = today or timezone.localdate()
        result = RecurrenceRunResult()
        due = RecurringTransactionTemplate.objects.filter(active=True, next_due_date__lte=today)
        if company is not None:
            due = due.filter(company=company)
        for template_id in due.order_by("next_due_date", "pk").values_list("pk", flat=True):
            try:
                cls._process_template(template_id, today, result)
            except Exception:
                result.failed += 1
                logger.exception("Recurring template %s failed; continuing with the next one", template_id)
        logger.info(
            "Recurrence run for %s (company=%s): %s generated, %s deactivated, %s skipped, %s failed",
            today,
            getattr(company, "pk", "all"),
            result.generated,
            result.deactivated,
            result.skipped,
            result.failed,
        )
        return result

    @staticmethod
    def deactivate(template: RecurringTransactionTemplate, *, user=None, request=None) -> RecurringTransactionTemplate:
        template.active = False
        template.save(update_fields=["active", "updated_at"])
        log_audit_event(
            user=user,
            company=template.company,
            action=AuditLog.ACTION_DELETE,
            entity_type="recurring_template",
            entity_id=template.pk,
            description=f"Recorrência desativada: {template.description}",
            request=request,
        )
        return template
