from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from apps.budgeting.models import CostCenter
from apps.finance.models import RecurrenceFrequency, RecurringTransactionTemplate, Transaction, TransactionType
from apps.finance.services.recurrence_service import RecurrenceService, add_interval
from apps.finance.tasks import process_recurring_templates

from .helpers import FinanceFixtures


class AddIntervalTests(TestCase):

    def test_monthly_interval_of_two(self):
        self.assertEqual(add_interval(date(2024, 1, 15), RecurrenceFrequency.MONTHLY, 2), date(2024, 3, 15))

    def test_month_end_is_clamped(self):
        self.assertEqual(add_interval(date(2024, 1, 31), RecurrenceFrequency.MONTHLY), date(2024, 2, 29))
        self.assertEqual(add_interval(date(2024, 2, 29), RecurrenceFrequency.YEARLY), date(2025, 2, 28))

    def test_daily_and_weekly_steps(self):
        self.assertEqual(add_interval(date(2024, 12, 30), RecurrenceFrequency.DAILY, 3), date(2025, 1, 2))
        self.assertEqual(add_interval(date(2024, 1, 1), RecurrenceFrequency.WEEKLY, 2), date(2024, 1, 15))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            add_interval(date(2024, 1, 1), RecurrenceFrequency.MONTHLY, 0)
        with self.assertRaises(ValueError):
            add_interval(date(2024, 1, 1), "fortnightly")


class RecurrenceGenerationTests(FinanceFixtures, TestCase):

    def setUp(self):
        self.build_fixtures()
        self.template = RecurringTransactionTemplate.objects.create(
            company=self.company,
            created_by=self.manager,
            description="Aluguel",
            amount=Decimal("2500.00"),
            transaction_type=TransactionType.PAYABLE,
            frequency=RecurrenceFrequency.MONTHLY,
            interval=1,
            next_due_date=date(2024, 1, 15),
            cost_center=self.cost_center,
            base_transaction_data={"payment_method": "boleto", "notes": "Contrato 12/2023"},
        )

    def test_due_template_generates_one_occurrence_and_advances(self):
        result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        self.assertEqual(result.generated, 1)
        txn = Transaction.objects.get(pk=result.transaction_ids[0])
        self.assertEqual(txn.description, "Aluguel (Recorrência)")
        self.assertEqual(txn.due_date, date(2024, 1, 15))
        self.assertEqual(txn.cost_center, self.cost_center)
        self.assertEqual(txn.payment_method, "boleto")
        self.assertEqual(txn.recurring_template, self.template)

        self.template.refresh_from_db()
        self.assertEqual(self.template.next_due_date, date(2024, 2, 15))
        self.assertIsNotNone(self.template.last_generated_at)

    def test_second_run_on_the_same_day_creates_nothing(self):
        RecurrenceService.process_due_templates(today=date(2024, 1, 15))
        result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        self.assertEqual(result.generated, 0)
        self.assertEqual(Transaction.objects.filter(recurring_template=self.template).count(), 1)

    def test_existing_occurrence_is_not_duplicated(self):
        self.make_transaction(description="Aluguel (Recorrência)", due_date=date(2024, 1, 15),
                              recurring_template=self.template)

        result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        self.assertEqual(result.generated, 0)
        self.assertEqual(result.skipped, 1)
        self.template.refresh_from_db()
        self.assertEqual(self.template.next_due_date, date(2024, 2, 15))

    def test_templates_not_yet_due_are_left_alone(self):
        result = RecurrenceService.process_due_templates(today=date(2024, 1, 14))
        self.assertEqual(result.generated, 0)
        self.assertFalse(Transaction.objects.exists())

    def test_expired_template_is_deactivated(self):
        self.template.end_date = date(2024, 1, 20)
        self.template.next_due_date = date(2024, 1, 15)
        self.template.save()

        result = RecurrenceService.process_due_templates(today=date(2024, 2, 1))

        self.template.refresh_from_db()
        self.assertEqual(result.deactivated, 1)
        self.assertFalse(self.template.active)
        self.assertFalse(Transaction.objects.exists())

    def test_run_can_be_limited_to_one_company(self):
        result = RecurrenceService.process_due_templates(company=self.other_company, today=date(2024, 1, 15))
        self.assertEqual(result.generated, 0)

    def test_failing_template_keeps_its_due_date(self):
        foreign = CostCenter.objects.create(company=self.other_company, code="EXT", name="Externo")
        self.template.base_transaction_data = {"cost_center": foreign.pk}
        self.template.save()

        result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        self.assertEqual(result.failed, 1)
        self.template.refresh_from_db()
        self.assertEqual(self.template.next_due_date, date(2024, 1, 15))

    def test_broken_template_does_not_stop_the_others(self):
        broken = RecurringTransactionTemplate.objects.create(
            company=self.company,
            created_by=self.manager,
            description="Internet",
            amount=Decimal("150.00"),
            transaction_type=TransactionType.PAYABLE,
            frequency=RecurrenceFrequency.MONTHLY,
            next_due_date=date(2024, 1, 10),
            base_transaction_data={"cost_center": "ADM"},
        )

        with self.assertLogs("apps.finance.services.recurrence_service", level="ERROR"):
            result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.generated, 1)
        self.assertTrue(Transaction.objects.filter(recurring_template=self.template).exists())
        self.assertFalse(Transaction.objects.filter(recurring_template=broken).exists())
        broken.refresh_from_db()
        self.assertEqual(broken.next_due_date, date(2024, 1, 10))

    def test_occurrence_keeps_the_template_split(self):
        marketing = CostCenter.objects.create(company=self.company, code="MKT", name="Marketing")
        self.template.base_transaction_data = {
            "allocations": [
                {"cost_center": self.cost_center.pk, "percentage": "60"},
                {"cost_center": marketing.pk, "percentage": "40"},
            ],
        }
        self.template.save()

        result = RecurrenceService.process_due_templates(today=date(2024, 1, 15))

        txn = Transaction.objects.get(pk=result.transaction_ids[0])
        split = {alloc.cost_center.code: alloc.amount for alloc in txn.allocations.select_related("cost_center")}
        self.assertEqual(split, {"ADM": Decimal("1500.00"), "MKT": Decimal("1000.00")})

    def test_celery_task_and_management_command(self):
        self.template.next_due_date = timezone.localdate()
        self.template.save()

        payload = process_recurring_templates()
        self.assertEqual(payload["generated"], 1)

        call_command("process_recurrences", "--date", timezone.localdate().isoformat())
        self.assertEqual(Transaction.objects.filter(recurring_template=self.template).count(), 1)
