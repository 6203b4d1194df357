from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from apps.budgeting.models import CostCenter, CostCenterUsage
from apps.budgeting.services import CostCenterService
from apps.finance.models import PaymentBatch, TransactionStatus, TransactionType
from apps.finance.services.transaction_service import TransactionError, TransactionService

from .helpers import FinanceFixtures


class TransactionServiceTests(FinanceFixtures, TestCase):

    def setUp(self):
        self.build_fixtures()
        self.marketing = CostCenter.objects.create(company=self.company, code="MKT", name="Marketing")

    def _create(self, **overrides):
        data = {
            "transaction_type": TransactionType.PAYABLE,
            "description": "Aluguel do escritório",
            "amount": Decimal("1000.00"),
            "due_date": date(2024, 3, 10),
        }
        allocations = overrides.pop("allocations", None)
        data.update(overrides)
        return TransactionService.create(self.company, data, user=self.manager, allocations=allocations)

    def test_create_splits_amount_across_allocations(self):
        txn = self._create(allocations=[
            {"cost_center": self.cost_center.pk, "percentage": "60"},
            {"cost_center": self.marketing.pk, "percentage": "40"},
        ])

        amounts = {alloc.cost_center_id: alloc.amount for alloc in txn.allocations.all()}
        self.assertEqual(txn.status, TransactionStatus.DRAFT)
        self.assertEqual(amounts[self.cost_center.pk], Decimal("600.00"))
        self.assertEqual(amounts[self.marketing.pk], Decimal("400.00"))

    def test_allocations_must_add_up_to_one_hundred_percent(self):
        with self.assertRaises(TransactionError):
            self._create(allocations=[
                {"cost_center": self.cost_center.pk, "percentage": "50"},
                {"cost_center": self.marketing.pk, "percentage": "40"},
            ])

    def test_cost_center_of_another_company_is_refused(self):
        foreign = CostCenter.objects.create(company=self.other_company, code="EXT", name="Externo")
        with self.assertRaises(TransactionError):
            self._create(cost_center=foreign.pk)

    def test_restricted_cost_center_requires_allowed_user(self):
        self.cost_center.allowed_users.add(get_user_model().objects.create_user(username="outro", password="pass123"))
        with self.assertRaises(TransactionError):
            self._create(cost_center=self.cost_center.pk)

    def test_short_description_is_rejected(self):
        with self.assertRaises(TransactionError):
            self._create(description="ab")

    def test_payable_follows_approval_before_payment(self):
        txn = self._create()
        with self.assertRaises(TransactionError):
            TransactionService.mark_paid(txn, user=self.manager)

        TransactionService.submit_for_approval(txn, user=self.manager)
        TransactionService.approve(txn, user=self.manager)
        TransactionService.mark_paid(txn, user=self.manager, discount=Decimal("50"), interest=Decimal("10"))

        txn.refresh_from_db()
        self.assertEqual(txn.status, TransactionStatus.PAID)
        self.assertEqual(txn.final_amount, Decimal("960.00"))
        self.assertIsNotNone(txn.payment_date)

    def test_receivable_can_be_settled_from_draft(self):
        txn = self._create(transaction_type=TransactionType.RECEIVABLE, description="Mensalidade cliente")
        TransactionService.mark_paid(txn, user=self.manager, payment_date=date(2024, 3, 12))

        txn.refresh_from_db()
        self.assertEqual(txn.status, TransactionStatus.PAID)
        self.assertEqual(txn.final_amount, Decimal("1000.00"))

    def test_paid_transactions_are_frozen(self):
        txn = self._create(transaction_type=TransactionType.RECEIVABLE)
        TransactionService.mark_paid(txn, user=self.manager)
        with self.assertRaises(TransactionError):
            TransactionService.update(txn, {"amount": Decimal("5")}, user=self.manager)

    def test_rejected_transaction_can_return_to_draft_only(self):
        txn = self._create()
        TransactionService.reject(txn, "Duplicada", user=self.manager)
        self.assertEqual(txn.rejection_reason, "Duplicada")
        with self.assertRaises(TransactionError):
            TransactionService.approve(txn, user=self.manager)

    def test_delete_is_blocked_while_in_a_batch(self):
        txn = self._create()
        txn.batch = PaymentBatch.objects.create(company=self.company, name="Lote março")
        txn.save()
        with self.assertRaises(TransactionError):
            TransactionService.delete(txn, user=self.manager)


class CostCenterUsageTrackingTests(FinanceFixtures, TestCase):

    def setUp(self):
        self.build_fixtures()

    def _usage(self, month_key):
        row = CostCenterUsage.objects.filter(cost_center=self.cost_center, month_key=month_key).first()
        return row.amount if row else Decimal("0")

    def test_usage_moves_to_payment_month_when_paid(self):
        txn = TransactionService.create(
            self.company,
            {
                "transaction_type": TransactionType.PAYABLE,
                "description": "Material de escritório",
                "amount": Decimal("200.00"),
                "due_date": date(2024, 3, 10),
                "cost_center": self.cost_center.pk,
            },
            user=self.manager,
        )
        self.assertEqual(self._usage("2024-03"), Decimal("200.00"))

        TransactionService.submit_for_approval(txn, user=self.manager)
        TransactionService.approve(txn, user=self.manager)
        TransactionService.mark_paid(txn, user=self.manager, final_amount=Decimal("180.00"), payment_date=date(2024, 4, 2))

        self.assertEqual(self._usage("2024-03"), Decimal("0.00"))
        self.assertEqual(self._usage("2024-04"), Decimal("180.00"))

    def test_rejection_releases_usage(self):
        txn = TransactionService.create(
            self.company,
            {
                "transaction_type": TransactionType.PAYABLE,
                "description": "Viagem",
                "amount": Decimal("300.00"),
                "due_date": date(2024, 5, 5),
                "cost_center": self.cost_center.pk,
            },
            user=self.manager,
        )
        TransactionService.reject(txn, user=self.manager)
        self.assertEqual(self._usage("2024-05"), Decimal("0.00"))

    def test_available_balance_counts_budget_children_and_transactions(self):
        self.cost_center.budget = Decimal("10000")
        self.cost_center.save()
        child = CostCenter.objects.create(
            company=self.company, parent=self.cost_center, code="ADM-TI", name="Tecnologia", budget=Decimal("3000")
        )
        self.make_transaction(amount="1500.00", cost_center=self.cost_center)
        self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="500.00", cost_center=self.cost_center)
        self.make_transaction(amount="999.00", cost_center=self.cost_center, status=TransactionStatus.REJECTED)

        balance = CostCenterService.available_balance(self.cost_center)

        self.assertEqual(balance.allocated_to_children, Decimal("3000"))
        self.assertEqual(balance.available, Decimal("6000.00"))
        self.assertEqual(CostCenterService.available_balance(child).available, Decimal("3000"))
