from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.db.models import Sum
from django.test import TestCase
from django.utils import timezone

from apps.budgeting.models import CostCenter, CostCenterUsage
from apps.finance.models import BatchStatus, PaymentBatch, TransactionStatus, TransactionType
from apps.finance.services.balance_service import BalanceService
from apps.finance.services.batch_service import BatchWorkflowError, InvalidBatchToken, PaymentBatchService
from apps.finance.services.transaction_service import TransactionService

from .helpers import FinanceFixtures


class PaymentBatchWorkflowTests(FinanceFixtures, TestCase):

    def setUp(self):
        self.build_fixtures()
        self.energy = self.make_transaction(description="Energia", amount="100.00", status=TransactionStatus.PENDING_APPROVAL)
        self.water = self.make_transaction(description="Água", amount="50.00", status=TransactionStatus.PENDING_APPROVAL)
        self.rent = self.make_transaction(description="Aluguel", amount="1000.00", status=TransactionStatus.APPROVED)
        self.batch = PaymentBatchService.create(
            self.company,
            "Lote semanal",
            created_by=self.manager,
            transactions=[self.energy, self.water, self.rent],
        )

    def _send_for_approval(self):
        self.batch = PaymentBatchService.send_for_approval(
            self.batch, approver_email="aprovador@acme.test", sent_by=self.manager
        )
        return self.batch

    def _approve_and_send_for_authorization(self):
        self._send_for_approval()
        self.batch = PaymentBatchService.approve_by_token(self.batch.approval_token)
        return PaymentBatchService.send_for_authorization(
            self.batch, authorizer_email="diretor@acme.test", sent_by=self.manager
        )

    def test_create_sums_lines(self):
        self.assertEqual(self.batch.status, BatchStatus.DRAFT)
        self.assertEqual(self.batch.total_amount, Decimal("1150.00"))
        self.company.refresh_from_db()
        self.assertIsNotNone(self.company.last_batch_created_at)

    def test_only_open_payables_of_the_same_company_can_join(self):
        receivable = self.make_transaction(transaction_type=TransactionType.RECEIVABLE, status=TransactionStatus.APPROVED)
        draft = self.make_transaction(status=TransactionStatus.DRAFT)
        foreign = self.make_transaction(status=TransactionStatus.APPROVED, company=self.other_company)
        for txn in (receivable, draft, foreign):
            with self.assertRaises(BatchWorkflowError):
                PaymentBatchService.add_transactions(self.batch, [txn])

    def test_send_for_approval_issues_expiring_token(self):
        with mock.patch("apps.finance.services.batch_service.EmailService.send_quietly") as send:
            batch = self._send_for_approval()

        self.assertEqual(batch.status, BatchStatus.PENDING_APPROVAL)
        self.assertTrue(batch.approval_token)
        self.assertGreater(batch.approval_token_expires_at, timezone.now())
        send.assert_called_once()
        self.assertIn(f"/approve-batch/{batch.approval_token}", send.call_args[0][2]["link"])

    def test_empty_batch_cannot_be_sent(self):
        empty = PaymentBatchService.create(self.company, "Vazio", created_by=self.manager)
        with self.assertRaises(BatchWorkflowError):
            PaymentBatchService.send_for_approval(empty, approver_email="aprovador@acme.test")

    def test_approval_with_adjustment_recomputes_total(self):
        self._send_for_approval()

        batch = PaymentBatchService.approve_by_token(
            self.batch.approval_token, comment="ok", adjustments={self.energy.pk: Decimal("80.00")}
        )

        self.assertEqual(batch.status, BatchStatus.APPROVED)
        self.assertEqual(batch.total_amount, Decimal("1130.00"))
        self.energy.refresh_from_db()
        self.assertEqual(self.energy.amount, Decimal("100.00"))
        self.assertEqual(self.energy.batch_adjusted_amount, Decimal("80.00"))
        self.assertEqual(self.energy.status, TransactionStatus.APPROVED)

    def test_adjustment_equal_to_original_is_cleared(self):
        PaymentBatchService.adjust_amount(self.batch, self.water, Decimal("40.00"))
        txn = PaymentBatchService.adjust_amount(self.batch, self.water, Decimal("50.00"))
        self.assertIsNone(txn.batch_adjusted_amount)
        with self.assertRaises(BatchWorkflowError):
            PaymentBatchService.adjust_amount(self.batch, self.water, Decimal("-1"))

    def test_rejecting_a_line_removes_it_from_the_batch(self):
        self._send_for_approval()

        batch = PaymentBatchService.reject_transaction(self.batch, self.water, "Valor incorreto")

        self.water.refresh_from_db()
        self.assertIsNone(self.water.batch_id)
        self.assertEqual(self.water.status, TransactionStatus.REJECTED)
        self.assertEqual(self.water.batch_rejection_reason, "Valor incorreto")
        self.assertIn(self.water.pk, batch.rejected_transaction_ids)
        self.assertEqual(batch.total_amount, Decimal("1100.00"))

    def test_reject_and_return_to_manager(self):
        self._send_for_approval()
        batch = PaymentBatchService.return_to_manager(self.batch, "Falta a nota fiscal")
        self.assertEqual(batch.status, BatchStatus.DRAFT)
        self.assertIsNone(batch.approval_token)
        self.assertEqual(batch.return_reason, "Falta a nota fiscal")

        self._send_for_approval()
        batch = PaymentBatchService.reject_by_token(self.batch.approval_token, reason="Sem caixa")
        self.assertEqual(batch.status, BatchStatus.APPROVAL_REJECTED)

    def test_authorizing_a_batch_awaiting_approval_fails(self):
        self._send_for_approval()
        with self.assertRaisesMessage(BatchWorkflowError, "não está aguardando autorização"):
            PaymentBatchService.authorize_by_token(self.batch.approval_token)
        self.batch.refresh_from_db()
        self.assertEqual(self.batch.status, BatchStatus.PENDING_APPROVAL)

    def test_expired_token_is_refused(self):
        self._send_for_approval()
        PaymentBatch.objects.filter(pk=self.batch.pk).update(approval_token_expires_at=timezone.now() - timedelta(minutes=1))
        with self.assertRaises(InvalidBatchToken):
            PaymentBatchService.approve_by_token(self.batch.approval_token)
        with self.assertRaises(InvalidBatchToken):
            PaymentBatchService.get_by_token("token-inexistente")

    def test_authorization_happens_only_once(self):
        batch = self._approve_and_send_for_authorization()
        token = batch.approval_token

        authorized = PaymentBatchService.authorize_by_token(token, comment="Pode pagar")
        self.assertEqual(authorized.status, BatchStatus.AUTHORIZED)
        self.assertEqual(authorized.authorization_comment, "Pode pagar")

        with self.assertRaisesMessage(BatchWorkflowError, "não está aguardando autorização"):
            PaymentBatchService.authorize_by_token(token)

    def test_authorization_rejection(self):
        batch = self._approve_and_send_for_authorization()
        batch = PaymentBatchService.reject_authorization_by_token(batch.approval_token, "Aguardar próximo mês")
        self.assertEqual(batch.status, BatchStatus.AUTHORIZATION_REJECTED)
        self.assertEqual(batch.rejection_reason, "Aguardar próximo mês")

    def test_execution_pays_lines_at_batch_amount(self):
        PaymentBatchService.adjust_amount(self.batch, self.rent, Decimal("900.00"))
        batch = self._approve_and_send_for_authorization()
        PaymentBatchService.authorize_by_token(batch.approval_token)

        batch = PaymentBatchService.execute(batch, user=self.manager)

        self.assertEqual(batch.status, BatchStatus.EXECUTED)
        self.rent.refresh_from_db()
        self.assertEqual(self.rent.status, TransactionStatus.PAID)
        self.assertEqual(self.rent.final_amount, Decimal("900.00"))
        self.assertEqual(self.rent.payment_date, timezone.localdate())
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("-1050.00"))

    def test_execution_requires_authorization(self):
        self._send_for_approval()
        with self.assertRaises(BatchWorkflowError):
            PaymentBatchService.execute(self.batch, user=self.manager)

    def test_execution_rescales_cost_center_split(self):
        marketing = CostCenter.objects.create(company=self.company, code="MKT", name="Marketing")
        self.rent.refresh_from_db()
        TransactionService.update(
            self.rent,
            {},
            allocations=[
                {"cost_center": self.cost_center.pk, "percentage": "50"},
                {"cost_center": marketing.pk, "percentage": "50"},
            ],
        )
        PaymentBatchService.adjust_amount(self.batch, self.rent, Decimal("600.00"))
        batch = self._approve_and_send_for_authorization()
        PaymentBatchService.authorize_by_token(batch.approval_token)

        PaymentBatchService.execute(batch, user=self.manager)

        amounts = sorted(alloc.amount for alloc in self.rent.allocations.all())
        self.assertEqual(amounts, [Decimal("300.00"), Decimal("300.00")])
        for cost_center in (self.cost_center, marketing):
            used = CostCenterUsage.objects.filter(cost_center=cost_center).aggregate(total=Sum("amount"))["total"]
            self.assertEqual(used, Decimal("300.00"))
