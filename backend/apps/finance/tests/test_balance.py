from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from apps.finance.models import CompanyStats, TransactionStatus, TransactionType
from apps.finance.services.balance_service import BalanceService
from apps.finance.services.transaction_service import TransactionService

from .helpers import FinanceFixtures


class CompanyBalanceTests(FinanceFixtures, TestCase):

    def setUp(self):
        self.build_fixtures()

    def test_paid_receivable_and_payable_net_out(self):
        self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="100.00",
                              status=TransactionStatus.PAID, payment_date=date(2024, 3, 1))
        self.make_transaction(amount="140.00", status=TransactionStatus.PAID, payment_date=date(2024, 3, 2))

        self.assertEqual(BalanceService.current_balance(self.company), Decimal("-40.00"))

    def test_open_transactions_do_not_move_the_balance(self):
        self.make_transaction(amount="500.00", status=TransactionStatus.APPROVED)
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("0"))

    def test_final_amount_replaces_amount_when_settled(self):
        txn = self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="100.00")
        TransactionService.mark_paid(txn, user=self.manager, final_amount=Decimal("95.00"))
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("95.00"))

    def test_reverting_and_deleting_paid_transactions_undo_their_effect(self):
        income = self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="300.00",
                                       status=TransactionStatus.PAID, payment_date=date(2024, 3, 1))
        expense = self.make_transaction(amount="120.00", status=TransactionStatus.PAID, payment_date=date(2024, 3, 1))

        income.amount = Decimal("250.00")
        income.save()
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("130.00"))

        expense.delete()
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("250.00"))

    def test_balances_are_kept_per_company(self):
        self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="80.00",
                              status=TransactionStatus.PAID, company=self.other_company)
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("0"))
        self.assertEqual(BalanceService.current_balance(self.other_company), Decimal("80.00"))

    def test_recalculation_repairs_drift(self):
        self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="100.00", status=TransactionStatus.PAID)
        CompanyStats.objects.filter(company=self.company).update(current_balance=Decimal("999.99"))

        stats = BalanceService.recalculate_company_balance(self.company)

        self.assertEqual(stats.current_balance, Decimal("100.00"))
        self.assertEqual(stats.updated_by, "recalculation")

    def test_failed_balance_update_does_not_block_the_write(self):
        with mock.patch.object(BalanceService, "apply_delta", side_effect=RuntimeError("db down")):
            txn = self.make_transaction(transaction_type=TransactionType.RECEIVABLE, amount="10.00",
                                        status=TransactionStatus.PAID)
        self.assertIsNotNone(txn.pk)
        self.assertEqual(BalanceService.current_balance(self.company), Decimal("0"))
