from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.finance.models import BatchStatus, RecurringTransactionTemplate, Transaction, TransactionStatus
from apps.finance.services.batch_service import PaymentBatchService
from apps.finance.services.transaction_service import TransactionService
from apps.users.models import UserCompanyRole

from .helpers import FinanceFixtures

BASE = "/api/v1/finance"
PUBLIC = "/api/v1/public"


class FinanceAPITests(FinanceFixtures, APITestCase):
    maxDiff = None

    def setUp(self):
        self.build_fixtures()
        self.client.force_authenticate(user=self.manager)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def api_post(self, path: str, payload: dict):
        return self.client.post(path, payload, format="json", **self.headers)

    def api_get(self, path: str, params=None):
        return self.client.get(path, params or {}, **self.headers)

    def _payable_payload(self, **overrides):
        payload = {
            "transaction_type": "payable",
            "description": "Serviço de limpeza",
            "amount": "450.00",
            "due_date": "2024-03-20",
            "cost_center": self.cost_center.pk,
        }
        payload.update(overrides)
        return payload

    def test_create_and_list_transactions(self):
        response = self.api_post(f"{BASE}/transactions/", self._payable_payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.json())
        self.assertEqual(response.json()["status"], "draft")
        self.assertTrue(AuditLog.objects.filter(entity_type="transaction", action=AuditLog.ACTION_CREATE).exists())

        listed = self.api_get(f"{BASE}/transactions/", {"type": "payable"})
        self.assertEqual(listed.status_code, status.HTTP_200_OK)
        body = listed.json()
        rows = body["results"] if isinstance(body, dict) else body
        self.assertEqual([row["description"] for row in rows], ["Serviço de limpeza"])

    def test_company_header_is_required(self):
        response = self.client.post(f"{BASE}/transactions/", self._payable_payload(), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inaccessible_company_is_forbidden(self):
        response = self.client.get(f"{BASE}/transactions/", HTTP_X_COMPANY_ID=str(self.other_company.id))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_auditor_cannot_create(self):
        auditor = get_user_model().objects.create_user(username="auditor", password="pass123")
        UserCompanyRole.objects.create(user=auditor, company=self.company, role="auditor")
        self.client.force_authenticate(user=auditor)

        response = self.api_post(f"{BASE}/transactions/", self._payable_payload())

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn("payables.create", response.json()["detail"])

    def test_business_rule_errors_are_bad_requests(self):
        payload = self._payable_payload(allocations=[{"cost_center": self.cost_center.pk, "percentage": "70"}])
        response = self.api_post(f"{BASE}/transactions/", payload)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("100%", response.json()["detail"])

    def test_lifecycle_actions(self):
        txn_id = self.api_post(f"{BASE}/transactions/", self._payable_payload()).json()["id"]

        self.assertEqual(self.api_post(f"{BASE}/transactions/{txn_id}/submit/", {}).status_code, status.HTTP_200_OK)
        self.assertEqual(self.api_post(f"{BASE}/transactions/{txn_id}/approve/", {}).status_code, status.HTTP_200_OK)
        paid = self.api_post(f"{BASE}/transactions/{txn_id}/pay/", {"payment_date": "2024-03-21"})

        self.assertEqual(paid.status_code, status.HTTP_200_OK, paid.json())
        self.assertEqual(paid.json()["status"], "paid")
        balance = self.api_get(f"{BASE}/reports/dashboard/").json()["current_balance"]
        self.assertEqual(Decimal(balance), Decimal("-450.00"))

    def test_recurring_template_delete_deactivates(self):
        created = self.api_post(
            f"{BASE}/recurring-templates/",
            {
                "description": "Internet",
                "amount": "199.90",
                "transaction_type": "payable",
                "frequency": "monthly",
                "interval": 1,
                "next_due_date": "2024-04-05",
                "cost_center": self.cost_center.pk,
            },
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.json())

        template_id = created.json()["id"]
        response = self.client.delete(f"{BASE}/recurring-templates/{template_id}/", **self.headers)

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        detail = self.api_get(f"{BASE}/recurring-templates/{template_id}/").json()
        self.assertFalse(detail["active"])

    def test_recurring_template_rejects_unknown_references(self):
        payload = {
            "description": "Internet",
            "amount": "199.90",
            "transaction_type": "payable",
            "frequency": "monthly",
            "next_due_date": "2024-04-05",
        }
        bad_cost_center = self.api_post(
            f"{BASE}/recurring-templates/", {**payload, "base_transaction_data": {"cost_center": "ADM"}}
        )
        bad_split = self.api_post(
            f"{BASE}/recurring-templates/",
            {**payload, "base_transaction_data": {"allocations": [{"cost_center": self.cost_center.pk, "percentage": "50"}]}},
        )

        self.assertEqual(bad_cost_center.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(bad_split.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(RecurringTransactionTemplate.objects.exists())

    def test_batch_endpoints(self):
        line = self.make_transaction(amount="300.00", status=TransactionStatus.APPROVED)
        created = self.api_post(f"{BASE}/batches/", {"name": "Lote 1", "transaction_ids": [line.pk]})
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.json())
        batch_id = created.json()["id"]

        sent = self.api_post(f"{BASE}/batches/{batch_id}/send-for-approval/", {"email": "aprovador@acme.test"})
        self.assertEqual(sent.status_code, status.HTTP_200_OK, sent.json())
        self.assertEqual(sent.json()["status"], BatchStatus.PENDING_APPROVAL)

        early = self.api_post(f"{BASE}/batches/{batch_id}/execute/", {})
        self.assertEqual(early.status_code, status.HTTP_400_BAD_REQUEST)

    def test_report_period_validation(self):
        response = self.api_get(f"{BASE}/reports/cash-flow/", {"start": "2024-03-31", "end": "2024-03-01"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        self.make_transaction(transaction_type="receivable", amount="700.00", due_date=date(2024, 3, 5))
        self.make_transaction(amount="200.00", due_date=date(2024, 3, 6))
        self.make_transaction(amount="999.00", due_date=date(2024, 3, 7), status=TransactionStatus.REJECTED)
        response = self.api_get(f"{BASE}/reports/cash-flow/", {"start": "2024-03-01", "end": "2024-03-31"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["balance"], "500.00")

        statement = self.api_get(f"{BASE}/reports/income-statement/", {"start": "2024-03-01", "end": "2024-03-31"}).json()
        self.assertEqual(statement["lines"][2], {"label": "(=) Resultado Operacional", "amount": "500.00"})

    def test_dashboard_includes_budget_progress(self):
        response = self.api_get(f"{BASE}/reports/dashboard/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in ("current_balance", "metrics", "cash_flow", "upcoming", "expenses_by_cost_center", "budget_progress"):
            self.assertIn(key, response.json())


class PublicBatchLinkTests(FinanceFixtures, APITestCase):

    def setUp(self):
        cache.clear()
        self.build_fixtures()
        line = self.make_transaction(amount="250.00", status=TransactionStatus.PENDING_APPROVAL)
        batch = PaymentBatchService.create(self.company, "Lote público", created_by=self.manager, transactions=[line])
        self.line = line
        self.batch = PaymentBatchService.send_for_approval(batch, approver_email="aprovador@acme.test")
        self.token = self.batch.approval_token

    def test_unknown_token_is_not_found(self):
        response = self.client.get(f"{PUBLIC}/approve-batch/nao-existe/")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_approver_sees_and_approves_batch_without_login(self):
        shown = self.client.get(f"{PUBLIC}/approve-batch/{self.token}/")
        self.assertEqual(shown.status_code, status.HTTP_200_OK)
        self.assertTrue(shown.json()["actionable"])
        self.assertEqual(shown.json()["company_name"], "Acme Serviços")

        response = self.client.post(
            f"{PUBLIC}/approve-batch/{self.token}/",
            {"decision": "approve", "adjustments": {str(self.line.pk): "200.00"}},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.json())
        self.assertEqual(response.json()["status"], BatchStatus.APPROVED)
        self.assertEqual(response.json()["total_amount"], "200.00")

    def test_authorization_link_on_batch_awaiting_approval(self):
        response = self.client.post(f"{PUBLIC}/authorize-batch/{self.token}/", {"decision": "authorize"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("não está aguardando autorização", response.json()["detail"])
        self.assertEqual(Transaction.objects.get(pk=self.line.pk).status, TransactionStatus.PENDING_APPROVAL)

    def test_approver_rejects_one_line_through_the_link(self):
        other = self.make_transaction(description="Internet", amount="90.00", status=TransactionStatus.PENDING_APPROVAL)
        batch = PaymentBatchService.create(self.company, "Lote duplo", created_by=self.manager, transactions=[other])
        extra = self.make_transaction(description="Telefone", amount="60.00", status=TransactionStatus.PENDING_APPROVAL)
        PaymentBatchService.add_transactions(batch, [extra])
        batch = PaymentBatchService.send_for_approval(batch, approver_email="aprovador@acme.test")

        response = self.client.post(
            f"{PUBLIC}/approve-batch/{batch.approval_token}/",
            {"decision": "reject_line", "transaction_id": extra.pk, "reason": "Duplicada"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.json())
        self.assertEqual(response.json()["status"], BatchStatus.PENDING_APPROVAL)
        self.assertEqual(response.json()["total_amount"], "90.00")
        extra.refresh_from_db()
        self.assertEqual(extra.status, TransactionStatus.REJECTED)
        self.assertIsNone(extra.batch_id)
        self.assertEqual(extra.batch_rejection_reason, "Duplicada")

    def test_line_rejection_needs_a_line_of_this_batch(self):
        missing = self.client.post(f"{PUBLIC}/approve-batch/{self.token}/", {"decision": "reject_line"}, format="json")
        foreign = self.make_transaction(status=TransactionStatus.PENDING_APPROVAL)
        outside = self.client.post(
            f"{PUBLIC}/approve-batch/{self.token}/",
            {"decision": "reject_line", "transaction_id": foreign.pk},
            format="json",
        )

        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(outside.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("não pertence a este lote", outside.json()["detail"])


class PublicTransactionApprovalTests(FinanceFixtures, APITestCase):

    def setUp(self):
        cache.clear()
        self.build_fixtures()
        self.txn = self.make_transaction(description="Notebook", amount="4200.00", cost_center=self.cost_center)
        with mock.patch("apps.finance.services.transaction_service.EmailService.send_quietly") as send:
            TransactionService.submit_for_approval(self.txn, user=self.manager)
        self.txn.refresh_from_db()
        self.token = self.txn.approval_token
        self.email_link = send.call_args[0][2]["link"]

    def test_submission_mails_a_tokenized_link(self):
        self.assertTrue(self.token)
        self.assertTrue(self.email_link.endswith(f"/approve/{self.token}"))
        self.assertGreater(self.txn.approval_token_expires_at, timezone.now())

    def test_approver_approves_without_login_and_link_is_spent(self):
        shown = self.client.get(f"{PUBLIC}/approve/{self.token}/")
        self.assertEqual(shown.status_code, status.HTTP_200_OK)
        self.assertEqual(shown.json()["description"], "Notebook")
        self.assertEqual(shown.json()["company_name"], "Acme Serviços")

        response = self.client.post(f"{PUBLIC}/approve/{self.token}/", {"decision": "approve"}, format="json")
        again = self.client.post(f"{PUBLIC}/approve/{self.token}/", {"decision": "approve"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.json())
        self.assertEqual(response.json()["status"], TransactionStatus.APPROVED)
        self.assertEqual(again.status_code, status.HTTP_404_NOT_FOUND)
        self.txn.refresh_from_db()
        self.assertIsNone(self.txn.approval_token)
        self.assertTrue(
            AuditLog.objects.filter(entity_type="transaction", entity_id=str(self.txn.pk), action=AuditLog.ACTION_APPROVE).exists()
        )

    def test_approver_rejects_with_reason(self):
        response = self.client.post(
            f"{PUBLIC}/approve/{self.token}/", {"decision": "reject", "reason": "Fora do orçamento"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.json())
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, TransactionStatus.REJECTED)
        self.assertEqual(self.txn.rejection_reason, "Fora do orçamento")

    def test_expired_link_is_not_found(self):
        Transaction.objects.filter(pk=self.txn.pk).update(approval_token_expires_at=timezone.now() - timedelta(minutes=5))

        response = self.client.post(f"{PUBLIC}/approve/{self.token}/", {"decision": "approve"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(Transaction.objects.get(pk=self.txn.pk).status, TransactionStatus.PENDING_APPROVAL)
