from __future__ import annotations

from unittest import mock

from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.companies.models import Company
from apps.users.models import UserCompanyRole

User = get_user_model()


class LogAuditEventTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.user = User.objects.create_user(username="ana", password="pass12345", email="ana@acme.test")

    def test_records_request_context(self):
        request = RequestFactory().post(
            "/", HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1", HTTP_USER_AGENT="pytest-agent"
        )
        entry = log_audit_event(
            user=self.user,
            company=self.company,
            action=AuditLog.ACTION_APPROVE,
            entity_type="payment_batch",
            entity_id=7,
            details={"total": "1150.00"},
            request=request,
        )

        self.assertEqual(entry.ip_address, "203.0.113.9")
        self.assertEqual(entry.user_agent, "pytest-agent")
        self.assertEqual(entry.user_email, "ana@acme.test")
        self.assertEqual(entry.entity_id, "7")

    def test_failures_never_reach_the_caller(self):
        with mock.patch.object(AuditLog.objects, "create", side_effect=RuntimeError("db down")):
            with self.assertLogs("apps.audit.utils", level="ERROR"):
                entry = log_audit_event(
                    user=self.user,
                    company=self.company,
                    action=AuditLog.ACTION_CREATE,
                    entity_type="transaction",
                    entity_id=1,
                )
        self.assertIsNone(entry)


class AuditLogAPITests(APITestCase):
    url = "/api/v1/audit-logs/"

    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.other = Company.objects.create(name="Beta Comércio")
        self.auditor = User.objects.create_user(username="auditor", password="pass12345")
        self.clerk = User.objects.create_user(username="clerk", password="pass12345")
        UserCompanyRole.objects.create(user=self.auditor, company=self.company, role="auditor")
        UserCompanyRole.objects.create(user=self.clerk, company=self.company, role="user")
        for index in range(3):
            log_audit_event(
                user=self.clerk,
                company=self.company,
                action=AuditLog.ACTION_CREATE,
                entity_type="transaction",
                entity_id=index,
            )
        log_audit_event(
            user=self.auditor,
            company=self.company,
            action=AuditLog.ACTION_EXECUTE,
            entity_type="payment_batch",
            entity_id=1,
        )
        log_audit_event(
            user=self.clerk,
            company=self.other,
            action=AuditLog.ACTION_CREATE,
            entity_type="transaction",
            entity_id=99,
        )
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.pk)}

    def test_auditor_lists_company_entries(self):
        self.client.force_authenticate(self.auditor)
        response = self.client.get(self.url, **self.headers)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.json()), 4)
        self.assertNotIn("99", [row["entity_id"] for row in response.json()])

    def test_filters_and_limit(self):
        self.client.force_authenticate(self.auditor)

        by_entity = self.client.get(self.url, {"entity": "payment_batch"}, **self.headers).json()
        self.assertEqual([row["action"] for row in by_entity], ["execute"])

        by_user = self.client.get(self.url, {"user": self.clerk.pk, "limit": 2}, **self.headers).json()
        self.assertEqual(len(by_user), 2)

        by_action = self.client.get(self.url, {"action": "create", "entity_id": "1"}, **self.headers).json()
        self.assertEqual(len(by_action), 1)

    def test_regular_user_is_forbidden(self):
        self.client.force_authenticate(self.clerk)
        response = self.client.get(self.url, **self.headers)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
