from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.companies.models import Company
from apps.users.models import UserCompanyRole

User = get_user_model()

BASE = "/api/v1/companies/"


class CompanyAPITests(APITestCase):
    def setUp(self):
        self.acme = Company.objects.create(name="Acme Serviços", cnpj="12345678000190")
        self.beta = Company.objects.create(name="Beta Comércio")
        self.admin = User.objects.create_user(
            username="admin", password="pass12345", email="admin@acme.test", role="admin"
        )
        self.member = User.objects.create_user(
            username="joana", password="pass12345", email="joana@acme.test", role="user"
        )
        UserCompanyRole.objects.create(user=self.member, company=self.acme, role="approver")

    def test_member_lists_only_accessible_companies(self):
        self.client.force_authenticate(self.member)
        response = self.client.get(BASE)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = response.json()
        self.assertEqual([row["name"] for row in rows], ["Acme Serviços"])
        self.assertEqual(rows[0]["user_role"], "approver")

    def test_admin_lists_every_company(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get(BASE)

        self.assertEqual(len(response.json()), 2)

    def test_admin_creates_company_and_audits(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            BASE,
            {"name": "Gama Indústria", "cnpj": "11.222.333/0001-81", "batch_frequency_days": 14},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.json())
        self.assertEqual(response.json()["cnpj"], "11222333000181")
        company = Company.objects.get(name="Gama Indústria")
        self.assertTrue(
            AuditLog.objects.filter(entity_type="company", entity_id=str(company.pk), action=AuditLog.ACTION_CREATE).exists()
        )

    def test_member_cannot_create_company(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(BASE, {"name": "Outra"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Company.objects.filter(name="Outra").exists())

    def test_invalid_cnpj_is_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(BASE, {"name": "Delta", "cnpj": "123"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("cnpj", response.json())

    def test_delete_deactivates_company(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f"{BASE}{self.beta.pk}/")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.beta.refresh_from_db()
        self.assertFalse(self.beta.is_active)

    def test_activate_stores_company_in_session(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(f"{BASE}{self.acme.pk}/activate/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.session["active_company_id"], str(self.acme.pk))

        active = self.client.get(f"{BASE}active/")
        self.assertEqual(active.json()["id"], self.acme.pk)

    def test_activate_inaccessible_company_returns_404(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(f"{BASE}{self.beta.pk}/activate/")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
