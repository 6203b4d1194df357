from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.companies.models import Company
from apps.users.models import UserCompanyRole

User = get_user_model()


class TokenObtainTests(APITestCase):
    url = "/api/v1/auth/token/"

    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.user = User.objects.create_user(
            username="marta", password="pass12345", email="Marta@Acme.test", role="user"
        )
        UserCompanyRole.objects.create(user=self.user, company=self.company, role="approver")

    def test_login_with_username(self):
        response = self.client.post(self.url, {"username": "marta", "password": "pass12345"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertIn("access", body)
        self.assertIn("refresh", body)
        self.assertEqual(body["user"]["company_roles"], {str(self.company.pk): "approver"})

    def test_login_with_email_is_case_insensitive(self):
        response = self.client.post(self.url, {"email": "marta@acme.test", "password": "pass12345"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["user"]["username"], "marta")

    def test_login_is_audited(self):
        self.client.post(self.url, {"login": "marta", "password": "pass12345"}, format="json")

        entry = AuditLog.objects.get(action=AuditLog.ACTION_LOGIN)
        self.assertEqual(entry.user, self.user)
        self.assertIsNone(entry.company)

    def test_wrong_password_is_rejected(self):
        response = self.client.post(self.url, {"username": "marta", "password": "errada"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(AuditLog.objects.filter(action=AuditLog.ACTION_LOGIN).exists())

    def test_refresh_token(self):
        tokens = self.client.post(self.url, {"username": "marta", "password": "pass12345"}, format="json").json()
        response = self.client.post("/api/v1/auth/token/refresh/", {"refresh": tokens["refresh"]}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.json())
