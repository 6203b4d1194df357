from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.test import APITestCase

from apps.audit.models import AuditLog
from apps.companies.models import Company
from apps.notifications.models import Notification
from apps.users.models import UserCompanyRole, UserStatus


User = get_user_model()


class UserOnboardingAPITests(APITestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.admin = User.objects.create_user(
            username="admin", password="pass12345", email="admin@acme.test", role="admin"
        )

    def _register(self):
        response = self.client.post(
            "/api/v1/users/register/",
            {
                "username": "bruno",
                "email": "bruno@acme.test",
                "password": "S3nh@Forte!2024",
                "first_name": "Bruno",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.json())
        return User.objects.get(username="bruno")

    def test_registration_creates_user_waiting_for_company(self):
        user = self._register()
        self.assertEqual(user.status, UserStatus.PENDING_COMPANY_SETUP)
        self.assertTrue(user.check_password("S3nh@Forte!2024"))

    def test_duplicate_email_is_rejected(self):
        self._register()
        response = self.client.post(
            "/api/v1/users/register/",
            {"username": "outro", "email": "BRUNO@acme.test", "password": "S3nh@Forte!2024"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_access_request_then_admin_approval(self):
        user = self._register()
        self.client.force_authenticate(user)
        response = self.client.post(
            "/api/v1/users/me/request-access/",
            {"company": self.company.pk, "role": "approver"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.status, UserStatus.PENDING_APPROVAL)
        self.assertEqual(user.pending_company, self.company)
        self.assertTrue(Notification.objects.filter(user=self.admin, entity_type="user").exists())

        self.client.force_authenticate(self.admin)
        pending = self.client.get("/api/v1/users/pending/")
        self.assertEqual([row["username"] for row in pending.json()], ["bruno"])

        approve = self.client.post(f"/api/v1/users/{user.pk}/status/", {"status": "active"}, format="json")
        self.assertEqual(approve.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.status, UserStatus.ACTIVE)
        self.assertIsNone(user.pending_company)
        self.assertEqual(user.company_roles, {self.company.pk: "approver"})
        self.assertTrue(AuditLog.objects.filter(entity_type="user", action=AuditLog.ACTION_APPROVE).exists())
        self.assertTrue(Notification.objects.filter(user=user, title="Acesso aprovado").exists())

    def test_admin_role_cannot_be_requested(self):
        user = self._register()
        self.client.force_authenticate(user)
        response = self.client.post(
            "/api/v1/users/me/request-access/",
            {"company": self.company.pk, "role": "admin"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rejection_clears_pending_request(self):
        user = self._register()
        user.pending_company = self.company
        user.pending_role = "user"
        user.status = UserStatus.PENDING_APPROVAL
        user.save()

        self.client.force_authenticate(self.admin)
        self.client.post(f"/api/v1/users/{user.pk}/status/", {"status": "rejected"}, format="json")

        user.refresh_from_db()
        self.assertEqual(user.status, UserStatus.REJECTED)
        self.assertEqual(user.pending_role, "")
        self.assertFalse(UserCompanyRole.objects.filter(user=user).exists())


class UserRoleAPITests(APITestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.admin = User.objects.create_user(username="admin", password="pass12345", role="admin")
        self.member = User.objects.create_user(
            username="carlos", password="pass12345", email="carlos@acme.test", first_name="Carlos"
        )
        UserCompanyRole.objects.create(user=self.member, company=self.company, role="user")

    def test_admin_changes_company_role_and_it_is_audited(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            f"/api/v1/users/{self.member.pk}/role/",
            {"role": "releaser", "company": self.company.pk},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["company_roles"], {str(self.company.pk): "releaser"})
        entry = AuditLog.objects.get(entity_type="user", action=AuditLog.ACTION_UPDATE)
        self.assertEqual(entry.details["previous"], "user")
        self.assertEqual(entry.details["new"], "releaser")

    def test_admin_changes_global_role(self):
        self.client.force_authenticate(self.admin)
        self.client.post(f"/api/v1/users/{self.member.pk}/role/", {"role": "auditor"}, format="json")

        self.member.refresh_from_db()
        self.assertEqual(self.member.role, "auditor")

    def test_non_admin_cannot_change_roles(self):
        self.client.force_authenticate(self.member)
        response = self.client.post(
            f"/api/v1/users/{self.member.pk}/role/",
            {"role": "financial_manager", "company": self.company.pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_users_by_role_for_selected_company(self):
        approver = User.objects.create_user(username="ana", password="pass12345", first_name="Ana")
        UserCompanyRole.objects.create(user=approver, company=self.company, role="approver")
        self.client.force_authenticate(self.member)

        response = self.client.get(
            "/api/v1/users/by-role/",
            {"roles": "approver,admin"},
            HTTP_X_COMPANY_ID=str(self.company.pk),
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({row["username"] for row in response.json()}, {"ana", "admin"})

    def test_users_by_role_requires_company(self):
        self.client.force_authenticate(self.member)
        response = self.client.get("/api/v1/users/by-role/", {"roles": "approver"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CurrentUserProfileAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="alice",
            password="pass12345",
            email="alice@example.com",
            first_name="Alice",
            last_name="Anderson",
        )
        self.client.force_authenticate(self.user)
        self.url = "/api/v1/users/me/"

    def test_retrieve_current_user_profile(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["username"], "alice")
        self.assertEqual(response.data["display_name"], "Alice Anderson")

    def test_profile_update_cannot_change_role(self):
        response = self.client.patch(self.url, {"phone": "11999990000", "role": "admin"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, "11999990000")
        self.assertEqual(self.user.role, "user")

    def test_change_password_checks_current_password(self):
        wrong = self.client.post(
            "/api/v1/users/change-password/",
            {"old_password": "nope", "new_password": "Outr@Senha!2024"},
            format="json",
        )
        self.assertEqual(wrong.status_code, status.HTTP_400_BAD_REQUEST)

        ok = self.client.post(
            "/api/v1/users/change-password/",
            {"old_password": "pass12345", "new_password": "Outr@Senha!2024"},
            format="json",
        )
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("Outr@Senha!2024"))
