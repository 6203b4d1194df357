from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.companies.models import Company
from apps.permissions.matrix import (
    ALWAYS_GRANTED,
    POLICY,
    all_capabilities,
    allowed_roles,
    resolve_effective_role,
    resolve_permissions,
)
from apps.permissions.permissions import get_permission_set, has_permission
from apps.users.models import UserCompanyRole

User = get_user_model()


class EffectiveRoleTests(SimpleTestCase):
    def test_global_admin_is_admin_everywhere(self):
        self.assertEqual(resolve_effective_role("admin", {}, 5), "admin")
        self.assertEqual(resolve_effective_role("admin", {5: "auditor"}, 5), "admin")

    def test_company_role_wins_when_company_selected(self):
        self.assertEqual(resolve_effective_role("user", {"5": "approver"}, 5), "approver")

    def test_no_role_in_selected_company(self):
        self.assertIsNone(resolve_effective_role("financial_manager", {7: "approver"}, 5))

    def test_global_role_applies_without_company(self):
        self.assertEqual(resolve_effective_role("releaser", {5: "approver"}, None), "releaser")
        self.assertIsNone(resolve_effective_role("", {}, None))


class PermissionSetTests(SimpleTestCase):
    def test_admin_holds_every_capability(self):
        permissions = resolve_permissions("admin", {}, 1)
        self.assertEqual(permissions.capabilities, all_capabilities())
        self.assertTrue(permissions.is_admin)

    def test_resolution_is_deterministic(self):
        first = resolve_permissions("user", {1: "approver"}, 1)
        second = resolve_permissions("user", {1: "approver"}, 1)
        self.assertEqual(first, second)

    def test_user_without_role_only_has_always_granted(self):
        permissions = resolve_permissions("user", {}, 3)
        self.assertIsNone(permissions.role)
        self.assertEqual(permissions.capabilities, ALWAYS_GRANTED)
        self.assertFalse(permissions.can("payables.view"))

    def test_role_capabilities_follow_policy_table(self):
        approver = resolve_permissions(None, {1: "approver"}, 1)
        self.assertTrue(approver.can("payables.approve"))
        self.assertTrue(approver.can("batches.approve"))
        self.assertFalse(approver.can("batches.pay"))
        self.assertFalse(approver.can("users.view"))

        releaser = resolve_permissions(None, {1: "releaser"}, 1)
        self.assertTrue(releaser.can("batches.pay"))
        self.assertFalse(releaser.can("payables.approve"))

        auditor = resolve_permissions(None, {1: "auditor"}, 1)
        self.assertTrue(auditor.can("audit_logs.view"))
        self.assertFalse(auditor.can("payables.create"))

    def test_as_dict_lists_every_module(self):
        payload = resolve_permissions(None, {1: "user"}, 1).as_dict()
        self.assertEqual(set(payload["modules"]), set(POLICY))
        self.assertTrue(payload["modules"]["payables"]["create"])
        self.assertFalse(payload["modules"]["payables"]["approve"])

    def test_unknown_capability_has_no_roles(self):
        self.assertEqual(allowed_roles("inventory.view"), frozenset())


class PermissionCheckTests(APITestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.other = Company.objects.create(name="Beta Comércio")
        self.user = User.objects.create_user(username="lia", password="pass12345", role="user")
        UserCompanyRole.objects.create(user=self.user, company=self.company, role="financial_manager")

    def test_has_permission_uses_company_role(self):
        self.assertTrue(has_permission(self.user, "batches.create", self.company))
        self.assertFalse(has_permission(self.user, "batches.create", self.other))
        self.assertFalse(has_permission(self.user, "batches.create", None))

    def test_inactive_membership_grants_nothing(self):
        UserCompanyRole.objects.filter(user=self.user).update(is_active=False)
        self.assertIsNone(get_permission_set(self.user, self.company).role)

    def test_my_permissions_endpoint(self):
        self.client.force_authenticate(self.user)
        response = self.client.get("/api/v1/permissions/me/", HTTP_X_COMPANY_ID=str(self.company.pk))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        body = response.json()
        self.assertEqual(body["role"], "financial_manager")
        self.assertEqual(body["company"], self.company.pk)
        self.assertTrue(body["modules"]["recurrences"]["create"])

    def test_roles_endpoint(self):
        self.client.force_authenticate(self.user)
        codes = [row["code"] for row in self.client.get("/api/v1/permissions/roles/").json()["results"]]
        self.assertEqual(codes, ["admin", "financial_manager", "approver", "releaser", "auditor", "user"])
