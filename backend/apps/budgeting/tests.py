from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from apps.budgeting.models import Budget, CostCenter, CostCenterUsage
from apps.budgeting.services import BudgetService, CostCenterError, CostCenterService, UsageService
from apps.companies.models import Company
from apps.finance.models import Transaction, TransactionStatus, TransactionType
from apps.users.models import UserCompanyRole


class CostCenterServiceTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.user = get_user_model().objects.create_user(username="budget-user", password="pass1234")
        self.root = CostCenter.objects.create(company=self.company, code="OPS", name="Operações")
        self.child = CostCenter.objects.create(company=self.company, code="OPS-LOG", name="Logística", parent=self.root)

    def test_parent_cycles_are_rejected(self):
        self.root.parent = self.child
        with self.assertRaises(CostCenterError):
            CostCenterService.save(self.root, user=self.user)

    def test_parent_must_share_company(self):
        other = Company.objects.create(name="Outra")
        foreign = CostCenter.objects.create(company=other, code="EXT", name="Externo")
        self.child.parent = foreign
        with self.assertRaises(CostCenterError):
            CostCenterService.save(self.child, user=self.user)

    def test_duplicate_code_is_rejected(self):
        with self.assertRaises(CostCenterError):
            CostCenterService.save(CostCenter(company=self.company, code="OPS", name="Outro OPS"), user=self.user)

    def test_delete_blocked_by_children(self):
        with self.assertRaises(CostCenterError):
            CostCenterService.delete(self.root, user=self.user)
        CostCenterService.delete(self.child, user=self.user)
        self.assertFalse(CostCenter.objects.filter(pk=self.child.pk).exists())

    def test_yearly_budget_takes_precedence(self):
        self.root.budget = Decimal("1000")
        self.root.budget_year = 2023
        self.root.save()
        BudgetService.set_budget(self.root, 2024, Decimal("5000"), user=self.user)

        self.assertEqual(CostCenterService.budget_for_year(self.root, 2024), Decimal("5000"))
        self.assertEqual(CostCenterService.budget_for_year(self.root, 2025), Decimal("0"))
        self.assertEqual(CostCenterService.budget_for_year(self.root), Decimal("1000"))

    def test_negative_budget_is_rejected(self):
        with self.assertRaises(CostCenterError):
            BudgetService.set_budget(self.root, 2024, Decimal("-1"))


class BudgetProgressTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.cost_center = CostCenter.objects.create(company=self.company, code="MKT", name="Marketing")
        self.idle = CostCenter.objects.create(company=self.company, code="RH", name="Recursos Humanos")
        Budget.objects.create(cost_center=self.cost_center, year=2024, amount=Decimal("12000"))

    def test_progress_uses_adjusted_monthly_budget(self):
        UsageService.increment(self.company.pk, self.cost_center.pk, "2024-01", Decimal("2000"))
        UsageService.increment(self.company.pk, self.cost_center.pk, "2024-02", Decimal("1800"))

        rows = {row["id"]: row for row in BudgetService.progress(self.company, today=date(2024, 2, 10))}

        # (12000 - 2000) spread over the 11 months left
        self.assertEqual(rows[self.cost_center.pk]["budget"], "909.09")
        self.assertEqual(rows[self.cost_center.pk]["status"], "danger")
        self.assertEqual(rows[self.idle.pk]["status"], "no-budget")

    def test_usage_rebuild_matches_transactions(self):
        Transaction.objects.create(
            company=self.company,
            transaction_type=TransactionType.PAYABLE,
            description="Anúncios",
            amount=Decimal("700.00"),
            due_date=date(2024, 2, 5),
            cost_center=self.cost_center,
        )
        CostCenterUsage.objects.all().delete()
        UsageService.increment(self.company.pk, self.cost_center.pk, "2023-12", Decimal("99"))

        call_command("recalculate_usage", "--company", str(self.company.pk))

        self.assertEqual(
            UsageService.usage_by_cost_center(self.cost_center, 2024),
            [{"month_key": "2024-02", "amount": "700.00"}],
        )
        self.assertFalse(CostCenterUsage.objects.filter(month_key="2023-12").exists())


class CostCenterAPITests(APITestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Acme Serviços")
        self.manager = get_user_model().objects.create_user(username="gerente", password="pass1234")
        UserCompanyRole.objects.create(user=self.manager, company=self.company, role="financial_manager")
        self.client.force_authenticate(user=self.manager)
        self.headers = {"HTTP_X_COMPANY_ID": str(self.company.id)}

    def test_create_budget_and_balance(self):
        created = self.client.post(
            "/api/v1/budgeting/cost-centers/",
            {"code": "TI", "name": "Tecnologia", "budget": "8000.00"},
            format="json",
            **self.headers,
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.json())
        cc_id = created.json()["id"]

        budget = self.client.post(
            f"/api/v1/budgeting/cost-centers/{cc_id}/budgets/",
            {"year": 2024, "amount": "10000.00"},
            format="json",
            **self.headers,
        )
        self.assertEqual(budget.status_code, status.HTTP_200_OK, budget.json())

        Transaction.objects.create(
            company=self.company,
            transaction_type=TransactionType.PAYABLE,
            description="Licenças",
            amount=Decimal("2500.00"),
            due_date=date(2024, 6, 1),
            status=TransactionStatus.APPROVED,
            cost_center_id=cc_id,
        )
        balance = self.client.get(f"/api/v1/budgeting/cost-centers/{cc_id}/available-balance/", {"year": 2024}, **self.headers)
        self.assertEqual(balance.status_code, status.HTTP_200_OK)
        self.assertEqual(balance.json()["available"], "7500.00")

    def test_plain_user_cannot_create(self):
        user = get_user_model().objects.create_user(username="colaborador", password="pass1234")
        UserCompanyRole.objects.create(user=user, company=self.company, role="user")
        self.client.force_authenticate(user=user)

        response = self.client.post(
            "/api/v1/budgeting/cost-centers/", {"code": "TI", "name": "Tecnologia"}, format="json", **self.headers
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        listed = self.client.get("/api/v1/budgeting/cost-centers/", **self.headers)
        self.assertEqual(listed.status_code, status.HTTP_200_OK)
