from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model

from apps.budgeting.models import CostCenter
from apps.companies.models import Company
from apps.finance.models import Transaction, TransactionStatus, TransactionType
from apps.users.models import UserCompanyRole


class FinanceFixtures:
    """Company, users and cost center shared by the finance tests."""

    def build_fixtures(self):
        User = get_user_model()
        self.company = Company.objects.create(name="Acme Serviços", cnpj="12345678000190")
        self.other_company = Company.objects.create(name="Beta Comércio")
        self.manager = User.objects.create_user(
            username="gerente", password="pass123", email="gerente@acme.test", first_name="Gina"
        )
        UserCompanyRole.objects.create(user=self.manager, company=self.company, role="financial_manager")
        self.cost_center = CostCenter.objects.create(
            company=self.company,
            code="ADM",
            name="Administrativo",
            approver_email="aprovador@acme.test",
        )

    def make_transaction(self, *, transaction_type=TransactionType.PAYABLE, amount="100.00",
                         status=TransactionStatus.DRAFT, due_date=date(2024, 3, 10), company=None, **extra):
        return Transaction.objects.create(
            company=company or self.company,
            created_by=self.manager,
            transaction_type=transaction_type,
            description=extra.pop("description", "Conta de luz"),
            amount=Decimal(amount),
            status=status,
            due_date=due_date,
            **extra,
        )
