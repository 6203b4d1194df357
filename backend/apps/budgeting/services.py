from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event

from .models import Budget, CostCenter, CostCenterUsage

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


class CostCenterError(ValueError):
    """Invalid cost center operation."""


@dataclass
class CostCenterBalance:
    budget: Decimal
    receivables: Decimal
    allocated_to_children: Decimal
    payables: Decimal
    available: Decimal

    def as_dict(self) -> Dict[str, str]:
        return {key: str(value.quantize(CENT)) for key, value in asdict(self).items()}


class CostCenterService:

    @staticmethod
    def validate_parent(cost_center: CostCenter, parent: Optional[CostCenter]) -> None:
        """The parent must belong to the same company and must not be a descendant."""
        if parent is None:
            return
        if parent.company_id != cost_center.company_id:
            raise CostCenterError("O centro de custo pai deve pertencer à mesma empresa.")
        if cost_center.pk and parent.pk == cost_center.pk:
            raise CostCenterError("Um centro de custo não pode ser pai de si mesmo.")
        if cost_center.pk and any(node.pk == cost_center.pk for node in parent.ancestors()):
            raise CostCenterError("A hierarquia de centros de custo não pode conter ciclos.")

    @classmethod
    @transaction.atomic
    def save(cls, cost_center: CostCenter, *, user=None, allowed_users: Optional[Iterable] = None, request=None) -> CostCenter:
        created = cost_center.pk is None
        cls.validate_parent(cost_center, cost_center.parent)
        duplicate = CostCenter.objects.filter(company_id=cost_center.company_id, code=cost_center.code)
        if cost_center.pk:
            duplicate = duplicate.exclude(pk=cost_center.pk)
        if duplicate.exists():
            raise CostCenterError(f"Já existe um centro de custo com o código {cost_center.code}.")
        if created and user is not None and getattr(user, "pk", None):
            cost_center.created_by = user
        cost_center.save()
        if allowed_users is not None:
            cost_center.allowed_users.set(allowed_users)
        log_audit_event(
            user=user,
            company=cost_center.company,
            action=AuditLog.ACTION_CREATE if created else AuditLog.ACTION_UPDATE,
            entity_type="cost_center",
            entity_id=cost_center.pk,
            description=f"Centro de custo {'criado' if created else 'atualizado'}: {cost_center.code}",
            request=request,
        )
        return cost_center

    @staticmethod
    @transaction.atomic
    def delete(cost_center: CostCenter, *, user=None, request=None) -> None:
        if cost_center.children.exists():
            raise CostCenterError("Não é possível excluir um centro de custo que possui filhos.")
        if cost_center.allocations.exists() or cost_center.transactions.exists():
            raise CostCenterError("Não é possível excluir um centro de custo com transações vinculadas.")
        pk, code, company = cost_center.pk, cost_center.code, cost_center.company
        cost_center.delete()
        log_audit_event(
            user=user,
            company=company,
            action=AuditLog.ACTION_DELETE,
            entity_type="cost_center",
            entity_id=pk,
            description=f"Centro de custo excluído: {code}",
            request=request,
        )

    @staticmethod
    def budget_for_year(cost_center: CostCenter, year: Optional[int] = None) -> Decimal:
        """Yearly budget row when one exists, else the cost center's own budget."""
        if year is not None:
            row = Budget.objects.filter(cost_center=cost_center, year=year).only("amount").first()
            if row is not None:
                return row.amount
            if cost_center.budget_year and cost_center.budget_year != year:
                return ZERO
        return cost_center.budget or ZERO

    @staticmethod
    def _allocated(cost_center: CostCenter, transaction_type: str, year: Optional[int]) -> Decimal:
        from apps.finance.models import Transaction, TransactionAllocation, TransactionStatus

        split = TransactionAllocation.objects.filter(
            cost_center=cost_center,
            transaction__transaction_type=transaction_type,
        ).exclude(transaction__status=TransactionStatus.REJECTED)
        single = Transaction.objects.filter(
            cost_center=cost_center,
            transaction_type=transaction_type,
            allocations__isnull=True,
        ).exclude(status=TransactionStatus.REJECTED)
        if year is not None:
            split = split.filter(transaction__due_date__year=year)
            single = single.filter(due_date__year=year)
        split_total = split.aggregate(total=Sum("amount")).get("total") or ZERO
        single_total = single.aggregate(total=Sum("amount")).get("total") or ZERO
        return split_total + single_total

    @classmethod
    def available_balance(cls, cost_center: CostCenter, year: Optional[int] = None) -> CostCenterBalance:
        """
        Money left on a cost center.

        available = own budget (what the parent allocated to it)
                    + receivables allocated
                    - budgets handed down to children
                    - payables allocated
        """
        from apps.finance.models import TransactionType

        budget = cls.budget_for_year(cost_center, year)
        children = sum(
            (cls.budget_for_year(child, year) for child in cost_center.children.all()),
            ZERO,
        )
        receivables = cls._allocated(cost_center, TransactionType.RECEIVABLE, year)
        payables = cls._allocated(cost_center, TransactionType.PAYABLE, year)
        return CostCenterBalance(
            budget=budget,
            receivables=receivables,
            allocated_to_children=children,
            payables=payables,
            available=budget + receivables - children - payables,
        )


class BudgetService:

    @staticmethod
    @transaction.atomic
    def set_budget(cost_center: CostCenter, year: int, amount, *, user=None, request=None) -> Budget:
        amount = Decimal(str(amount))
        if amount < 0:
            raise CostCenterError("O orçamento não pode ser negativo.")
        budget, created = Budget.objects.update_or_create(
            cost_center=cost_center,
            year=year,
            defaults={"amount": amount},
        )
        log_audit_event(
            user=user,
            company=cost_center.company,
            action=AuditLog.ACTION_CREATE if created else AuditLog.ACTION_UPDATE,
            entity_type="budget",
            entity_id=budget.pk,
            description=f"Orçamento {year} de {cost_center.code}: {amount}",
            details={"cost_center_id": cost_center.pk, "year": year, "amount": str(amount)},
            request=request,
        )
        return budget

    @staticmethod
    def progress(company, today=None) -> List[Dict]:
        """
        Current-month spend against an adjusted monthly budget per cost center.

        The adjusted budget spreads what is left of the yearly budget (after
        spend before this month) over the remaining months of the year.
        """
        today = today or timezone.localdate()
        year = today.year
        current_key = today.strftime("%Y-%m")
        remaining_months = 12 - today.month + 1
        budgets = {
            row.cost_center_id: row.amount
            for row in Budget.objects.filter(cost_center__company=company, year=year)
        }
        spent_before: Dict[int, Decimal] = defaultdict(Decimal)
        spent_now: Dict[int, Decimal] = defaultdict(Decimal)
        for row in CostCenterUsage.objects.filter(
            company=company, month_key__gte=f"{year}-01", month_key__lte=f"{year}-12"
        ):
            if row.month_key < current_key:
                spent_before[row.cost_center_id] += row.amount
            elif row.month_key == current_key:
                spent_now[row.cost_center_id] += row.amount

        result = []
        for cost_center in CostCenter.objects.filter(company=company, is_active=True):
            annual = budgets.get(cost_center.pk, ZERO)
            remaining = max(ZERO, annual - spent_before[cost_center.pk])
            monthly = remaining / remaining_months
            spent = spent_now[cost_center.pk]
            percentage = int((spent / monthly * 100).to_integral_value()) if monthly > 0 else 0
            if annual == 0:
                status = "no-budget"
            elif percentage >= 100:
                status = "danger"
            elif percentage >= 80:
                status = "warning"
            else:
                status = "success"
            result.append({
                "id": cost_center.pk,
                "name": cost_center.name,
                "spent": str(spent.quantize(CENT)),
                "budget": str(monthly.quantize(CENT)),
                "percentage": percentage,
                "status": status,
            })
        result.sort(key=lambda item: (item["status"] == "no-budget", -item["percentage"], -Decimal(item["spent"])))
        return result


class UsageService:
    """
    Monthly payable consumption per cost center.

    Maintained incrementally from ``transaction.changed`` events: the old
    state is subtracted and the new one added.
    """

    @staticmethod
    def increment(company_id: int, cost_center_id: int, month_key: str, amount: Decimal) -> None:
        if not amount:
            return
        updated = CostCenterUsage.objects.filter(cost_center_id=cost_center_id, month_key=month_key).update(
            amount=F("amount") + amount,
            updated_at=timezone.now(),
        )
        if not updated:
            usage, created = CostCenterUsage.objects.get_or_create(
                cost_center_id=cost_center_id,
                month_key=month_key,
                defaults={"company_id": company_id, "amount": amount},
            )
            if not created:
                CostCenterUsage.objects.filter(pk=usage.pk).update(amount=F("amount") + amount)

    @staticmethod
    def _counts(snapshot) -> bool:
        from apps.finance.models import TransactionStatus, TransactionType

        return (
            snapshot is not None
            and snapshot.transaction_type == TransactionType.PAYABLE
            and snapshot.status != TransactionStatus.REJECTED
            and snapshot.month_key is not None
        )

    @classmethod
    def apply_snapshot(cls, snapshot, factor: int) -> None:
        if not cls._counts(snapshot):
            return
        for cost_center_id, amount in snapshot.cost_center_amounts():
            cls.increment(snapshot.company_id, cost_center_id, snapshot.month_key, Decimal(amount) * factor)

    @classmethod
    @transaction.atomic
    def apply_change(cls, old, new) -> None:
        cls.apply_snapshot(old, -1)
        cls.apply_snapshot(new, 1)

    @staticmethod
    def usage_by_cost_center(cost_center: CostCenter, year: int) -> List[Dict[str, str]]:
        rows = CostCenterUsage.objects.filter(
            cost_center=cost_center,
            month_key__gte=f"{year}-01",
            month_key__lte=f"{year}-12",
        ).order_by("month_key")
        return [{"month_key": row.month_key, "amount": str(row.amount)} for row in rows]

    @classmethod
    @transaction.atomic
    def recalculate_all(cls, company) -> int:
        """Rebuild the usage table of ``company`` from its transactions."""
        from apps.finance.models import Transaction
        from apps.finance.services.snapshots import TransactionSnapshot

        CostCenterUsage.objects.filter(company=company).delete()
        count = 0
        queryset = Transaction.objects.filter(company=company).filter(
            Q(cost_center__isnull=False) | Q(allocations__isnull=False)
        ).distinct().prefetch_related("allocations")
        for txn in queryset:
            cls.apply_snapshot(TransactionSnapshot.capture(txn), 1)
            count += 1
        logger.info("Cost center usage of company %s rebuilt from %s transactions", company.pk, count)
        return count
