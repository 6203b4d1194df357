from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta
from django.db.models import DecimalField, F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..models import RecurringTransactionTemplate, Transaction, TransactionStatus, TransactionType
from .balance_service import BalanceService
from .recurrence_service import OCCURRENCE_SUFFIX

ZERO = Decimal("0")
OPEN_STATUSES = (TransactionStatus.DRAFT, TransactionStatus.PENDING_APPROVAL, TransactionStatus.APPROVED)
NO_COST_CENTER = "Sem Centro de Custo"


def _money(value) -> str:
    return str(Decimal(value or 0).quantize(Decimal("0.01")))


def _sum_amount(queryset) -> Decimal:
    amount = Coalesce(F("final_amount"), F("amount"), output_field=DecimalField(max_digits=18, decimal_places=2))
    return queryset.aggregate(total=Sum(amount)).get("total") or ZERO


def _effective_date(row) -> date:
    if row["status"] == TransactionStatus.PAID and row["payment_date"]:
        return row["payment_date"]
    return row["due_date"]


class ReportService:
    """Read-only financial summaries for one company."""

    @staticmethod
    def _period(company, start: date, end: date):
        if start > end:
            raise ValueError("A data inicial deve ser anterior à data final.")
        return Transaction.objects.filter(company=company, due_date__gte=start, due_date__lte=end).exclude(
            status=TransactionStatus.REJECTED
        )

    @classmethod
    def cash_flow(cls, company, start: date, end: date) -> Dict:
        """Totals in/out over ``[start, end]`` by due date, with a monthly series."""
        qs = cls._period(company, start, end)
        total_in = _sum_amount(qs.filter(transaction_type=TransactionType.RECEIVABLE))
        total_out = _sum_amount(qs.filter(transaction_type=TransactionType.PAYABLE))

        months: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: {"income": ZERO, "expense": ZERO})
        for row in qs.values("transaction_type", "status", "amount", "final_amount", "due_date", "payment_date"):
            value = row["final_amount"] if row["final_amount"] is not None else row["amount"]
            key = "income" if row["transaction_type"] == TransactionType.RECEIVABLE else "expense"
            months[row["due_date"].strftime("%Y-%m")][key] += value

        series = [
            {"month": month, "income": _money(values["income"]), "expense": _money(values["expense"])}
            for month, values in sorted(months.items())
        ]
        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "total_in": _money(total_in),
            "total_out": _money(total_out),
            "balance": _money(total_in - total_out),
            "transaction_count": qs.count(),
            "monthly": series,
        }

    @classmethod
    def income_statement(cls, company, start: date, end: date) -> Dict:
        qs = cls._period(company, start, end)
        revenue = _sum_amount(qs.filter(transaction_type=TransactionType.RECEIVABLE))
        expenses = _sum_amount(qs.filter(transaction_type=TransactionType.PAYABLE))
        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "lines": [
                {"label": "Receita Bruta", "amount": _money(revenue)},
                {"label": "(-) Despesas Operacionais", "amount": _money(expenses)},
                {"label": "(=) Resultado Operacional", "amount": _money(revenue - expenses)},
            ],
            "revenue": _money(revenue),
            "expenses": _money(expenses),
            "result": _money(revenue - expenses),
        }

    @staticmethod
    def metrics(company, user=None) -> Dict:
        qs = Transaction.objects.filter(company=company)
        if user is not None:
            qs = qs.filter(created_by=user)
        paid = qs.filter(status=TransactionStatus.PAID)
        pending = qs.filter(status__in=OPEN_STATUSES)
        revenue = _sum_amount(paid.filter(transaction_type=TransactionType.RECEIVABLE))
        expenses = _sum_amount(paid.filter(transaction_type=TransactionType.PAYABLE))
        return {
            "total_revenue": _money(revenue),
            "total_expenses": _money(expenses),
            "balance": _money(revenue - expenses),
            "pending_receivables": _money(_sum_amount(pending.filter(transaction_type=TransactionType.RECEIVABLE))),
            "pending_payables": _money(_sum_amount(pending.filter(transaction_type=TransactionType.PAYABLE))),
        }

    @staticmethod
    def monthly_cash_flow(company, months: int = 6, today: Optional[date] = None) -> List[Dict]:
        """Income/expense for the last ``months`` months; paid rows use the payment date."""
        today = today or timezone.localdate()
        first = (today - relativedelta(months=months - 1)).replace(day=1)
        buckets = {}
        for offset in range(months):
            key = (first + relativedelta(months=offset)).strftime("%Y-%m")
            buckets[key] = {"month": key, "income": ZERO, "expense": ZERO}

        rows = (
            Transaction.objects.filter(company=company)
            .exclude(status=TransactionStatus.REJECTED)
            .values("transaction_type", "status", "amount", "final_amount", "due_date", "payment_date")
        )
        for row in rows:
            entry = buckets.get(_effective_date(row).strftime("%Y-%m"))
            if entry is None:
                continue
            value = row["final_amount"] if row["status"] == TransactionStatus.PAID and row["final_amount"] is not None else row["amount"]
            entry["income" if row["transaction_type"] == TransactionType.RECEIVABLE else "expense"] += value
        return [
            {"month": entry["month"], "income": _money(entry["income"]), "expense": _money(entry["expense"])}
            for entry in buckets.values()
        ]

    @staticmethod
    def upcoming(company, limit: int = 5, today: Optional[date] = None) -> List[Dict]:
        """Next open transactions plus the next occurrence of each active template."""
        today = today or timezone.localdate()
        items = [
            {
                "id": txn.pk,
                "description": txn.description,
                "amount": _money(txn.amount),
                "transaction_type": txn.transaction_type,
                "status": txn.status,
                "due_date": txn.due_date.isoformat(),
                "projected": False,
            }
            for txn in Transaction.objects.filter(company=company, due_date__gte=today, status__in=OPEN_STATUSES)
            .order_by("due_date")[: limit * 2]
        ]
        templates = RecurringTransactionTemplate.objects.filter(company=company, active=True, next_due_date__gte=today)
        for template in templates:
            if template.end_date and template.next_due_date > template.end_date:
                continue
            items.append({
                "id": f"projected-{template.pk}",
                "description": f"{template.description}{OCCURRENCE_SUFFIX}",
                "amount": _money(template.amount),
                "transaction_type": template.transaction_type,
                "status": TransactionStatus.DRAFT,
                "due_date": template.next_due_date.isoformat(),
                "projected": True,
            })
        items.sort(key=lambda item: item["due_date"])
        return items[:limit]

    @staticmethod
    def expenses_by_cost_center(company, today: Optional[date] = None) -> List[Dict]:
        """Payables due this month grouped by cost center name."""
        today = today or timezone.localdate()
        start = today.replace(day=1)
        end = start + relativedelta(months=1, days=-1)
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        payables = (
            Transaction.objects.filter(
                company=company,
                transaction_type=TransactionType.PAYABLE,
                due_date__gte=start,
                due_date__lte=end,
            )
            .exclude(status=TransactionStatus.REJECTED)
            .select_related("cost_center")
            .prefetch_related("allocations__cost_center")
        )
        for txn in payables:
            allocations = list(txn.allocations.all())
            if allocations:
                for alloc in allocations:
                    totals[alloc.cost_center.name] += alloc.amount
            elif txn.cost_center_id:
                totals[txn.cost_center.name] += txn.amount
            else:
                totals[NO_COST_CENTER] += txn.amount
        return [
            {"name": name, "value": _money(value)}
            for name, value in sorted(totals.items(), key=lambda item: item[1], reverse=True)
        ]

    @classmethod
    def dashboard(cls, company, user=None) -> Dict:
        return {
            "current_balance": _money(BalanceService.current_balance(company)),
            "metrics": cls.metrics(company, user=user),
            "cash_flow": cls.monthly_cash_flow(company),
            "upcoming": cls.upcoming(company),
            "expenses_by_cost_center": cls.expenses_by_cost_center(company),
        }
