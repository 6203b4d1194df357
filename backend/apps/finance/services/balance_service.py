"""
Running company balance.

``CompanyStats.current_balance`` is the sum of signed values of every paid
transaction. It is kept current by applying ``new - old`` on each write;
``recalculate_company_balance`` rebuilds it from scratch and must be run once
for companies with history predating the incremental updates.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Case, DecimalField, F, Sum, Value, When
from django.db.models.functions import Coalesce

from ..models import CompanyStats, Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def transaction_balance_value(snapshot) -> Decimal:
    """Signed contribution of a ``TransactionSnapshot`` to the company balance."""
    if snapshot is None or snapshot.status != TransactionStatus.PAID:
        return ZERO
    amount = Decimal(snapshot.amount)
    if snapshot.transaction_type == TransactionType.RECEIVABLE:
        return amount
    if snapshot.transaction_type == TransactionType.PAYABLE:
        return -amount
    return ZERO


class BalanceService:

    @staticmethod
    def apply_delta(company_id: int, delta: Decimal, *, source: str = "trigger") -> Optional[CompanyStats]:
        """
        Atomically add ``delta`` to the company balance.

        A missing stats row is created holding ``delta``.
        """
        if not delta:
            return None
        with transaction.atomic():
            stats, created = CompanyStats.objects.select_for_update().get_or_create(
                company_id=company_id,
                defaults={"current_balance": delta, "updated_by": source},
            )
            if not created:
                CompanyStats.objects.filter(pk=stats.pk).update(
                    current_balance=F("current_balance") + delta,
                    updated_by=source,
                )
                stats.refresh_from_db()
            else:
                logger.warning(
                    "CompanyStats missing for company %s; initialised with delta %s. "
                    "Run recalculate_balances if the company has older transactions.",
                    company_id,
                    delta,
                )
        return stats

    @classmethod
    def handle_write(cls, old, new) -> Optional[CompanyStats]:
        """
        Apply the balance change between two transaction states.

        Failures are logged and swallowed so the triggering write still
        commits; ``recalculate_company_balance`` repairs any drift.
        """
        reference = new if new is not None else old
        if reference is None:
            return None
        delta = transaction_balance_value(new) - transaction_balance_value(old)
        try:
            return cls.apply_delta(reference.company_id, delta)
        except Exception:
            logger.exception("Failed to apply balance delta %s for company %s", delta, reference.company_id)
            return None

    @staticmethod
    def compute_balance(company) -> Decimal:
        amount = Coalesce(F("final_amount"), F("amount"))
        signed = Case(
            When(transaction_type=TransactionType.RECEIVABLE, then=amount),
            When(transaction_type=TransactionType.PAYABLE, then=-amount),
            default=Value(ZERO),
            output_field=DecimalField(max_digits=20, decimal_places=2),
        )
        total = (
            Transaction.objects.filter(company=company, status=TransactionStatus.PAID)
            .aggregate(total=Sum(signed))
            .get("total")
        )
        return total or ZERO

    @classmethod
    @transaction.atomic
    def recalculate_company_balance(cls, company) -> CompanyStats:
        balance = cls.compute_balance(company)
        stats, _ = CompanyStats.objects.select_for_update().get_or_create(company=company)
        stats.current_balance = balance
        stats.updated_by = "recalculation"
        stats.save(update_fields=["current_balance", "updated_by", "updated_at"])
        logger.info("Balance of company %s recalculated: %s", company.pk, balance)
        return stats

    @staticmethod
    def current_balance(company) -> Decimal:
        stats = CompanyStats.objects.filter(company=company).only("current_balance").first()
        return stats.current_balance if stats else ZERO
