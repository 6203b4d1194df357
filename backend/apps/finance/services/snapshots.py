"""
Immutable views of a transaction used to compute deltas.

Balance and cost-center usage are maintained incrementally from the
difference between the state before and after a write, so every writer
captures a snapshot first and publishes both states afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from shared.event_bus import event_bus

from ..models import TransactionStatus

TRANSACTION_CHANGED = "transaction.changed"


@dataclass(frozen=True)
class TransactionSnapshot:
    pk: Optional[int]
    company_id: int
    transaction_type: str
    status: str
    amount: Decimal
    due_date: Optional[date]
    payment_date: Optional[date]
    cost_center_id: Optional[int]
    allocations: Tuple[Tuple[int, Decimal], ...] = ()

    @classmethod
    def capture(cls, txn, *, with_allocations: bool = True) -> "TransactionSnapshot":
        allocations: Tuple[Tuple[int, Decimal], ...] = ()
        if with_allocations and txn.pk:
            allocations = tuple(
                (alloc.cost_center_id, Decimal(alloc.amount))
                for alloc in txn.allocations.all()
            )
        return cls(
            pk=txn.pk,
            company_id=txn.company_id,
            transaction_type=txn.transaction_type,
            status=txn.status,
            amount=Decimal(txn.settled_amount),
            due_date=txn.due_date,
            payment_date=txn.payment_date,
            cost_center_id=txn.cost_center_id,
            allocations=allocations,
        )

    @property
    def is_paid(self) -> bool:
        return self.status == TransactionStatus.PAID

    @property
    def month_key(self) -> Optional[str]:
        moment = self.payment_date if self.is_paid and self.payment_date else self.due_date
        if moment is None:
            return None
        return moment.strftime("%Y-%m")

    def cost_center_amounts(self) -> Tuple[Tuple[int, Decimal], ...]:
        """Amount charged to each cost center; a single cost center takes the full amount."""
        if self.allocations:
            return self.allocations
        if self.cost_center_id:
            return ((self.cost_center_id, self.amount),)
        return ()


def capture(txn, *, with_allocations: bool = True) -> Optional[TransactionSnapshot]:
    if txn is None or not txn.pk:
        return None
    return TransactionSnapshot.capture(txn, with_allocations=with_allocations)


def publish_change(old: Optional[TransactionSnapshot], new: Optional[TransactionSnapshot]):
    """Announce a business-level change, after allocations were written."""
    if old is None and new is None:
        return []
    return event_bus.publish(TRANSACTION_CHANGED, old=old, new=new)
