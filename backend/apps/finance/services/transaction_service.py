from __future__ import annotations

import logging
import secrets
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.budgeting.models import CostCenter
from apps.notifications.emails import EmailService, EmailType, public_url
from apps.notifications.models import NotificationType
from apps.notifications.services import NotificationService
from shared.formatting import format_brl

from ..models import (
    Entity,
    Transaction,
    TransactionAllocation,
    TransactionStatus,
    TransactionType,
)
from .snapshots import capture, publish_change

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
FULL_ALLOCATION = Decimal("100")
ALLOCATION_TOLERANCE = Decimal("0.1")

EDITABLE_FIELDS = (
    "transaction_type",
    "description",
    "amount",
    "discount",
    "interest",
    "due_date",
    "payment_date",
    "supplier_or_client",
    "payment_method",
    "request_origin",
    "notes",
    "attachment_url",
    "installment_number",
    "installments_total",
    "installment_group",
)

STATUS_TRANSITIONS = {
    TransactionStatus.DRAFT: {TransactionStatus.PENDING_APPROVAL, TransactionStatus.REJECTED},
    TransactionStatus.PENDING_APPROVAL: {TransactionStatus.APPROVED, TransactionStatus.REJECTED, TransactionStatus.DRAFT},
    TransactionStatus.APPROVED: {TransactionStatus.PAID, TransactionStatus.REJECTED},
    TransactionStatus.PAID: set(),
    TransactionStatus.REJECTED: {TransactionStatus.DRAFT},
}

# Receivables do not go through approval before being received.
RECEIVABLE_PAYABLE_FROM = {
    TransactionStatus.DRAFT,
    TransactionStatus.PENDING_APPROVAL,
    TransactionStatus.APPROVED,
}

STATUS_MESSAGES = {
    TransactionStatus.APPROVED: "aprovada",
    TransactionStatus.REJECTED: "rejeitada",
    TransactionStatus.PAID: "paga",
}


class TransactionError(ValueError):
    """Business-rule violation on a transaction."""


class InvalidApprovalToken(TransactionError):
    def __init__(self, message: str = "Link inválido ou expirado."):
        super().__init__(message)


def _quantize(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class TransactionService:
    """Create, edit and move payables/receivables through their lifecycle."""

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _check_transition(txn: Transaction, target: str) -> None:
        if target == TransactionStatus.PAID and txn.transaction_type == TransactionType.RECEIVABLE:
            allowed = txn.status in RECEIVABLE_PAYABLE_FROM
        else:
            allowed = target in STATUS_TRANSITIONS.get(txn.status, set())
        if not allowed:
            raise TransactionError(
                f"Transição inválida de {txn.get_status_display()} para {TransactionStatus(target).label}."
            )

    @staticmethod
    def _resolve_cost_center(company, value, user=None) -> Optional[CostCenter]:
        if value in (None, ""):
            return None
        cost_center_id = getattr(value, "pk", value)
        try:
            cost_center = CostCenter.objects.get(pk=cost_center_id, company=company)
        except CostCenter.DoesNotExist as exc:
            raise TransactionError(f"Centro de custo {cost_center_id} não encontrado nesta empresa.") from exc
        if user is not None and not getattr(user, "is_global_admin", False) and not cost_center.is_allowed(user):
            raise TransactionError(f"Você não pode lançar no centro de custo {cost_center.code}.")
        return cost_center

    @staticmethod
    def _resolve_entity(company, value) -> Optional[Entity]:
        if value in (None, ""):
            return None
        entity_id = getattr(value, "pk", value)
        try:
            return Entity.objects.get(pk=entity_id, company=company)
        except Entity.DoesNotExist as exc:
            raise TransactionError(f"Entidade {entity_id} não encontrada nesta empresa.") from exc

    @classmethod
    def validate_allocations(cls, company, allocations: Iterable[Mapping[str, Any]], user=None):
        """
        Normalise allocation rows into ``(cost_center, percentage)`` pairs.

        Percentages must add up to 100 (0.1 tolerance) and a cost center may
        appear only once.
        """
        rows = []
        seen = set()
        total = Decimal("0")
        for row in allocations:
            cost_center = cls._resolve_cost_center(company, row.get("cost_center"), user)
            if cost_center is None:
                raise TransactionError("Cada rateio precisa de um centro de custo.")
            if cost_center.pk in seen:
                raise TransactionError(f"Centro de custo {cost_center.code} repetido no rateio.")
            seen.add(cost_center.pk)
            percentage = Decimal(str(row.get("percentage") or 0))
            if percentage <= 0:
                raise TransactionError("Percentual de rateio deve ser maior que zero.")
            total += percentage
            rows.append((cost_center, percentage))
        if rows and abs(total - FULL_ALLOCATION) > ALLOCATION_TOLERANCE:
            raise TransactionError(f"A soma dos percentuais deve ser 100% (atual: {total}%).")
        return rows

    @staticmethod
    def _clean(txn: Transaction) -> None:
        try:
            txn.full_clean(exclude=["company", "created_by"])
        except DjangoValidationError as exc:
            messages = "; ".join(f"{field}: {' '.join(errors)}" for field, errors in exc.message_dict.items())
            raise TransactionError(messages) from exc

    @staticmethod
    def _write_allocations(txn: Transaction, rows) -> None:
        txn.allocations.all().delete()
        base = Decimal(txn.settled_amount)
        TransactionAllocation.objects.bulk_create([
            TransactionAllocation(
                transaction=txn,
                cost_center=cost_center,
                percentage=percentage,
                amount=_quantize(base * percentage / FULL_ALLOCATION),
            )
            for cost_center, percentage in rows
        ])

    @classmethod
    def rescale_allocations(cls, txn: Transaction) -> None:
        """Recompute allocation amounts from the current settled amount, keeping percentages."""
        current = [(alloc.cost_center, alloc.percentage) for alloc in txn.allocations.select_related("cost_center")]
        if current:
            cls._write_allocations(txn, current)

    @staticmethod
    def _audit(txn: Transaction, user, action: str, description: str, details=None, request=None):
        log_audit_event(
            user=user,
            company=txn.company,
            action=action,
            entity_type="transaction",
            entity_id=txn.pk,
            description=description,
            details=details,
            request=request,
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def create(
        cls,
        company,
        data: Mapping[str, Any],
        *,
        user=None,
        allocations: Optional[Iterable[Mapping[str, Any]]] = None,
        recurring_template=None,
        request=None,
    ) -> Transaction:
        values: Dict[str, Any] = {field: data[field] for field in EDITABLE_FIELDS if field in data}
        txn = Transaction(
            company=company,
            created_by=user if getattr(user, "pk", None) else None,
            requested_by=user if getattr(user, "pk", None) else None,
            status=TransactionStatus.DRAFT,
            recurring_template=recurring_template,
            **values,
        )
        txn.cost_center = cls._resolve_cost_center(company, data.get("cost_center"), user)
        txn.entity = cls._resolve_entity(company, data.get("entity"))
        if txn.entity is not None and not txn.supplier_or_client:
            txn.supplier_or_client = txn.entity.name
        rows = cls.validate_allocations(company, allocations or (), user)
        cls._clean(txn)
        txn.save()
        if rows:
            cls._write_allocations(txn, rows)
        publish_change(None, capture(txn))

        cls._audit(
            txn,
            user,
            AuditLog.ACTION_CREATE,
            f"Transação criada: {txn.description}",
            details={"amount": str(txn.amount), "type": txn.transaction_type},
            request=request,
        )
        logger.info("Transaction %s created for company %s", txn.pk, company.pk)
        return txn

    @classmethod
    @transaction.atomic
    def update(
        cls,
        txn: Transaction,
        data: Mapping[str, Any],
        *,
        user=None,
        allocations: Optional[Iterable[Mapping[str, Any]]] = None,
        request=None,
    ) -> Transaction:
        """
        Edit a transaction; ``allocations=None`` keeps the current split.

        Paid transactions are frozen.
        """
        if txn.status == TransactionStatus.PAID:
            raise TransactionError("Transações pagas não podem ser editadas.")
        before = capture(txn)
        changes = {}
        for field in EDITABLE_FIELDS:
            if field in data and getattr(txn, field) != data[field]:
                changes[field] = {"old": str(getattr(txn, field)), "new": str(data[field])}
                setattr(txn, field, data[field])
        if "cost_center" in data:
            txn.cost_center = cls._resolve_cost_center(txn.company, data.get("cost_center"), user)
        if "entity" in data:
            txn.entity = cls._resolve_entity(txn.company, data.get("entity"))
        rows = cls.validate_allocations(txn.company, allocations, user) if allocations is not None else None
        cls._clean(txn)
        txn.save()
        if rows is not None:
            cls._write_allocations(txn, rows)
        elif "amount" in changes:
            cls.rescale_allocations(txn)
        publish_change(before, capture(txn))

        cls._audit(txn, user, AuditLog.ACTION_UPDATE, f"Transação atualizada: {txn.description}", details=changes, request=request)
        return txn

    @classmethod
    @transaction.atomic
    def delete(cls, txn: Transaction, *, user=None, request=None) -> None:
        if txn.batch_id is not None:
            raise TransactionError("Remova a transação do lote antes de excluí-la.")
        before = capture(txn)
        pk, description, company = txn.pk, txn.description, txn.company
        txn.delete()
        publish_change(before, None)
        log_audit_event(
            user=user,
            company=company,
            action=AuditLog.ACTION_DELETE,
            entity_type="transaction",
            entity_id=pk,
            description=f"Transação excluída: {description}",
            request=request,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def submit_for_approval(cls, txn: Transaction, *, user=None, request=None) -> Transaction:
        """Draft -> pending approval; the cost center approver is e-mailed."""
        cls._check_transition(txn, TransactionStatus.PENDING_APPROVAL)
        before = capture(txn)
        txn.status = TransactionStatus.PENDING_APPROVAL
        txn.approval_token = secrets.token_urlsafe(32)
        txn.approval_token_expires_at = timezone.now() + timedelta(hours=settings.APPROVAL_TOKEN_TTL_HOURS)
        txn.save(update_fields=["status", "approval_token", "approval_token_expires_at", "updated_at"])
        publish_change(before, capture(txn))
        cls._audit(txn, user, AuditLog.ACTION_UPDATE, "Enviada para aprovação", details={"status": txn.status}, request=request)

        approver_email = txn.cost_center.approver_email if txn.cost_center_id else ""
        if approver_email:
            EmailService.send_quietly(
                EmailType.APPROVAL_REQUEST,
                approver_email,
                {
                    "description": txn.description,
                    "amount": format_brl(txn.amount),
                    "requester_name": getattr(user, "display_name", "") or txn.request_origin,
                    "transaction_id": txn.pk,
                    "link": public_url(f"/approve/{txn.approval_token}"),
                },
            )
        return txn

    @classmethod
    @transaction.atomic
    def approve(cls, txn: Transaction, *, user=None, request=None) -> Transaction:
        cls._check_transition(txn, TransactionStatus.APPROVED)
        before = capture(txn)
        txn.status = TransactionStatus.APPROVED
        txn.approved_by = user if getattr(user, "pk", None) else None
        txn.approved_at = timezone.now()
        txn.approval_token = None
        txn.approval_token_expires_at = None
        txn.save(update_fields=[
            "status", "approved_by", "approved_at", "approval_token", "approval_token_expires_at", "updated_at",
        ])
        publish_change(before, capture(txn))
        cls._audit(txn, user, AuditLog.ACTION_APPROVE, f"Transação aprovada: {txn.description}", request=request)
        cls._notify_status(txn, user)
        return txn

    @classmethod
    @transaction.atomic
    def reject(cls, txn: Transaction, reason: str = "", *, user=None, request=None) -> Transaction:
        cls._check_transition(txn, TransactionStatus.REJECTED)
        before = capture(txn)
        txn.status = TransactionStatus.REJECTED
        txn.rejection_reason = reason or ""
        txn.approval_token = None
        txn.approval_token_expires_at = None
        txn.save(update_fields=["status", "rejection_reason", "approval_token", "approval_token_expires_at", "updated_at"])
        publish_change(before, capture(txn))
        cls._audit(txn, user, AuditLog.ACTION_REJECT, f"Transação rejeitada: {txn.description}", details={"reason": reason}, request=request)
        cls._notify_status(txn, user)
        return txn

    @staticmethod
    def get_by_approval_token(token: str, *, lock: bool = False) -> Transaction:
        """Transaction awaiting approval behind a live e-mailed token."""
        if not token:
            raise InvalidApprovalToken()
        queryset = Transaction.objects.select_related("company", "cost_center", "created_by")
        if lock:
            queryset = queryset.select_for_update(of=("self",))
        txn = (
            queryset.filter(approval_token=token, status=TransactionStatus.PENDING_APPROVAL)
            .filter(Q(approval_token_expires_at__isnull=True) | Q(approval_token_expires_at__gt=timezone.now()))
            .first()
        )
        if txn is None:
            raise InvalidApprovalToken()
        return txn

    @classmethod
    @transaction.atomic
    def approve_by_token(cls, token: str, *, request=None) -> Transaction:
        """Approve through the link; the token is spent, so a second use fails."""
        txn = cls.get_by_approval_token(token, lock=True)
        return cls.approve(txn, request=request)

    @classmethod
    @transaction.atomic
    def reject_by_token(cls, token: str, reason: str = "", *, request=None) -> Transaction:
        txn = cls.get_by_approval_token(token, lock=True)
        return cls.reject(txn, reason, request=request)

    @classmethod
    @transaction.atomic
    def mark_paid(
        cls,
        txn: Transaction,
        *,
        user=None,
        final_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        discount: Optional[Decimal] = None,
        interest: Optional[Decimal] = None,
        request=None,
    ) -> Transaction:
        """
        Settle a transaction.

        ``final_amount`` defaults to ``amount - discount + interest``.
        """
        cls._check_transition(txn, TransactionStatus.PAID)
        before = capture(txn)
        if discount is not None:
            txn.discount = Decimal(discount)
        if interest is not None:
            txn.interest = Decimal(interest)
        if final_amount is None:
            final_amount = Decimal(txn.amount) - Decimal(txn.discount or 0) + Decimal(txn.interest or 0)
        if Decimal(final_amount) < 0:
            raise TransactionError("O valor final não pode ser negativo.")
        txn.final_amount = _quantize(final_amount)
        txn.payment_date = payment_date or timezone.localdate()
        txn.status = TransactionStatus.PAID
        txn.released_by = user if getattr(user, "pk", None) else None
        txn.released_at = timezone.now()
        txn.save(update_fields=[
            "status", "final_amount", "discount", "interest", "payment_date",
            "released_by", "released_at", "updated_at",
        ])
        cls.rescale_allocations(txn)
        publish_change(before, capture(txn))
        cls._audit(
            txn,
            user,
            AuditLog.ACTION_EXECUTE,
            f"Transação baixada: {txn.description}",
            details={"final_amount": str(txn.final_amount), "payment_date": txn.payment_date.isoformat()},
            request=request,
        )
        cls._notify_status(txn, user)
        return txn

    @staticmethod
    def _notify_status(txn: Transaction, actor) -> None:
        owner = txn.created_by
        label = STATUS_MESSAGES.get(txn.status, txn.get_status_display())
        if owner is not None and owner != actor:
            NotificationService.notify(
                owner,
                f"Transação {label}",
                f"{txn.description} ({format_brl(txn.amount)}) foi {label}.",
                company=txn.company,
                notification_type=NotificationType.ERROR if txn.status == TransactionStatus.REJECTED else NotificationType.SUCCESS,
                entity_type="transaction",
                entity_id=txn.pk,
            )
        if owner is not None and owner.email:
            EmailService.send_quietly(
                EmailType.STATUS_UPDATE,
                owner.email,
                {
                    "description": txn.description,
                    "status": label,
                    "updated_by": getattr(actor, "display_name", "") or "Sistema",
                    "transaction_id": txn.pk,
                    "link": public_url(f"/financeiro?id={txn.pk}"),
                },
            )
