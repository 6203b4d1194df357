"""
Payment batch workflow.

A batch collects payables and moves them through approval by an approver,
authorization by a second person and execution (payment). Approvers and
authorizers act through e-mailed links carrying an opaque token, so the
token-based operations do not require a logged-in user.
"""
from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.notifications.emails import EmailService, EmailType, public_url
from apps.notifications.models import NotificationType
from apps.notifications.services import NotificationService
from shared.formatting import format_brl

from ..models import (
    BatchStatus,
    PaymentBatch,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .snapshots import capture, publish_change
from .transaction_service import TransactionService

logger = logging.getLogger(__name__)

TRANSITIONS = {
    BatchStatus.DRAFT: {BatchStatus.PENDING_APPROVAL},
    BatchStatus.PENDING_APPROVAL: {BatchStatus.APPROVED, BatchStatus.APPROVAL_REJECTED, BatchStatus.DRAFT},
    BatchStatus.APPROVED: {BatchStatus.PENDING_AUTHORIZATION},
    BatchStatus.PENDING_AUTHORIZATION: {BatchStatus.AUTHORIZED, BatchStatus.AUTHORIZATION_REJECTED},
    BatchStatus.AUTHORIZED: {BatchStatus.EXECUTED},
    BatchStatus.EXECUTED: set(),
    BatchStatus.APPROVAL_REJECTED: set(),
    BatchStatus.AUTHORIZATION_REJECTED: set(),
}

# Lines can be edited while the batch is being assembled or reviewed.
EDITABLE_LINE_STATUSES = {BatchStatus.DRAFT, BatchStatus.PENDING_APPROVAL}
BATCHABLE_TRANSACTION_STATUSES = {TransactionStatus.PENDING_APPROVAL, TransactionStatus.APPROVED}


class BatchWorkflowError(ValueError):
    """A batch operation is not allowed in the batch's current state."""


class InvalidBatchToken(BatchWorkflowError):
    def __init__(self, message: str = "Link inválido ou expirado."):
        super().__init__(message)


def _new_token() -> str:
    return secrets.token_urlsafe(32)


def _token_expiry():
    return timezone.now() + timedelta(hours=settings.BATCH_TOKEN_TTL_HOURS)


def _actor(user):
    return user if getattr(user, "is_authenticated", False) else None


class PaymentBatchService:

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _lock(batch: PaymentBatch) -> PaymentBatch:
        return PaymentBatch.objects.select_for_update(of=("self",)).select_related("company").get(pk=batch.pk)

    @staticmethod
    def _ensure_transition(batch: PaymentBatch, target: str, message: Optional[str] = None) -> None:
        if target not in TRANSITIONS.get(batch.status, set()):
            raise BatchWorkflowError(
                message or f"Transição inválida do lote: {batch.get_status_display()} → {BatchStatus(target).label}."
            )

    @staticmethod
    def _awaiting_approval(batch: PaymentBatch) -> None:
        if batch.status != BatchStatus.PENDING_APPROVAL:
            raise BatchWorkflowError(f"Este lote não está aguardando aprovação (status: {batch.status}).")

    @staticmethod
    def _awaiting_authorization_message(status: str) -> str:
        return f"Este lote não está aguardando autorização (status: {status})."

    @staticmethod
    def recompute_total(batch: PaymentBatch) -> Decimal:
        total = sum((txn.batch_amount for txn in batch.transactions.all()), Decimal("0"))
        batch.total_amount = total
        PaymentBatch.objects.filter(pk=batch.pk).update(total_amount=total, updated_at=timezone.now())
        return total

    @staticmethod
    def _audit(batch: PaymentBatch, user, action: str, description: str, details=None, request=None):
        log_audit_event(
            user=user,
            company=batch.company,
            action=action,
            entity_type="payment_batch",
            entity_id=batch.pk,
            description=description,
            details=details,
            request=request,
        )

    @staticmethod
    def _save_transaction(txn: Transaction, fields: Iterable[str], *, rescale: bool = False) -> None:
        """Save one line so model signals and change events fire for it."""
        before = getattr(txn, "_snapshot_before", None)
        txn.save(update_fields=list(fields) + ["updated_at"])
        if rescale:
            TransactionService.rescale_allocations(txn)
        publish_change(before, capture(txn))

    @staticmethod
    def _notify_creator(batch: PaymentBatch, title: str, body: str, notification_type=NotificationType.INFO):
        if batch.created_by is None:
            return
        NotificationService.notify(
            batch.created_by,
            title,
            body,
            company=batch.company,
            notification_type=notification_type,
            link=f"/financeiro/lotes/{batch.pk}",
            entity_type="payment_batch",
            entity_id=batch.pk,
        )

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def create(cls, company, name: str, *, created_by=None, transactions: Iterable[Transaction] = (), request=None) -> PaymentBatch:
        name = (name or "").strip()
        if not name:
            raise BatchWorkflowError("Informe um nome para o lote.")
        batch = PaymentBatch.objects.create(company=company, name=name, created_by=_actor(created_by))
        company.last_batch_created_at = timezone.now()
        company.save(update_fields=["last_batch_created_at"])
        transactions = list(transactions)
        if transactions:
            batch = cls.add_transactions(batch, transactions, user=created_by)
        cls._audit(batch, created_by, AuditLog.ACTION_CREATE, f"Lote criado: {batch.name}", request=request)
        logger.info("Payment batch %s created for company %s", batch.pk, company.pk)
        return batch

    @classmethod
    @transaction.atomic
    def add_transactions(cls, batch: PaymentBatch, transactions: Iterable[Transaction], *, user=None) -> PaymentBatch:
        batch = cls._lock(batch)
        if batch.status != BatchStatus.DRAFT:
            raise BatchWorkflowError("Só é possível incluir transações em lotes em rascunho.")
        ids = [txn.pk for txn in transactions]
        candidates = list(Transaction.objects.select_for_update().filter(pk__in=ids))
        if len(candidates) != len(set(ids)):
            raise BatchWorkflowError("Uma ou mais transações não foram encontradas.")
        for txn in candidates:
            if txn.company_id != batch.company_id:
                raise BatchWorkflowError(f"A transação {txn.pk} pertence a outra empresa.")
            if txn.transaction_type != TransactionType.PAYABLE:
                raise BatchWorkflowError(f"A transação {txn.pk} não é uma conta a pagar.")
            if txn.status not in BATCHABLE_TRANSACTION_STATUSES:
                raise BatchWorkflowError(f"A transação {txn.pk} não pode entrar em lote (status: {txn.status}).")
            if txn.batch_id and txn.batch_id != batch.pk:
                raise BatchWorkflowError(f"A transação {txn.pk} já pertence a outro lote.")
        for txn in candidates:
            if txn.batch_id != batch.pk:
                txn.batch = batch
                txn.save(update_fields=["batch", "updated_at"])
        cls.recompute_total(batch)
        return batch

    @classmethod
    @transaction.atomic
    def remove_transactions(cls, batch: PaymentBatch, transactions: Iterable[Transaction], *, user=None) -> PaymentBatch:
        batch = cls._lock(batch)
        if batch.status != BatchStatus.DRAFT:
            raise BatchWorkflowError("Só é possível remover transações de lotes em rascunho.")
        ids = [txn.pk for txn in transactions]
        for txn in Transaction.objects.select_for_update().filter(pk__in=ids, batch=batch):
            txn.batch = None
            txn.batch_adjusted_amount = None
            txn.save(update_fields=["batch", "batch_adjusted_amount", "updated_at"])
        cls.recompute_total(batch)
        return batch

    @classmethod
    @transaction.atomic
    def adjust_amount(cls, batch: PaymentBatch, txn: Transaction, amount, *, user=None, request=None) -> Transaction:
        """
        Override the amount paid for one line.

        The original ``amount`` is kept; an adjustment equal to it is cleared.
        """
        batch = cls._lock(batch)
        if batch.status not in EDITABLE_LINE_STATUSES:
            raise BatchWorkflowError("Valores só podem ser ajustados antes da aprovação do lote.")
        txn = Transaction.objects.select_for_update().get(pk=txn.pk)
        if txn.batch_id != batch.pk:
            raise BatchWorkflowError(f"A transação {txn.pk} não pertence a este lote.")
        amount = Decimal(str(amount))
        if amount < 0:
            raise BatchWorkflowError("O valor ajustado não pode ser negativo.")
        previous = txn.batch_amount
        txn.batch_adjusted_amount = None if amount == txn.amount else amount
        txn.save(update_fields=["batch_adjusted_amount", "updated_at"])
        cls.recompute_total(batch)
        cls._audit(
            batch,
            user,
            AuditLog.ACTION_UPDATE,
            f"Valor ajustado na transação {txn.pk}",
            details={"transaction_id": txn.pk, "previous": str(previous), "new": str(txn.batch_amount)},
            request=request,
        )
        return txn

    @classmethod
    @transaction.atomic
    def reject_transaction(cls, batch: PaymentBatch, txn: Transaction, reason: str = "", *, user=None, request=None) -> PaymentBatch:
        """Drop one line from the batch and reject it."""
        batch = cls._lock(batch)
        if batch.status not in EDITABLE_LINE_STATUSES:
            raise BatchWorkflowError("Transações só podem ser rejeitadas antes da aprovação do lote.")
        txn = Transaction.objects.select_for_update().get(pk=txn.pk)
        if txn.batch_id != batch.pk:
            raise BatchWorkflowError(f"A transação {txn.pk} não pertence a este lote.")
        txn._snapshot_before = capture(txn)
        txn.batch = None
        txn.batch_adjusted_amount = None
        txn.status = TransactionStatus.REJECTED
        txn.batch_rejection_reason = reason or ""
        txn.rejection_reason = reason or ""
        cls._save_transaction(txn, ["batch", "batch_adjusted_amount", "status", "batch_rejection_reason", "rejection_reason"])

        rejected_ids = list(batch.rejected_transaction_ids or [])
        if txn.pk not in rejected_ids:
            rejected_ids.append(txn.pk)
        batch.rejected_transaction_ids = rejected_ids
        batch.save(update_fields=["rejected_transaction_ids", "updated_at"])
        cls.recompute_total(batch)
        cls._audit(
            batch,
            user,
            AuditLog.ACTION_REJECT,
            f"Transação {txn.pk} rejeitada no lote",
            details={"transaction_id": txn.pk, "reason": reason},
            request=request,
        )
        return batch

    @classmethod
    @transaction.atomic
    def reject_transaction_by_token(cls, token: str, transaction_id: int, reason: str = "", *, request=None) -> PaymentBatch:
        """Line rejection by the approver holding the e-mailed link."""
        batch = cls.get_by_token(token)
        cls._awaiting_approval(batch)
        txn = batch.transactions.filter(pk=transaction_id).first()
        if txn is None:
            raise BatchWorkflowError(f"A transação {transaction_id} não pertence a este lote.")
        return cls.reject_transaction(batch, txn, reason, request=request)

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def send_for_approval(cls, batch: PaymentBatch, approver=None, *, approver_email: str = "", sent_by=None, request=None) -> PaymentBatch:
        batch = cls._lock(batch)
        cls._ensure_transition(batch, BatchStatus.PENDING_APPROVAL)
        email = approver_email or getattr(approver, "email", "")
        if not email:
            raise BatchWorkflowError("Informe o aprovador do lote.")
        count = batch.transactions.count()
        if not count:
            raise BatchWorkflowError("O lote não possui transações.")

        batch.status = BatchStatus.PENDING_APPROVAL
        batch.approver = approver if getattr(approver, "pk", None) else None
        batch.approver_email = email
        batch.approval_token = _new_token()
        batch.approval_token_expires_at = _token_expiry()
        batch.sent_for_approval_at = timezone.now()
        batch.return_reason = ""
        batch.save()
        total = cls.recompute_total(batch)

        sender_name = getattr(sent_by, "display_name", "") or "Fin Control"
        EmailService.send_quietly(
            EmailType.BATCH_APPROVAL_REQUEST,
            email,
            {
                "batch_name": batch.name,
                "sender_name": sender_name,
                "transaction_count": count,
                "total_amount": format_brl(total),
                "link": public_url(f"/approve-batch/{batch.approval_token}"),
            },
        )
        if batch.approver is not None:
            NotificationService.notify(
                batch.approver,
                "Lote aguardando aprovação",
                f"{sender_name} enviou o lote {batch.name} ({format_brl(total)}) para sua aprovação.",
                company=batch.company,
                notification_type=NotificationType.WARNING,
                link=f"/financeiro/lotes/{batch.pk}",
                entity_type="payment_batch",
                entity_id=batch.pk,
            )
        cls._audit(
            batch,
            sent_by,
            AuditLog.ACTION_UPDATE,
            f"Lote enviado para aprovação: {batch.name}",
            details={"status": batch.status, "approver_email": email},
            request=request,
        )
        return batch

    @classmethod
    def _approve_locked(cls, batch: PaymentBatch, *, user=None, comment: str = "", adjustments: Optional[Mapping] = None, request=None) -> PaymentBatch:
        cls._awaiting_approval(batch)
        lines = {txn.pk: txn for txn in batch.transactions.select_for_update()}
        if not lines:
            raise BatchWorkflowError("Não é possível aprovar um lote sem transações.")
        for txn_id, amount in (adjustments or {}).items():
            txn = lines.get(int(txn_id))
            if txn is None:
                raise BatchWorkflowError(f"A transação {txn_id} não pertence a este lote.")
            amount = Decimal(str(amount))
            if amount < 0:
                raise BatchWorkflowError("O valor ajustado não pode ser negativo.")
            txn.batch_adjusted_amount = None if amount == txn.amount else amount

        now = timezone.now()
        approver = _actor(user) or batch.approver
        for txn in lines.values():
            txn._snapshot_before = capture(txn)
            fields = ["batch_adjusted_amount"]
            if txn.status != TransactionStatus.APPROVED:
                txn.status = TransactionStatus.APPROVED
                txn.approved_by = approver
                txn.approved_at = now
                fields += ["status", "approved_by", "approved_at"]
            cls._save_transaction(txn, fields)

        batch.status = BatchStatus.APPROVED
        batch.approved_by = approver
        batch.approved_at = now
        batch.approval_comment = comment or ""
        batch.save()
        total = cls.recompute_total(batch)

        cls._audit(
            batch,
            user,
            AuditLog.ACTION_APPROVE,
            f"Lote aprovado: {batch.name}",
            details={"total_amount": str(total), "adjustments": {str(k): str(v) for k, v in (adjustments or {}).items()}},
            request=request,
        )
        cls._notify_creator(batch, "Lote aprovado", f"O lote {batch.name} foi aprovado ({format_brl(total)}).", NotificationType.SUCCESS)
        return batch

    @classmethod
    @transaction.atomic
    def approve(cls, batch: PaymentBatch, *, user=None, comment: str = "", adjustments: Optional[Mapping] = None, request=None) -> PaymentBatch:
        """
        Approve a batch, optionally with ``{transaction_id: amount}`` adjustments.

        The new total is the sum of adjusted-or-original line amounts.
        """
        return cls._approve_locked(cls._lock(batch), user=user, comment=comment, adjustments=adjustments, request=request)

    @classmethod
    @transaction.atomic
    def approve_by_token(cls, token: str, *, comment: str = "", adjustments: Optional[Mapping] = None, request=None) -> PaymentBatch:
        batch = cls._lock(cls.get_by_token(token))
        return cls._approve_locked(batch, comment=comment, adjustments=adjustments, request=request)

    @classmethod
    def _reject_locked(cls, batch: PaymentBatch, *, user=None, reason: str = "", request=None) -> PaymentBatch:
        cls._awaiting_approval(batch)
        for txn in batch.transactions.select_for_update():
            txn._snapshot_before = capture(txn)
            txn.status = TransactionStatus.REJECTED
            txn.rejection_reason = reason or ""
            cls._save_transaction(txn, ["status", "rejection_reason"])
        batch.status = BatchStatus.APPROVAL_REJECTED
        batch.rejection_reason = reason or ""
        batch.rejected_at = timezone.now()
        batch.save()
        cls._audit(batch, user, AuditLog.ACTION_REJECT, f"Lote rejeitado: {batch.name}", details={"reason": reason}, request=request)
        cls._notify_creator(batch, "Lote rejeitado", f"O lote {batch.name} foi rejeitado. {reason}".strip(), NotificationType.ERROR)
        return batch

    @classmethod
    @transaction.atomic
    def reject(cls, batch: PaymentBatch, *, user=None, reason: str = "", request=None) -> PaymentBatch:
        return cls._reject_locked(cls._lock(batch), user=user, reason=reason, request=request)

    @classmethod
    @transaction.atomic
    def reject_by_token(cls, token: str, *, reason: str = "", request=None) -> PaymentBatch:
        batch = cls._lock(cls.get_by_token(token))
        return cls._reject_locked(batch, reason=reason, request=request)

    @classmethod
    @transaction.atomic
    def return_to_manager(cls, batch: PaymentBatch, reason: str = "", *, user=None, request=None) -> PaymentBatch:
        """Send a batch under review back to draft so the manager can rework it."""
        batch = cls._lock(batch)
        cls._awaiting_approval(batch)
        batch.status = BatchStatus.DRAFT
        batch.return_reason = reason or ""
        batch.approval_token = None
        batch.approval_token_expires_at = None
        batch.save()
        cls._audit(batch, user, AuditLog.ACTION_UPDATE, f"Lote devolvido ao gestor: {batch.name}", details={"reason": reason}, request=request)
        cls._notify_creator(batch, "Lote devolvido", f"O lote {batch.name} foi devolvido para ajustes. {reason}".strip(), NotificationType.WARNING)
        return batch

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def send_for_authorization(cls, batch: PaymentBatch, authorizer=None, *, authorizer_email: str = "", sent_by=None, request=None) -> PaymentBatch:
        batch = cls._lock(batch)
        cls._ensure_transition(batch, BatchStatus.PENDING_AUTHORIZATION)
        email = authorizer_email or getattr(authorizer, "email", "")
        if not email:
            raise BatchWorkflowError("Informe o autorizador do lote.")
        batch.status = BatchStatus.PENDING_AUTHORIZATION
        batch.authorizer = authorizer if getattr(authorizer, "pk", None) else None
        batch.authorizer_email = email
        batch.approval_token = _new_token()
        batch.approval_token_expires_at = _token_expiry()
        batch.sent_for_authorization_at = timezone.now()
        batch.save()

        approver_name = (
            getattr(batch.approved_by, "display_name", "")
            or batch.approver_email
            or getattr(sent_by, "display_name", "")
        )
        EmailService.send_quietly(
            EmailType.BATCH_AUTHORIZATION_REQUEST,
            email,
            {
                "batch_name": batch.name,
                "approver_name": approver_name,
                "transaction_count": batch.transactions.count(),
                "total_amount": format_brl(batch.total_amount),
                "link": public_url(f"/authorize-batch/{batch.approval_token}"),
            },
        )
        if batch.authorizer is not None:
            NotificationService.notify(
                batch.authorizer,
                "Autorização necessária",
                f"O lote {batch.name} ({format_brl(batch.total_amount)}) aguarda sua autorização.",
                company=batch.company,
                notification_type=NotificationType.WARNING,
                link=f"/financeiro/lotes/{batch.pk}",
                entity_type="payment_batch",
                entity_id=batch.pk,
            )
        cls._audit(
            batch,
            sent_by,
            AuditLog.ACTION_UPDATE,
            f"Lote enviado para autorização: {batch.name}",
            details={"status": batch.status, "authorizer_email": email},
            request=request,
        )
        return batch

    @staticmethod
    def get_by_token(token: str) -> PaymentBatch:
        """Batch addressed by a live token; unknown or expired tokens raise ``InvalidBatchToken``."""
        if not token:
            raise InvalidBatchToken()
        batch = (
            PaymentBatch.objects.select_related("company")
            .filter(approval_token=token)
            .filter(Q(approval_token_expires_at__isnull=True) | Q(approval_token_expires_at__gt=timezone.now()))
            .first()
        )
        if batch is None:
            raise InvalidBatchToken()
        return batch

    @classmethod
    def _authorize(cls, batch: PaymentBatch, lookup: Q, *, user=None, comment: str = "", request=None) -> PaymentBatch:
        # Conditional UPDATE: of two concurrent confirmations only one matches.
        now = timezone.now()
        authorized_by = _actor(user) or batch.authorizer
        updated = PaymentBatch.objects.filter(lookup, pk=batch.pk, status=BatchStatus.PENDING_AUTHORIZATION).update(
            status=BatchStatus.AUTHORIZED,
            authorized_by=authorized_by,
            authorized_at=now,
            authorization_comment=comment or "",
            updated_at=now,
        )
        batch.refresh_from_db()
        if updated != 1:
            raise BatchWorkflowError(cls._awaiting_authorization_message(batch.status))
        cls._audit(batch, user, AuditLog.ACTION_AUTHORIZE, f"Lote autorizado: {batch.name}", details={"comment": comment}, request=request)
        cls._notify_creator(batch, "Lote autorizado", f"O lote {batch.name} foi autorizado para pagamento.", NotificationType.SUCCESS)
        logger.info("Payment batch %s authorized", batch.pk)
        return batch

    @classmethod
    @transaction.atomic
    def authorize(cls, batch: PaymentBatch, *, user=None, comment: str = "", request=None) -> PaymentBatch:
        return cls._authorize(batch, Q(), user=user, comment=comment, request=request)

    @classmethod
    @transaction.atomic
    def authorize_by_token(cls, token: str, *, comment: str = "", request=None) -> PaymentBatch:
        """
        Authorize the batch behind ``token`` exactly once.

        Raises ``InvalidBatchToken`` for unknown/expired tokens and
        ``BatchWorkflowError`` when the batch is not awaiting authorization.
        """
        batch = cls.get_by_token(token)
        return cls._authorize(batch, Q(approval_token=token), comment=comment, request=request)

    @classmethod
    def _reject_authorization_locked(cls, batch: PaymentBatch, *, user=None, reason: str = "", request=None) -> PaymentBatch:
        if batch.status != BatchStatus.PENDING_AUTHORIZATION:
            raise BatchWorkflowError(cls._awaiting_authorization_message(batch.status))
        batch.status = BatchStatus.AUTHORIZATION_REJECTED
        batch.rejection_reason = reason or ""
        batch.rejected_at = timezone.now()
        batch.save()
        cls._audit(batch, user, AuditLog.ACTION_REJECT, f"Autorização do lote rejeitada: {batch.name}", details={"reason": reason}, request=request)
        cls._notify_creator(batch, "Autorização rejeitada", f"A autorização do lote {batch.name} foi rejeitada. {reason}".strip(), NotificationType.ERROR)
        return batch

    @classmethod
    @transaction.atomic
    def reject_authorization(cls, batch: PaymentBatch, reason: str = "", *, user=None, request=None) -> PaymentBatch:
        return cls._reject_authorization_locked(cls._lock(batch), user=user, reason=reason, request=request)

    @classmethod
    @transaction.atomic
    def reject_authorization_by_token(cls, token: str, reason: str = "", *, request=None) -> PaymentBatch:
        batch = cls._lock(cls.get_by_token(token))
        return cls._reject_authorization_locked(batch, reason=reason, request=request)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    @classmethod
    @transaction.atomic
    def execute(cls, batch: PaymentBatch, *, user=None, request=None) -> PaymentBatch:
        """Pay every line at its adjusted-or-original amount, dated today."""
        batch = cls._lock(batch)
        cls._ensure_transition(batch, BatchStatus.EXECUTED)
        now = timezone.now()
        today = timezone.localdate()
        actor = _actor(user)
        for txn in batch.transactions.select_for_update():
            txn._snapshot_before = capture(txn)
            txn.status = TransactionStatus.PAID
            txn.final_amount = txn.batch_amount
            txn.payment_date = today
            txn.released_by = actor
            txn.released_at = now
            cls._save_transaction(txn, ["status", "final_amount", "payment_date", "released_by", "released_at"], rescale=True)
        batch.status = BatchStatus.EXECUTED
        batch.executed_by = actor
        batch.executed_at = now
        batch.save()
        cls._audit(
            batch,
            user,
            AuditLog.ACTION_EXECUTE,
            f"Lote executado: {batch.name}",
            details={"total_amount": str(batch.total_amount)},
            request=request,
        )
        cls._notify_creator(batch, "Lote pago", f"O lote {batch.name} foi executado.", NotificationType.SUCCESS)
        return batch
