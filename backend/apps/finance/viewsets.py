from __future__ import annotations

import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from apps.audit.models import AuditLog
from apps.audit.utils import log_audit_event
from apps.budgeting.services import BudgetService
from apps.permissions.permissions import has_permission
from shared.mixins import CompanyScopedMixin

from .models import (
    Entity,
    PaymentBatch,
    RecurringTransactionTemplate,
    Transaction,
    TransactionType,
)
from .serializers import (
    AdjustAmountSerializer,
    ApproveBatchSerializer,
    BatchCreateSerializer,
    BatchTransactionsSerializer,
    CommentSerializer,
    EntitySerializer,
    MarkPaidSerializer,
    PaymentBatchSerializer,
    ReasonSerializer,
    RecurringTemplateSerializer,
    RejectLineSerializer,
    ReportPeriodSerializer,
    SendToUserSerializer,
    TransactionSerializer,
    TransactionWriteSerializer,
)
from .services.balance_service import BalanceService
from .services.batch_service import PaymentBatchService
from .services.recurrence_service import RecurrenceService
from .services.report_service import ReportService
from .services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

MODULE_BY_TYPE = {
    TransactionType.PAYABLE: "payables",
    TransactionType.RECEIVABLE: "receivables",
}


def _bad_request(exc: Exception) -> Response:
    return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


class EntityViewSet(CompanyScopedMixin, viewsets.ModelViewSet):
    queryset = Entity.objects.all()
    serializer_class = EntitySerializer

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("type"):
            queryset = queryset.filter(entity_type__in=[params["type"], "both"])
        if params.get("search"):
            term = params["search"]
            queryset = queryset.filter(Q(name__icontains=term) | Q(document__icontains=term))
        if params.get("active") in ("true", "false"):
            queryset = queryset.filter(is_active=params["active"] == "true")
        return queryset

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("entities.view")
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("entities.view")
        return super().retrieve(request, *args, **kwargs)

    def perform_create(self, serializer):  # type: ignore[override]
        company = self.ensure_perm("entities.create")
        entity = serializer.save(company=company, created_by=self.request.user)
        log_audit_event(
            user=self.request.user,
            company=company,
            action=AuditLog.ACTION_CREATE,
            entity_type="entity",
            entity_id=entity.pk,
            description=f"Entidade criada: {entity.name}",
            request=self.request,
        )

    def perform_update(self, serializer):  # type: ignore[override]
        company = self.ensure_perm("entities.edit")
        entity = serializer.save()
        log_audit_event(
            user=self.request.user,
            company=company,
            action=AuditLog.ACTION_UPDATE,
            entity_type="entity",
            entity_id=entity.pk,
            description=f"Entidade atualizada: {entity.name}",
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):  # type: ignore[override]
        company = self.ensure_perm("entities.delete")
        instance = self.get_object()
        if instance.transactions.exists():
            return Response({"detail": "Entidade possui transações; desative-a em vez de excluir."}, status=400)
        pk, name = instance.pk, instance.name
        instance.delete()
        log_audit_event(
            user=request.user,
            company=company,
            action=AuditLog.ACTION_DELETE,
            entity_type="entity",
            entity_id=pk,
            description=f"Entidade excluída: {name}",
            request=request,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class TransactionViewSet(CompanyScopedMixin, viewsets.ModelViewSet):
    """
    Payables and receivables.

    Capabilities are checked against the module of the transaction type,
    e.g. ``payables.approve`` or ``receivables.pay``.
    """
    queryset = Transaction.objects.select_related("cost_center", "entity", "created_by").prefetch_related("allocations__cost_center")
    serializer_class = TransactionSerializer

    def _module(self, transaction_type: str) -> str:
        try:
            return MODULE_BY_TYPE[transaction_type]
        except KeyError as exc:
            raise ValidationError({"transaction_type": "Tipo de transação inválido."}) from exc

    def _visible_types(self, company):
        return [
            transaction_type
            for transaction_type, module in MODULE_BY_TYPE.items()
            if has_permission(self.request.user, f"{module}.view", company)
        ]

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get("type"):
            queryset = queryset.filter(transaction_type=params["type"])
        if params.get("status"):
            queryset = queryset.filter(status__in=params["status"].split(","))
        if params.get("cost_center"):
            queryset = queryset.filter(Q(cost_center_id=params["cost_center"]) | Q(allocations__cost_center_id=params["cost_center"])).distinct()
        if params.get("entity"):
            queryset = queryset.filter(entity_id=params["entity"])
        if params.get("start"):
            queryset = queryset.filter(due_date__gte=params["start"])
        if params.get("end"):
            queryset = queryset.filter(due_date__lte=params["end"])
        if params.get("unbatched") == "true":
            queryset = queryset.filter(batch__isnull=True)
        if params.get("search"):
            term = params["search"]
            queryset = queryset.filter(Q(description__icontains=term) | Q(supplier_or_client__icontains=term))
        return queryset.order_by("due_date", "id")

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        company = self.get_company(required=True)
        visible = self._visible_types(company)
        if not visible:
            raise PermissionDenied(detail="Missing permission: payables.view")
        queryset = self.filter_queryset(self.get_queryset()).filter(transaction_type__in=visible)
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    def retrieve(self, request, *args, **kwargs):  # type: ignore[override]
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.view")
        return Response(self.get_serializer(instance).data)

    def create(self, request, *args, **kwargs):  # type: ignore[override]
        serializer = TransactionWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        company = self.ensure_perm(f"{self._module(data['transaction_type'])}.create")
        allocations = data.pop("allocations", None)
        try:
            txn = TransactionService.create(company, data, user=request.user, allocations=allocations, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):  # type: ignore[override]
        instance = self.get_object()
        partial = kwargs.pop("partial", False)
        serializer = TransactionWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        self.ensure_perm(f"{self._module(instance.transaction_type)}.edit")
        if "transaction_type" in data and data["transaction_type"] != instance.transaction_type:
            self.ensure_perm(f"{self._module(data['transaction_type'])}.edit")
        allocations = data.pop("allocations", None)
        try:
            txn = TransactionService.update(instance, data, user=request.user, allocations=allocations, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data)

    def destroy(self, request, *args, **kwargs):  # type: ignore[override]
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.delete")
        try:
            TransactionService.delete(instance, user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.edit")
        try:
            txn = TransactionService.submit_for_approval(instance, user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.approve")
        try:
            txn = TransactionService.approve(instance, user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.approve")
        payload = ReasonSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            txn = TransactionService.reject(instance, payload.validated_data["reason"], user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data)

    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        instance = self.get_object()
        self.ensure_perm(f"{self._module(instance.transaction_type)}.pay")
        payload = MarkPaidSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            txn = TransactionService.mark_paid(instance, user=request.user, request=request, **payload.validated_data)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(txn).data)


class RecurringTemplateViewSet(CompanyScopedMixin, viewsets.ModelViewSet):
    queryset = RecurringTransactionTemplate.objects.select_related("cost_center", "entity")
    serializer_class = RecurringTemplateSerializer

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        if self.request.query_params.get("active") in ("true", "false"):
            queryset = queryset.filter(active=self.request.query_params["active"] == "true")
        return queryset

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("recurrences.view")
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("recurrences.view")
        return super().retrieve(request, *args, **kwargs)

    def perform_create(self, serializer):  # type: ignore[override]
        company = self.ensure_perm("recurrences.create")
        template = serializer.save(company=company, created_by=self.request.user)
        log_audit_event(
            user=self.request.user,
            company=company,
            action=AuditLog.ACTION_CREATE,
            entity_type="recurring_template",
            entity_id=template.pk,
            description=f"Recorrência criada: {template.description}",
            details={"frequency": template.frequency, "interval": template.interval},
            request=self.request,
        )

    def perform_update(self, serializer):  # type: ignore[override]
        company = self.ensure_perm("recurrences.edit")
        template = serializer.save()
        log_audit_event(
            user=self.request.user,
            company=company,
            action=AuditLog.ACTION_UPDATE,
            entity_type="recurring_template",
            entity_id=template.pk,
            description=f"Recorrência atualizada: {template.description}",
            request=self.request,
        )

    def destroy(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("recurrences.delete")
        RecurrenceService.deactivate(self.get_object(), user=request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["post"], url_path="process")
    def process(self, request):
        """Generate the occurrences due today for the active company."""
        company = self.ensure_perm("recurrences.create")
        result = RecurrenceService.process_due_templates(company=company)
        return Response(result.as_dict())


class PaymentBatchViewSet(
    CompanyScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = PaymentBatch.objects.select_related("created_by").prefetch_related("transactions__cost_center")
    serializer_class = PaymentBatchSerializer

    def get_queryset(self):  # type: ignore[override]
        queryset = super().get_queryset()
        if self.request.query_params.get("status"):
            queryset = queryset.filter(status__in=self.request.query_params["status"].split(","))
        return queryset

    def _transactions(self, batch, ids):
        return list(Transaction.objects.filter(company=batch.company, pk__in=ids))

    def _line(self, batch, transaction_id):
        return get_object_or_404(Transaction, pk=transaction_id, company=batch.company)

    def _respond(self, batch):
        batch.refresh_from_db()
        return Response(self.get_serializer(batch).data)

    def list(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("batches.view")
        return super().list(request, *args, **kwargs)

    def retrieve(self, request, *args, **kwargs):  # type: ignore[override]
        self.ensure_perm("batches.view")
        return super().retrieve(request, *args, **kwargs)

    def create(self, request, *args, **kwargs):
        company = self.ensure_perm("batches.create")
        payload = BatchCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        transactions = list(Transaction.objects.filter(company=company, pk__in=payload.validated_data["transaction_ids"]))
        try:
            batch = PaymentBatchService.create(
                company,
                payload.validated_data["name"],
                created_by=request.user,
                transactions=transactions,
                request=request,
            )
        except ValueError as exc:
            return _bad_request(exc)
        return Response(self.get_serializer(batch).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, pk=None):
        company = self.ensure_perm("batches.delete")
        batch = self.get_object()
        if batch.status != "draft":
            return Response({"detail": "Apenas lotes em rascunho podem ser excluídos."}, status=400)
        PaymentBatchService.remove_transactions(batch, list(batch.transactions.all()), user=request.user)
        batch_pk, name = batch.pk, batch.name
        batch.delete()
        log_audit_event(
            user=request.user,
            company=company,
            action=AuditLog.ACTION_DELETE,
            entity_type="payment_batch",
            entity_id=batch_pk,
            description=f"Lote excluído: {name}",
            request=request,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="add-transactions")
    def add_transactions(self, request, pk=None):
        self.ensure_perm("batches.edit")
        batch = self.get_object()
        payload = BatchTransactionsSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.add_transactions(batch, self._transactions(batch, payload.validated_data["transaction_ids"]), user=request.user)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="remove-transactions")
    def remove_transactions(self, request, pk=None):
        self.ensure_perm("batches.edit")
        batch = self.get_object()
        payload = BatchTransactionsSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.remove_transactions(batch, self._transactions(batch, payload.validated_data["transaction_ids"]), user=request.user)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="send-for-approval")
    def send_for_approval(self, request, pk=None):
        self.ensure_perm("batches.edit")
        batch = self.get_object()
        payload = SendToUserSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.send_for_approval(
                batch,
                payload.validated_data.get("user"),
                approver_email=payload.validated_data.get("email", ""),
                sent_by=request.user,
                request=request,
            )
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="adjust-amount")
    def adjust_amount(self, request, pk=None):
        self.ensure_perm("batches.approve")
        batch = self.get_object()
        payload = AdjustAmountSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        line = self._line(batch, payload.validated_data["transaction_id"])
        try:
            PaymentBatchService.adjust_amount(batch, line, payload.validated_data["amount"], user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="reject-transaction")
    def reject_transaction(self, request, pk=None):
        self.ensure_perm("batches.approve")
        batch = self.get_object()
        payload = RejectLineSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        line = self._line(batch, payload.validated_data["transaction_id"])
        try:
            PaymentBatchService.reject_transaction(batch, line, payload.validated_data["reason"], user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        self.ensure_perm("batches.approve")
        batch = self.get_object()
        payload = ApproveBatchSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.approve(
                batch,
                user=request.user,
                comment=payload.validated_data["comment"],
                adjustments=payload.validated_data["adjustments"],
                request=request,
            )
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        self.ensure_perm("batches.approve")
        batch = self.get_object()
        payload = ReasonSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.reject(batch, user=request.user, reason=payload.validated_data["reason"], request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="return-to-manager")
    def return_to_manager(self, request, pk=None):
        self.ensure_perm("batches.approve")
        batch = self.get_object()
        payload = ReasonSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.return_to_manager(batch, payload.validated_data["reason"], user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="send-for-authorization")
    def send_for_authorization(self, request, pk=None):
        self.ensure_perm("batches.edit")
        batch = self.get_object()
        payload = SendToUserSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.send_for_authorization(
                batch,
                payload.validated_data.get("user"),
                authorizer_email=payload.validated_data.get("email", ""),
                sent_by=request.user,
                request=request,
            )
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"])
    def authorize(self, request, pk=None):
        self.ensure_perm("batches.pay")
        batch = self.get_object()
        payload = CommentSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.authorize(batch, user=request.user, comment=payload.validated_data["comment"], request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"], url_path="reject-authorization")
    def reject_authorization(self, request, pk=None):
        self.ensure_perm("batches.pay")
        batch = self.get_object()
        payload = ReasonSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            PaymentBatchService.reject_authorization(batch, payload.validated_data["reason"], user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)

    @action(detail=True, methods=["post"])
    def execute(self, request, pk=None):
        self.ensure_perm("batches.pay")
        batch = self.get_object()
        try:
            PaymentBatchService.execute(batch, user=request.user, request=request)
        except ValueError as exc:
            return _bad_request(exc)
        return self._respond(batch)


class ReportViewSet(CompanyScopedMixin, viewsets.ViewSet):
    """Cash flow, income statement and dashboard figures of the active company."""

    def _period(self, request):
        payload = ReportPeriodSerializer(data=request.query_params)
        payload.is_valid(raise_exception=True)
        return payload.validated_data["start"], payload.validated_data["end"]

    @action(detail=False, methods=["get"], url_path="cash-flow")
    def cash_flow(self, request):
        company = self.ensure_perm("reports.view")
        start, end = self._period(request)
        return Response(ReportService.cash_flow(company, start, end))

    @action(detail=False, methods=["get"], url_path="income-statement")
    def income_statement(self, request):
        company = self.ensure_perm("reports.view")
        start, end = self._period(request)
        return Response(ReportService.income_statement(company, start, end))

    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        company = self.get_company(required=True)
        mine_only = not has_permission(request.user, "reports.view", company)
        if mine_only and not has_permission(request.user, "payables.view", company):
            raise PermissionDenied(detail="Missing permission: reports.view")
        payload = ReportService.dashboard(company, user=request.user if mine_only else None)
        payload["budget_progress"] = [] if mine_only else BudgetService.progress(company)
        return Response(payload)

    @action(detail=False, methods=["post"], url_path="recalculate-balance")
    def recalculate_balance(self, request):
        company = self.ensure_perm("settings.view")
        stats = BalanceService.recalculate_company_balance(company)
        log_audit_event(
            user=request.user,
            company=company,
            action=AuditLog.ACTION_UPDATE,
            entity_type="company_stats",
            entity_id=company.pk,
            description="Saldo recalculado",
            details={"current_balance": str(stats.current_balance)},
            request=request,
        )
        return Response({"current_balance": str(stats.current_balance)})
