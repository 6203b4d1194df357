from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.budgeting.models import CostCenter

from .models import (
    MIN_AMOUNT,
    Entity,
    PaymentBatch,
    PaymentMethod,
    RecurringTransactionTemplate,
    Transaction,
    TransactionAllocation,
    TransactionType,
)
from .services.transaction_service import TransactionError, TransactionService

User = get_user_model()


class CompanyScopedPrimaryKeyField(serializers.PrimaryKeyRelatedField):
    """Primary key field limited to rows of the active company in context."""

    def get_queryset(self):
        queryset = super().get_queryset()
        company = self.context.get("company")
        if company is None:
            return queryset.none()
        return queryset.filter(company=company)


class EntitySerializer(serializers.ModelSerializer):
    entity_type_display = serializers.CharField(source="get_entity_type_display", read_only=True)

    class Meta:
        model = Entity
        fields = [
            "id",
            "entity_type",
            "entity_type_display",
            "name",
            "document",
            "email",
            "phone",
            "address",
            "bank_name",
            "bank_agency",
            "bank_account",
            "pix_key",
            "pix_key_type",
            "notes",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def validate_document(self, value):
        digits = "".join(ch for ch in value if ch.isdigit())
        if value and len(digits) not in (11, 14):
            raise serializers.ValidationError("Informe um CPF (11 dígitos) ou CNPJ (14 dígitos).")
        return digits


class TransactionAllocationSerializer(serializers.ModelSerializer):
    cost_center_name = serializers.CharField(source="cost_center.name", read_only=True)
    cost_center_code = serializers.CharField(source="cost_center.code", read_only=True)

    class Meta:
        model = TransactionAllocation
        fields = ["id", "cost_center", "cost_center_code", "cost_center_name", "percentage", "amount"]
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    allocations = TransactionAllocationSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    transaction_type_display = serializers.CharField(source="get_transaction_type_display", read_only=True)
    cost_center_name = serializers.CharField(source="cost_center.name", read_only=True, default=None)
    entity_name = serializers.CharField(source="entity.name", read_only=True, default=None)
    batch_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id",
            "transaction_type",
            "transaction_type_display",
            "description",
            "amount",
            "final_amount",
            "discount",
            "interest",
            "status",
            "status_display",
            "due_date",
            "payment_date",
            "entity",
            "entity_name",
            "supplier_or_client",
            "cost_center",
            "cost_center_name",
            "allocations",
            "payment_method",
            "request_origin",
            "notes",
            "attachment_url",
            "installment_number",
            "installments_total",
            "installment_group",
            "approved_by",
            "approved_at",
            "released_by",
            "released_at",
            "rejection_reason",
            "batch",
            "batch_adjusted_amount",
            "batch_amount",
            "batch_rejection_reason",
            "recurring_template",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by_id else None


class AllocationInputSerializer(serializers.Serializer):
    cost_center = serializers.IntegerField()
    percentage = serializers.DecimalField(max_digits=6, decimal_places=2, min_value=Decimal("0.01"), max_value=Decimal("100"))


class TransactionWriteSerializer(serializers.Serializer):
    """Input of create/update; business rules are enforced by TransactionService."""
    transaction_type = serializers.ChoiceField(choices=TransactionType.choices)
    description = serializers.CharField(min_length=3, max_length=255)
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=MIN_AMOUNT)
    discount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"), required=False)
    interest = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"), required=False)
    due_date = serializers.DateField()
    payment_date = serializers.DateField(required=False, allow_null=True)
    entity = serializers.IntegerField(required=False, allow_null=True)
    supplier_or_client = serializers.CharField(required=False, allow_blank=True, max_length=255)
    cost_center = serializers.IntegerField(required=False, allow_null=True)
    allocations = AllocationInputSerializer(many=True, required=False)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False, allow_blank=True)
    request_origin = serializers.CharField(required=False, allow_blank=True, max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True)
    attachment_url = serializers.URLField(required=False, allow_blank=True)
    installment_number = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    installments_total = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    installment_group = serializers.CharField(required=False, allow_blank=True, max_length=64)

    def validate(self, attrs):
        number = attrs.get("installment_number")
        total = attrs.get("installments_total")
        if number and total and number > total:
            raise serializers.ValidationError({"installment_number": "A parcela não pode ser maior que o total de parcelas."})
        return attrs


class MarkPaidSerializer(serializers.Serializer):
    final_amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True)
    payment_date = serializers.DateField(required=False, allow_null=True)
    discount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True)
    interest = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BatchLineSerializer(serializers.ModelSerializer):
    batch_amount = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)
    cost_center_name = serializers.CharField(source="cost_center.name", read_only=True, default=None)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "description",
            "supplier_or_client",
            "amount",
            "batch_adjusted_amount",
            "batch_amount",
            "due_date",
            "status",
            "payment_method",
            "cost_center_name",
        ]
        read_only_fields = fields


class PaymentBatchSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    transactions = BatchLineSerializer(many=True, read_only=True)
    transaction_count = serializers.SerializerMethodField()
    created_by_name = serializers.SerializerMethodField()

    class Meta:
        model = PaymentBatch
        fields = [
            "id",
            "name",
            "status",
            "status_display",
            "total_amount",
            "transaction_count",
            "transactions",
            "approver",
            "approver_email",
            "sent_for_approval_at",
            "approved_by",
            "approved_at",
            "approval_comment",
            "authorizer",
            "authorizer_email",
            "sent_for_authorization_at",
            "authorized_by",
            "authorized_at",
            "authorization_comment",
            "executed_by",
            "executed_at",
            "rejection_reason",
            "rejected_at",
            "return_reason",
            "rejected_transaction_ids",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_transaction_count(self, obj):
        return obj.transactions.count()

    def get_created_by_name(self, obj):
        return obj.created_by.display_name if obj.created_by_id else None


class PublicBatchSerializer(serializers.ModelSerializer):
    """What the approver/authorizer sees behind an e-mailed link."""
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    company_name = serializers.CharField(source="company.name", read_only=True)
    transactions = BatchLineSerializer(many=True, read_only=True)

    class Meta:
        model = PaymentBatch
        fields = [
            "id",
            "name",
            "company_name",
            "status",
            "status_display",
            "total_amount",
            "transactions",
            "approver_email",
            "approved_at",
            "approval_comment",
            "authorizer_email",
            "authorized_at",
        ]
        read_only_fields = fields


class PublicTransactionSerializer(serializers.ModelSerializer):
    """What the cost-center approver sees behind an e-mailed link."""
    company_name = serializers.CharField(source="company.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    cost_center_name = serializers.CharField(source="cost_center.name", read_only=True, default=None)
    requester_name = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            "id",
            "company_name",
            "description",
            "amount",
            "due_date",
            "supplier_or_client",
            "cost_center_name",
            "request_origin",
            "requester_name",
            "status",
            "status_display",
        ]
        read_only_fields = fields

    def get_requester_name(self, obj):
        return obj.created_by.display_name if obj.created_by_id else None


class BatchCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    transaction_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class BatchTransactionsSerializer(serializers.Serializer):
    transaction_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class SendToUserSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True), required=False, allow_null=True)
    email = serializers.EmailField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get("user") and not attrs.get("email"):
            raise serializers.ValidationError("Informe um usuário ou e-mail.")
        return attrs


class AdjustAmountSerializer(serializers.Serializer):
    transaction_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0"))


class RejectLineSerializer(serializers.Serializer):
    transaction_id = serializers.IntegerField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ApproveBatchSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default="")
    adjustments = serializers.DictField(
        child=serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0")),
        required=False,
        default=dict,
    )

    def validate_adjustments(self, value):
        cleaned = {}
        for key, amount in value.items():
            if not str(key).isdigit():
                raise serializers.ValidationError(f"Transação inválida: {key}")
            cleaned[int(key)] = amount
        return cleaned


class CommentSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class RecurringTemplateSerializer(serializers.ModelSerializer):
    cost_center = CompanyScopedPrimaryKeyField(queryset=CostCenter.objects.all(), required=False, allow_null=True)
    entity = CompanyScopedPrimaryKeyField(queryset=Entity.objects.all(), required=False, allow_null=True)
    frequency_display = serializers.CharField(source="get_frequency_display", read_only=True)

    class Meta:
        model = RecurringTransactionTemplate
        fields = [
            "id",
            "description",
            "amount",
            "transaction_type",
            "frequency",
            "frequency_display",
            "interval",
            "next_due_date",
            "end_date",
            "active",
            "last_generated_at",
            "cost_center",
            "entity",
            "base_transaction_data",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["last_generated_at", "created_at", "updated_at"]

    def validate_base_transaction_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Deve ser um objeto JSON.")
        company = self.context.get("company")
        for key, model in (("cost_center", CostCenter), ("entity", Entity)):
            reference = value.get(key)
            if reference in (None, ""):
                continue
            if not str(reference).isdigit() or not model.objects.filter(pk=int(reference), company=company).exists():
                raise serializers.ValidationError({key: f"Registro {reference} não encontrado nesta empresa."})
        if "allocations" in value:
            rows = AllocationInputSerializer(data=value["allocations"] or [], many=True)
            if not rows.is_valid():
                raise serializers.ValidationError({"allocations": rows.errors})
            try:
                TransactionService.validate_allocations(company, rows.validated_data)
            except TransactionError as exc:
                raise serializers.ValidationError({"allocations": str(exc)}) from exc
            value = {
                **value,
                "allocations": [
                    {"cost_center": row["cost_center"], "percentage": str(row["percentage"])}
                    for row in rows.validated_data
                ],
            }
        return value

    def validate(self, attrs):
        next_due = attrs.get("next_due_date", getattr(self.instance, "next_due_date", None))
        end_date = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if next_due and end_date and end_date < next_due:
            raise serializers.ValidationError({"end_date": "A data final deve ser posterior ao próximo vencimento."})
        return attrs


class ReportPeriodSerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()

    def validate(self, attrs):
        if attrs["start"] > attrs["end"]:
            raise serializers.ValidationError("A data inicial deve ser anterior à data final.")
        return attrs
